"""
Minimal LLM client wrapper for an OpenAI-compatible chat completions API.

Rationale:
- The default provider (Volcengine Ark) speaks the OpenAI wire format, so a
  plain httpx POST is enough.
- Keep interface tiny: call_llm(content_parts, settings) -> str.
- No retries / no fallback / no streaming.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from .settings import Settings

logger = logging.getLogger(__name__)


class LLMError(RuntimeError):
    """The model call failed or returned nothing usable."""


def call_llm(
    content_parts: List[Dict[str, Any]],
    settings: Settings,
    *,
    temperature: Optional[float] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> str:
    """
    Send one user message made of mixed text/image parts and return the reply text.
    """
    if not settings.api_key:
        raise LLMError("ARK_API_KEY must be set in environment")

    if not settings.model_id:
        raise LLMError("ARK_MODEL_ID must be set in environment")

    url = settings.base_url.rstrip("/") + "/chat/completions"
    payload = {
        "model": settings.model_id,
        "messages": [{"role": "user", "content": content_parts}],
        "temperature": settings.temperature if temperature is None else temperature,
    }

    try:
        with httpx.Client(timeout=settings.llm_timeout, transport=transport) as client:
            r = client.post(
                url,
                headers={"Authorization": f"Bearer {settings.api_key}", "Content-Type": "application/json"},
                json=payload,
            )
            r.raise_for_status()
            data = r.json()
    except httpx.HTTPStatusError as e:
        body = e.response.text[:300]
        raise LLMError(f"Model API returned {e.response.status_code}: {body}") from e
    except (httpx.HTTPError, ValueError) as e:
        raise LLMError(f"Model API error: {e}") from e

    choices = data.get("choices") or []
    if not choices:
        raise LLMError("Model returned no choices")

    content = (choices[0].get("message") or {}).get("content")
    if not content:
        raise LLMError("Model returned empty response")

    logger.debug("llm.reply model=%s chars=%d", settings.model_id, len(content))
    return content
