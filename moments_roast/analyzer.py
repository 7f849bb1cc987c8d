"""
Core orchestration / pipeline.

Flow:
1. Validate the uploaded batch (count, type, size) before touching the model
2. Build one multimodal user message: fixed instruction text + one
   data-URI image part per upload, in upload order
3. Single LLM call (no retries)
4. Strip code fences from the reply, parse it as JSON and check it against
   the AnalysisResult shape
"""

import base64
import json
import logging
import os
import re
from typing import Any, Dict, List

from pydantic import ValidationError

from .llm_client import call_llm
from .schemas import AnalysisResult, ImageUpload
from .settings import Settings

# Configure module logger
logger = logging.getLogger(__name__)

# Prompt file paths
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
ROAST_PROMPT_PATH = os.path.join(BASE_DIR, "prompts", "roast_prompt.txt")

_FENCE_RE = re.compile(r"```(?:json)?")


class UploadRejected(ValueError):
    """The upload batch failed validation; nothing was sent to the model."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class OutputFormatError(ValueError):
    """The model reply could not be turned into an analysis result."""

    def __init__(self, raw: str, reason: str):
        super().__init__(reason)
        self.raw = raw
        self.reason = reason


def _read_prompt(path: str) -> str:
    """Read a prompt text file."""
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def validate_batch(images: List[ImageUpload], settings: Settings) -> None:
    """
    Check an upload batch the same way for every request.
    Per-file checks run first (in upload order), then the count bounds.
    """
    for image in images:
        if not (image.content_type or "").startswith("image/"):
            logger.warning("upload.rejected reason=type filename=%s content_type=%s",
                           image.filename, image.content_type)
            raise UploadRejected("Only image files are allowed!")
        if len(image.data) > settings.max_file_size_bytes:
            logger.warning("upload.rejected reason=size filename=%s bytes=%d limit=%d",
                           image.filename, len(image.data), settings.max_file_size_bytes)
            raise UploadRejected("File upload error: File too large")

    if len(images) > settings.max_images:
        logger.warning("upload.rejected reason=too_many count=%d", len(images))
        raise UploadRejected("File upload error: Too many files")

    if len(images) < settings.min_images:
        logger.warning("upload.rejected reason=too_few count=%d", len(images))
        raise UploadRejected(f"Please upload at least {settings.min_images} images")


def to_data_uri(image: ImageUpload) -> str:
    mime_type = image.content_type or "image/jpeg"
    payload = base64.b64encode(image.data).decode("ascii")
    return f"data:{mime_type};base64,{payload}"


def build_content_parts(images: List[ImageUpload], instruction: str) -> List[Dict[str, Any]]:
    """Instruction text first, then one image part per upload in order."""
    parts: List[Dict[str, Any]] = [{"type": "text", "text": instruction}]
    for image in images:
        parts.append({"type": "image_url", "image_url": {"url": to_data_uri(image)}})
    return parts


def strip_code_fences(text: str) -> str:
    """Remove ```json / ``` markers and surrounding whitespace."""
    return _FENCE_RE.sub("", text).strip()


def parse_model_reply(reply: str) -> Dict[str, Any]:
    """
    Turn the model's text reply into the result object.

    Well-formed objects come back unchanged; numeric strings are coerced.
    Anything that is not a JSON object of the expected shape raises
    OutputFormatError carrying the cleaned text.
    """
    cleaned = strip_code_fences(reply)

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse LLM response as JSON: %s", e)
        logger.error("Raw response was: %s...", cleaned[:1000])
        raise OutputFormatError(cleaned, f"invalid JSON: {e}")

    if not isinstance(parsed, dict):
        logger.error("LLM response is JSON but not an object: type=%s", type(parsed).__name__)
        raise OutputFormatError(cleaned, "reply is not a JSON object")

    try:
        result = AnalysisResult.model_validate(parsed)
    except ValidationError as e:
        logger.error("LLM response does not match result shape: %s", e)
        raise OutputFormatError(cleaned, f"unexpected shape: {e}")

    return result.model_dump(exclude_unset=True)


def analyze(images: List[ImageUpload], settings: Settings) -> Dict[str, Any]:
    """
    Main analysis pipeline with a single LLM call.

    Raises:
        UploadRejected: the batch is invalid (model not called)
        OutputFormatError: the reply could not be parsed
        LLMError: the model call itself failed
    """
    validate_batch(images, settings)

    logger.info(
        "analyze: images=%d total_bytes=%d model=%s",
        len(images),
        sum(len(i.data) for i in images),
        settings.model_id,
    )

    instruction = _read_prompt(ROAST_PROMPT_PATH)
    content_parts = build_content_parts(images, instruction)

    response = call_llm(content_parts, settings, temperature=settings.temperature)
    logger.debug("LLM raw response: %s", response)

    result = parse_model_reply(response)
    logger.info("analyze: done danger_level=%s traits=%d",
                result.get("danger_level"), len(result.get("toxic_traits") or []))
    return result
