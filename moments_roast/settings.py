"""
Centralized configuration for the relay and the upload client.

Rationale:
- All values come from environment variables (or a local .env file).
- Settings are built once and injected into the app, so tests can pass
  their own instance instead of patching the process environment.
"""

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel


DEFAULT_BASE_URL = "https://ark.cn-beijing.volces.com/api/v3"


class Settings(BaseModel):
    # --- Model provider (OpenAI-compatible) ---
    api_key: Optional[str] = None
    model_id: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    temperature: float = 0.8
    llm_timeout: float = 110.0

    # --- Upload limits (the relay is the authority) ---
    max_file_size_mb: int = 10
    min_images: int = 2
    max_images: int = 5

    # --- HTTP ---
    cors_origins: List[str] = ["*"]
    host: str = "0.0.0.0"
    port: int = 3000

    # --- Upload client ---
    relay_url: str = "http://localhost:3000"
    client_timeout: float = 120.0

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @classmethod
    def from_env(cls) -> "Settings":
        """Read every setting from the environment, falling back to defaults."""
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            api_key=os.getenv("ARK_API_KEY") or None,
            model_id=os.getenv("ARK_MODEL_ID") or None,
            base_url=os.getenv("ARK_BASE_URL", DEFAULT_BASE_URL),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.8")),
            llm_timeout=float(os.getenv("LLM_TIMEOUT", "110")),
            max_file_size_mb=int(os.getenv("MAX_FILE_SIZE_MB", "10")),
            min_images=int(os.getenv("MIN_IMAGES", "2")),
            max_images=int(os.getenv("MAX_IMAGES", "5")),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            relay_url=os.getenv("RELAY_URL", "http://localhost:3000"),
            client_timeout=float(os.getenv("CLIENT_TIMEOUT", "120")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings for the process (used when no instance is injected)."""
    return Settings.from_env()
