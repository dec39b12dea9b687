"""Settings loader for the SmartLook wardrobe assistant."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai"


class ConfigurationError(RuntimeError):
    """Raised when a required setting (such as the API key) is missing."""


def _load_env_file(path: str = ".env") -> None:
    """Populate environment variables from a .env file if present."""

    env_path = Path(path)
    if not env_path.exists():
        return

    for line in env_path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


@dataclass(slots=True, frozen=True)
class SmartLookSettings:
    """Settings shared by the gateway, the controller and the HTTP surface."""

    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    analysis_model: str = "gemini-2.5-flash"
    image_model: str = "gemini-2.5-flash-image"
    request_timeout: float = 120.0
    environment: str = "dev"
    log_level: str = "INFO"

    def require_api_key(self) -> str:
        """Return the API key or fail with a user-facing configuration error."""

        if not self.api_key:
            raise ConfigurationError("API Key 未設定。請在設定中輸入您的 Google API Key。")
        return self.api_key


def _build_settings() -> SmartLookSettings:
    _load_env_file()
    return SmartLookSettings(
        api_key=os.getenv("SMARTLOOK_API_KEY", os.getenv("GEMINI_API_KEY", os.getenv("API_KEY", ""))),
        base_url=os.getenv("SMARTLOOK_BASE_URL", DEFAULT_BASE_URL),
        analysis_model=os.getenv("SMARTLOOK_ANALYSIS_MODEL", "gemini-2.5-flash"),
        image_model=os.getenv("SMARTLOOK_IMAGE_MODEL", "gemini-2.5-flash-image"),
        request_timeout=float(os.getenv("SMARTLOOK_REQUEST_TIMEOUT", "120")),
        environment=os.getenv("ENVIRONMENT", "dev"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


@lru_cache(maxsize=1)
def get_settings() -> SmartLookSettings:
    """Return cached settings instance."""

    return _build_settings()
