"""API configuration and the read-only accessor injected into the session.

The core never persists or validates these values; it only reads them at
the moment a request is sent.
"""

import os
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigurationError


class ApiType(str, Enum):
    """Wire protocol spoken by the configured endpoint."""

    GEMINI = "gemini"  # Native multi-modal generateContent protocol
    OPENAI = "openai"  # Chat-completion compatible protocol


MODEL_LIST = (
    "gemini-3-pro-image-preview-1-1-4K",
    "gemini-3-pro-image-preview-16-9-4K",
    "gemini-3-pro-image-preview-4k",
    "gemini-3-pro-image-preview-9-16-4K",
    "gemini-3-pro-image-preview",
)
DEFAULT_MODEL = "gemini-3-pro-image-preview"

# Image generation can be very slow; requests are cancelled after this
DEFAULT_REQUEST_TIMEOUT_SECONDS = 20 * 60

# Completion budget for chat-completion requests
OPENAI_MAX_TOKENS = 4096


class ApiSettings(BaseModel):
    """Snapshot of the API configuration at call time."""

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(default="", description="API base URL without the version path")
    api_key: str = Field(default="", description="API credential")
    api_type: ApiType = Field(default=ApiType.GEMINI)
    model: str = Field(default=DEFAULT_MODEL, description="Selected model name")
    request_timeout: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT_SECONDS,
        gt=0,
        description="Seconds before a provider call is cancelled",
    )

    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def require_credentials(self) -> None:
        """Raise ConfigurationError unless both URL and key are present."""
        if not self.is_configured():
            raise ConfigurationError("Please configure the API URL and key first")


class ConfigAccessor(Protocol):
    """Read-only configuration capability consumed by the session."""

    def get_settings(self) -> ApiSettings: ...


class StaticConfig:
    """In-process configuration holder.

    Settings can be replaced between sends, e.g. to switch the provider
    type mid-session.
    """

    def __init__(self, settings: ApiSettings | None = None, **values: Any):
        self._settings = settings or ApiSettings(**values)

    def get_settings(self) -> ApiSettings:
        return self._settings

    def update(self, **changes: Any) -> ApiSettings:
        self._settings = self._settings.model_copy(update=changes)
        return self._settings


class EnvConfig:
    """Configuration read from environment variables on every access.

    Environment variables:
        IMAGECHAT_API_URL: API base URL
        IMAGECHAT_API_KEY: API key
        IMAGECHAT_API_TYPE: 'gemini' or 'openai' (default: gemini)
        IMAGECHAT_MODEL: Model name (default: gemini-3-pro-image-preview)
        IMAGECHAT_TIMEOUT: Request timeout in seconds (default: 1200)
    """

    def __init__(self, prefix: str = "IMAGECHAT_"):
        self._prefix = prefix

    def _get(self, name: str, default: str = "") -> str:
        return os.getenv(f"{self._prefix}{name}", default).strip()

    def get_settings(self) -> ApiSettings:
        api_type = self._get("API_TYPE", ApiType.GEMINI.value).lower()
        try:
            resolved_type = ApiType(api_type)
        except ValueError:
            resolved_type = ApiType.GEMINI

        return ApiSettings(
            base_url=self._get("API_URL"),
            api_key=self._get("API_KEY"),
            api_type=resolved_type,
            model=self._get("MODEL") or DEFAULT_MODEL,
            request_timeout=self._timeout(),
        )

    def _timeout(self) -> float:
        raw = self._get("TIMEOUT")
        if not raw:
            return DEFAULT_REQUEST_TIMEOUT_SECONDS
        try:
            value = float(raw)
        except ValueError:
            value = 0.0
        if not value > 0 or value == float("inf"):
            raise ConfigurationError(f"{self._prefix}TIMEOUT must be a positive number of seconds, got {raw!r}")
        return value
