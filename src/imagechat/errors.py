"""Error taxonomy shared by the router, the providers and the session.

Every failure that reaches the user is one of these. Provider SDK
exceptions are converted at the adapter boundary and never escape it.
"""

from typing import Any


class ChatError(Exception):
    """Base class for handled conversation errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CapabilityError(ChatError):
    """The requested mode cannot be served (unsupported provider, nothing to edit)."""


class ConfigurationError(ChatError):
    """API URL or key is missing; raised before any network call."""


class TransportError(ChatError):
    """Network failure, non-2xx response or malformed response body."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        code: str | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.status = status
        self.code = code
        self.details = details

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.message} (HTTP {self.status})"
        return self.message


class RequestTimeoutError(TransportError):
    """The provider call exceeded its deadline and was cancelled."""

    def __init__(self, timeout: float, details: Any = None):
        minutes = timeout / 60
        if minutes >= 1:
            waited = f"{minutes:g} minutes"
        else:
            waited = f"{timeout:g} seconds"
        super().__init__(f"Request timed out (waited {waited})", details=details)
        self.timeout = timeout
