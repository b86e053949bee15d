"""
Imagechat: multi-turn, multi-modal image conversations with a remote model.

This package follows Parnas's information hiding principles: the session
engine never sees a provider wire format, and the providers never see the
display timeline.
"""

__version__ = "0.1.0"

from .config import ApiSettings, ApiType, EnvConfig, StaticConfig
from .errors import (
    CapabilityError,
    ChatError,
    ConfigurationError,
    RequestTimeoutError,
    TransportError,
)
from .engine import ChatSession
from .session import SessionState
from .storage import PersistenceManager, create_key_value_store

__all__ = [
    "ApiSettings",
    "ApiType",
    "CapabilityError",
    "ChatError",
    "ChatSession",
    "ConfigurationError",
    "EnvConfig",
    "PersistenceManager",
    "RequestTimeoutError",
    "SessionState",
    "StaticConfig",
    "TransportError",
    "create_key_value_store",
]
