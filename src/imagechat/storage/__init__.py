"""Durable storage for the session snapshot and preferences."""

from .base import KeyValueStore, StorageError, StorageFullError
from .factory import create_key_value_store
from .persistence import PersistenceManager, SaveOutcome, slim_payload

__all__ = [
    "KeyValueStore",
    "StorageError",
    "StorageFullError",
    "create_key_value_store",
    "PersistenceManager",
    "SaveOutcome",
    "slim_payload",
]
