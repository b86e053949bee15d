"""Selects the backend that holds the saved conversation and the guidance preference."""

from typing import Any

from .base import KeyValueStore

BACKENDS = ("memory", "sqlite")


def create_key_value_store(
    backend: str = "memory",
    **kwargs: Any
) -> KeyValueStore:
    """Build the snapshot store named by ``backend``.

    Both backends enforce a write limit so a snapshot carrying large
    base64 images can be rejected, which makes PersistenceManager retry
    without image data.

    Args:
        backend: "memory" keeps snapshots for the life of the process,
            "sqlite" keeps them on disk between CLI runs
        **kwargs: Passed to the backend. The memory store takes
            ``quota_bytes`` (total size of all stored values). The SQLite
            store takes ``path`` and ``max_value_bytes`` (size of a
            single value).

    Raises:
        ValueError: Unknown backend name
    """
    match backend:
        case "memory":
            from .in_memory import InMemoryKeyValueStore
            return InMemoryKeyValueStore(**kwargs)
        case "sqlite":
            from .sqlite import SQLiteKeyValueStore
            return SQLiteKeyValueStore(**kwargs)

    raise ValueError(f"Unknown snapshot store {backend!r}, expected one of: {', '.join(BACKENDS)}")
