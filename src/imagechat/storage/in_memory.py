"""In-memory key-value store.

Simple dict-based storage for session-only use and tests. An optional
quota makes it behave like a browser-style store that runs out of space.
"""

from .base import KeyValueStore, StorageFullError


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store, lost when the process exits."""

    def __init__(self, quota_bytes: int | None = None):
        self._quota_bytes = quota_bytes
        self._values: dict[str, str] = {}

    async def connect(self) -> None:
        """Initialize store (no-op for in-memory)."""
        pass

    async def disconnect(self) -> None:
        """Close store (no-op for in-memory)."""
        pass

    def _size_with(self, key: str, value: str) -> int:
        total = len(key.encode()) + len(value.encode())
        for existing_key, existing_value in self._values.items():
            if existing_key != key:
                total += len(existing_key.encode()) + len(existing_value.encode())
        return total

    async def get(self, key: str) -> str | None:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        if self._quota_bytes is not None and self._size_with(key, value) > self._quota_bytes:
            raise StorageFullError(f"Quota of {self._quota_bytes} bytes exceeded writing {key!r}")
        self._values[key] = value

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)

    @property
    def backend_type(self) -> str:
        return "memory"

    @property
    def used_bytes(self) -> int:
        return sum(len(k.encode()) + len(v.encode()) for k, v in self._values.items())
