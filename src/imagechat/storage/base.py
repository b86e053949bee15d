"""Abstract base class for durable key-value stores.

This module defines the interface for the session's durable storage.
The abstraction hides:
- Storage format and location (memory, SQLite file)
- Capacity limits
- Connection management
"""

from abc import ABC, abstractmethod


class StorageError(Exception):
    """A read or write against the durable store failed."""


class StorageFullError(StorageError):
    """The write would exceed the store's capacity."""


class KeyValueStore(ABC):
    """Abstract namespaced key-value store holding text values."""

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the store."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the store gracefully."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent.

        Raises:
            StorageError: If the store cannot be read
        """

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one.

        Raises:
            StorageFullError: If the value does not fit
            StorageError: If the write fails for any other reason
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key; removing a missing key is not an error."""

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""
