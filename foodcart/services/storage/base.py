"""
Key-Value Store Abstract Base Class

Defines the interface contract for durable device storage.
The core only needs get/set/remove of string-keyed string blobs.

Design Pattern: Strategy Pattern
    - MemoryKeyValueStore for development and tests
    - FileKeyValueStore for a JSON file on disk

Author: Khalil_Bannouri
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from typing import Optional


# Persisted keys
ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
CART_KEY = "cart"
THEME_MODE_KEY = "themeMode"


class StorageError(Exception):
    """Raised when the backing store cannot be read or written."""


class BaseKeyValueStore(ABC):
    """
    Abstract base class for key-value stores.

    All implementations are async so that disk or platform storage can be
    awaited without blocking the event loop.

    Example:
        >>> store = get_storage()
        >>> await store.set_item("cart", cart_json)
        >>> raw = await store.get_item("cart")
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the name of the storage backend."""
        pass

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        """
        Read a value.

        Returns:
            The stored string, or None if the key is absent
        """
        pass

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Write a value, replacing any previous one."""
        pass

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Delete a key. Removing an absent key is not an error."""
        pass

    async def multi_remove(self, keys: list[str]) -> None:
        for key in keys:
            await self.remove_item(key)
