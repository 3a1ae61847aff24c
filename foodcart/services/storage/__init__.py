"""
Storage Factory

Returns the configured key-value store:
    - STORAGE_BACKEND=memory → MemoryKeyValueStore
    - STORAGE_BACKEND=file → FileKeyValueStore at STORAGE_PATH

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
from functools import lru_cache

from foodcart.core.config import StorageBackend, get_settings
from foodcart.services.storage.base import (
    ACCESS_TOKEN_KEY,
    CART_KEY,
    REFRESH_TOKEN_KEY,
    THEME_MODE_KEY,
    BaseKeyValueStore,
    StorageError,
)
from foodcart.services.storage.file import FileKeyValueStore
from foodcart.services.storage.memory import MemoryKeyValueStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_storage() -> BaseKeyValueStore:
    """Get the configured storage instance (cached)."""
    settings = get_settings()

    if settings.storage_backend == StorageBackend.FILE:
        logger.info(f"Storage: Using FileKeyValueStore ({settings.storage_path})")
        return FileKeyValueStore(
            settings.storage_path,
            lock_timeout=settings.storage_lock_timeout,
        )

    logger.info("Storage: Using MemoryKeyValueStore")
    return MemoryKeyValueStore()


def reset_storage() -> None:
    """Clear the cached storage instance."""
    get_storage.cache_clear()
    logger.debug("Storage cache cleared")


__all__ = [
    "get_storage",
    "reset_storage",
    "BaseKeyValueStore",
    "StorageError",
    "MemoryKeyValueStore",
    "FileKeyValueStore",
    "ACCESS_TOKEN_KEY",
    "REFRESH_TOKEN_KEY",
    "CART_KEY",
    "THEME_MODE_KEY",
]
