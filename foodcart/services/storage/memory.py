"""
In-Memory Key-Value Store

Used in development mode and in tests. Values live for the lifetime of the
process only.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
from typing import Optional

from foodcart.services.storage.base import BaseKeyValueStore

logger = logging.getLogger(__name__)


class MemoryKeyValueStore(BaseKeyValueStore):
    """
    Dict-backed store.

    Example:
        >>> store = MemoryKeyValueStore({"themeMode": "dark"})
        >>> await store.get_item("themeMode")
        'dark'
    """

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})
        logger.debug(f"MemoryKeyValueStore initialized ({len(self._data)} keys)")

    @property
    def backend_name(self) -> str:
        return "memory"

    async def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        """Copy of the current contents."""
        return dict(self._data)
