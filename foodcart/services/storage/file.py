"""
File-Backed Key-Value Store with Concurrency Control

Keeps every key in a single JSON document on disk. Reads and writes go
through a FileLock so that two processes sharing the file never interleave
a read-modify-write, and the blocking file work runs in a worker thread so
the event loop stays responsive.

Author: Khalil_Bannouri
Version: 1.0.0
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout

from foodcart.services.storage.base import BaseKeyValueStore, StorageError

logger = logging.getLogger(__name__)


class FileKeyValueStore(BaseKeyValueStore):
    """
    JSON file store guarded by a lock file.

    Attributes:
        path: Location of the JSON document
        lock_timeout: Seconds to wait for the lock before giving up

    Example:
        >>> store = FileKeyValueStore("data/storage.json")
        >>> await store.set_item("accessToken", "eyJ...")
    """

    def __init__(self, path: str, lock_timeout: int = 10):
        self.path = Path(path)
        self.lock_timeout = lock_timeout
        self._lock = FileLock(f"{self.path}.lock", timeout=lock_timeout)

        logger.info(f"FileKeyValueStore initialized ({self.path})")

    @property
    def backend_name(self) -> str:
        return "file"

    def _ensure_data_dir(self) -> None:
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.path.parent}")

    def _read_all(self) -> dict[str, str]:
        """Load the document. A missing or corrupt file reads as empty."""
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Error reading {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring non-object storage file {self.path}")
            return {}
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)

    def _locked(self, operation, *args):
        self._ensure_data_dir()
        try:
            with self._lock:
                return operation(*args)
        except Timeout as e:
            logger.error(f"Lock timeout on {self.path}")
            raise StorageError(f"Lock timeout ({self.lock_timeout}s)") from e
        except OSError as e:
            raise StorageError(str(e)) from e

    def _get_sync(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def _set_sync(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _remove_sync(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)

    async def get_item(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._locked, self._get_sync, key)

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._locked, self._set_sync, key, value)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self._locked, self._remove_sync, key)
