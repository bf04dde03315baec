"""
Popup State Storage Backends

Key-value backends holding the raw JSON documents of the state repository.
Any object with get/set/delete satisfies KeyValueStoreProtocol.
"""

import logging
import os
import re
import tempfile
from typing import Dict, Optional

from .protocols import KeyValueStoreProtocol, StorageError

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class InMemoryKeyValueStore:
    """Dict-backed store; lives as long as the process (session scope)"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore:
    """One JSON file per key under a directory (durable scope)"""

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{_SAFE_KEY.sub('_', key)}.json")

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return fh.read()
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}", key) from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path: Optional[str] = None
        try:
            os.makedirs(self.directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path is not None:
                self._discard(tmp_path)
            raise StorageError(f"Failed to write {path}: {e}", key) from e

    @staticmethod
    def _discard(tmp_path: str) -> None:
        try:
            os.remove(tmp_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove temporary file {tmp_path}: {e}")

    def delete(self, key: str) -> None:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}", key) from e


def create_store(backend: str, directory: str = ".popup_state") -> KeyValueStoreProtocol:
    """Build a durable store for the configured backend name"""
    if backend == "file":
        return JsonFileKeyValueStore(directory)
    if backend != "memory":
        logger.warning(f"Unknown storage backend {backend!r}, using memory")
    return InMemoryKeyValueStore()


__all__ = [
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "create_store",
]
