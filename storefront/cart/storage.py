"""
Durable storage for the cart record.

A backend is a small key/value store holding strings (the browser's
localStorage contract): get_item / set_item / remove_item. The cart lives
under a single key as a JSON array.
"""
import os
import re
from pathlib import Path
from typing import Dict, Optional, Protocol

# Storage record name
STORAGE_KEY = "urbanArtCart"

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class StorageError(Exception):
    """Raised when the backend cannot read or write (quota, disk, permissions)."""


class CartStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """In-process storage. Optional quota (in characters) mimics a full browser store."""

    def __init__(self, quota: Optional[int] = None) -> None:
        self._data: Dict[str, str] = {}
        self.quota = quota

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota is not None and len(value) > self.quota:
            raise StorageError("Storage quota exceeded")
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class FileStorage:
    """One file per key inside a directory. Writes go through a temp file + rename."""

    def __init__(self, directory: str | os.PathLike) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(str(e)) from e

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(str(e)) from e

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(str(e)) from e


__all__ = ["STORAGE_KEY", "StorageError", "CartStorage", "MemoryStorage", "FileStorage"]
