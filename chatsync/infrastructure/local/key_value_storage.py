"""
On-device key-value storage implementations.
"""

import os
import re
from pathlib import Path
from typing import Optional

from chatsync.core.exceptions import InfrastructureError
from chatsync.interfaces.key_value_storage import IKeyValueStorage

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


class FileKeyValueStorage(IKeyValueStorage):
    """
    File system key-value storage.

    Each key is stored as one UTF-8 file under the base directory. Writes go
    through a temporary file and an atomic replace, so a crash never leaves a
    half-written value behind.
    """

    def __init__(self, base_path: Optional[str] = None):
        """
        Initialize file storage.

        Args:
            base_path: Directory holding one file per key (default: ./local_store)
        """
        self.base_path = Path(base_path or "./local_store")
        self.base_path.mkdir(parents=True, exist_ok=True)

    def get_item(self, key: str) -> Optional[str]:
        """Read a value; unreadable files count as absent."""
        file_path = self._resolve_path(key)
        if not file_path.exists():
            return None
        try:
            return file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None

    def set_item(self, key: str, value: str) -> None:
        """Write a value atomically."""
        file_path = self._resolve_path(key)
        tmp_path = file_path.with_name(file_path.name + ".tmp")
        try:
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, file_path)
        except OSError as e:
            raise InfrastructureError(f"Failed to write key {key}: {e}")

    def remove_item(self, key: str) -> None:
        """Remove a key if present."""
        file_path = self._resolve_path(key)
        try:
            file_path.unlink(missing_ok=True)
        except OSError as e:
            raise InfrastructureError(f"Failed to remove key {key}: {e}")

    def _resolve_path(self, key: str) -> Path:
        """Map a key to its file, rejecting anything path-like."""
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.base_path / f"{key}.json"


class InMemoryKeyValueStorage(IKeyValueStorage):
    """In-memory key-value storage.

    Nothing survives the process. Suitable for guest sessions in tests and for
    environments without a writable disk.
    """

    def __init__(self):
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)
