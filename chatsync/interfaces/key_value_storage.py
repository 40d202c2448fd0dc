"""
Key-value storage interface.

Mirrors the browser localStorage contract: string keys, string values,
synchronous access.
"""

from abc import ABC, abstractmethod
from typing import Optional


class IKeyValueStorage(ABC):
    """Abstract interface for on-device key-value storage."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """
        Read a value.

        Args:
            key: Storage key

        Returns:
            Stored string, or None if the key is absent
        """
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Write a value, replacing any previous one.

        Raises:
            InfrastructureError: If the value could not be persisted
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove a key. No-op if absent."""
        pass
