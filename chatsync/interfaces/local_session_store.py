"""
Local session store interface.

Defines the contract for the on-device session cache. Every operation is
synchronous and best-effort: reads never raise, failed writes are logged.
"""

from abc import ABC, abstractmethod
from typing import Optional

from chatsync.models.chat_session import ChatSession


class ILocalSessionStore(ABC):
    """Abstract interface for the on-device session cache."""

    @abstractmethod
    def get_all(self) -> list[ChatSession]:
        """
        Get every stored session.

        Returns:
            Sessions sorted pinned first, then by updated_at descending.
            Empty if storage is unavailable or corrupt.
        """
        pass

    @abstractmethod
    def get(self, session_id: str) -> Optional[ChatSession]:
        """Get one session by id."""
        pass

    @abstractmethod
    def save(self, session: ChatSession) -> None:
        """
        Upsert a session by id.

        Args:
            session: Session to store; fully overwrites any stored copy
        """
        pass

    @abstractmethod
    def replace_all(self, sessions: list[ChatSession]) -> None:
        """Overwrite the whole collection."""
        pass

    @abstractmethod
    def delete(self, session_id: str) -> None:
        """Remove a session. No-op if absent."""
        pass

    @abstractmethod
    def rename(self, session_id: str, new_title: str) -> Optional[ChatSession]:
        """
        Rename a session and freeze auto-titling.

        Returns:
            Updated session, or None if absent
        """
        pass

    @abstractmethod
    def toggle_pin(self, session_id: str) -> Optional[ChatSession]:
        """
        Flip a session's pinned flag.

        Returns:
            Updated session, or None if absent
        """
        pass

    @abstractmethod
    def get_pending(self) -> list[str]:
        """Get ids of sessions accepted locally but not yet confirmed remotely."""
        pass

    @abstractmethod
    def add_pending(self, session_id: str) -> None:
        """Record a session id in the pending-sync list."""
        pass

    @abstractmethod
    def remove_pending(self, session_id: str) -> None:
        """Drop a session id from the pending-sync list."""
        pass
