"""
Remote session store interface.

Defines the contract for the hosted, per-user session and message store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from chatsync.models.chat_session import ChatMessage, ChatSession


class IRemoteSessionStore(ABC):
    """Abstract interface for hosted chat history persistence."""

    @abstractmethod
    async def list_sessions(self, user_id: Optional[str]) -> list[ChatSession]:
        """
        List session metadata for a user (messages are not included).

        Args:
            user_id: Owner user ID

        Returns:
            Sessions ordered by updated_at descending

        Raises:
            UnauthorizedError: If no identity is given
            StoreError: On backend failure
        """
        pass

    @abstractmethod
    async def get_session(self, session_id: str, user_id: Optional[str]) -> Optional[ChatSession]:
        """
        Get one session's metadata.

        Returns:
            Session without messages, or None if it does not exist

        Raises:
            UnauthorizedError: If no identity is given
            ForbiddenError: If the session belongs to another user
        """
        pass

    @abstractmethod
    async def get_messages(self, session_id: str) -> list[ChatMessage]:
        """
        List a session's messages in timestamp order.

        The caller must already be scoped to the session's owner.

        Returns:
            Messages, empty if none
        """
        pass

    @abstractmethod
    async def upsert_session(self, session: ChatSession, user_id: Optional[str]) -> None:
        """
        Create or overwrite a session's metadata.

        Raises:
            UnauthorizedError: If no identity is given
            ForbiddenError: If the id belongs to another user
            StoreError: If the backend rejects the write
        """
        pass

    @abstractmethod
    async def append_message(
        self,
        message: ChatMessage,
        session_id: str,
        user_id: Optional[str],
    ) -> None:
        """
        Insert a single message.

        Raises:
            UnauthorizedError: If no identity is given
            NotFoundError: If the session does not exist
            ForbiddenError: If the session belongs to another user
        """
        pass

    @abstractmethod
    async def delete_session(self, session_id: str, user_id: Optional[str]) -> None:
        """
        Delete a session and its messages.

        Raises:
            NotFoundError: If the session does not exist
            ForbiddenError: If the session belongs to another user
        """
        pass

    @abstractmethod
    async def delete_messages(self, session_id: str, user_id: Optional[str]) -> None:
        """
        Delete every message of a session.

        Raises:
            NotFoundError: If the session does not exist
            ForbiddenError: If the session belongs to another user
        """
        pass
