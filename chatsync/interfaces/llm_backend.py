"""
LLM backend interface.

The sync core only persists what the backend returns; it never interprets
the answer.
"""

from abc import ABC, abstractmethod
from typing import Optional

from chatsync.models.chat import ChatReply


class ILLMBackend(ABC):
    """Abstract interface for the conversational LLM backend."""

    @abstractmethod
    async def send(self, message: str, conversation_id: Optional[str] = None) -> ChatReply:
        """
        Send one user message.

        Args:
            message: User text
            conversation_id: Backend conversation to continue, if any

        Returns:
            Answer and the conversation id to use for the next turn

        Raises:
            LLMError: If the backend call fails
        """
        pass
