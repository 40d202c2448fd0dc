"""
Chat turn models.

Request/response shapes exchanged with the LLM backend and returned by a save.
"""

from typing import Optional

from pydantic import BaseModel, Field

from chatsync.models.chat_session import ChatSession
from chatsync.models.enums import SyncOutcome


class ChatReply(BaseModel):
    """Answer from the LLM backend."""

    answer: str = Field(..., description="Bot answer text")
    conversation_id: Optional[str] = Field(None, description="Backend conversation id for multi-turn context")


class SaveResult(BaseModel):
    """What the UI sees after a save: the committed session and the remote outcome."""

    session: ChatSession
    outcome: SyncOutcome
