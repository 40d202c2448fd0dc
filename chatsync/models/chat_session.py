"""
Chat session and message models.

ChatSession / ChatMessage are the on-device shape (camelCase JSON, epoch
millisecond timestamps). SessionRecord / MessageRecord are the hosted store's
wire shape (snake_case JSON, ISO-8601 datetimes).
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chatsync.models.enums import ChangeEventType, MessageRole

SESSIONS_TABLE = "chat_sessions"
MESSAGES_TABLE = "chat_messages"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def ms_to_datetime(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=value)


def datetime_to_ms(value: datetime) -> int:
    """Convert a datetime to epoch milliseconds (naive values are UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // timedelta(milliseconds=1)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessage(_CamelModel):
    """One turn in a session."""

    role: MessageRole
    content: str = ""
    timestamp: int = Field(..., description="Epoch milliseconds")
    is_favorite: bool = False

    @property
    def dedup_key(self) -> tuple[int, str, str]:
        """Composite identity used to filter duplicated messages."""
        return (self.timestamp, self.role.value, self.content)


class ChatSession(_CamelModel):
    """One chat thread with its embedded messages."""

    id: str = Field(..., max_length=100)
    title: str = Field(..., max_length=200)
    messages: list[ChatMessage] = Field(default_factory=list)
    conversation_id: Optional[str] = None
    created_at: int
    updated_at: int
    is_pinned: bool = False
    is_manually_renamed: bool = False

    def to_storage(self) -> dict[str, Any]:
        """Serialize to the on-device JSON shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SessionRecord(BaseModel):
    """Hosted session row (metadata only)."""

    id: str
    user_id: str
    title: str
    conversation_id: Optional[str] = None
    is_pinned: bool = False
    is_manually_renamed: bool = False
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_session(cls, session: ChatSession, user_id: str) -> "SessionRecord":
        return cls(
            id=session.id,
            user_id=user_id,
            title=session.title,
            conversation_id=session.conversation_id,
            is_pinned=session.is_pinned,
            is_manually_renamed=session.is_manually_renamed,
            created_at=ms_to_datetime(session.created_at),
            updated_at=ms_to_datetime(session.updated_at),
        )

    def to_session(self, messages: Optional[list[ChatMessage]] = None) -> ChatSession:
        return ChatSession(
            id=self.id,
            title=self.title,
            messages=list(messages or []),
            conversation_id=self.conversation_id,
            created_at=datetime_to_ms(self.created_at),
            updated_at=datetime_to_ms(self.updated_at),
            is_pinned=self.is_pinned,
            is_manually_renamed=self.is_manually_renamed,
        )


class MessageRecord(BaseModel):
    """Hosted message row."""

    id: Optional[str] = None
    session_id: str
    user_id: str
    role: MessageRole
    content: str = ""
    timestamp: int
    is_favorite: bool = False

    @classmethod
    def from_message(cls, message: ChatMessage, session_id: str, user_id: str) -> "MessageRecord":
        return cls(
            session_id=session_id,
            user_id=user_id,
            role=message.role,
            content=message.content,
            timestamp=message.timestamp,
            is_favorite=message.is_favorite,
        )

    def to_message(self) -> ChatMessage:
        return ChatMessage(
            role=self.role,
            content=self.content,
            timestamp=self.timestamp,
            is_favorite=self.is_favorite,
        )


class RealtimeChange(BaseModel):
    """Change-feed payload: {eventType, table, new, old}."""

    model_config = ConfigDict(populate_by_name=True)

    event_type: ChangeEventType = Field(..., alias="eventType")
    table: str
    new: Optional[dict[str, Any]] = None
    old: Optional[dict[str, Any]] = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
