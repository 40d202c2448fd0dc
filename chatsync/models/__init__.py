"""Pydantic models (schemas) for the application."""

from chatsync.models.enums import (
    ChangeEventType,
    ChangeKind,
    MessageRole,
    SubscriptionStatus,
    SyncOutcome,
    SyncStatus,
)
from chatsync.models.chat_session import (
    ChatMessage,
    ChatSession,
    MessageRecord,
    RealtimeChange,
    SessionRecord,
)
from chatsync.models.chat import ChatReply, SaveResult

__all__ = [
    # Enums
    "MessageRole",
    "ChangeEventType",
    "ChangeKind",
    "SyncStatus",
    "SyncOutcome",
    "SubscriptionStatus",
    # Sessions
    "ChatMessage",
    "ChatSession",
    "SessionRecord",
    "MessageRecord",
    "RealtimeChange",
    # Chat
    "ChatReply",
    "SaveResult",
]
