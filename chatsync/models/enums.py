"""
Enum definitions for the application.

These enums are shared by the models, the stores and the sync services.
"""

from enum import Enum


class MessageRole(str, Enum):
    """Author of a chat message."""

    USER = "user"
    BOT = "bot"


class ChangeEventType(str, Enum):
    """Row-level change delivered by the change feed."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeKind(str, Enum):
    """Kind of local history change announced on the event bus."""

    SESSION_SAVED = "session_saved"
    SESSION_DELETED = "session_deleted"
    SESSION_RENAMED = "session_renamed"
    SESSION_PIN_TOGGLED = "session_pin_toggled"
    SESSIONS_RELOADED = "sessions_reloaded"
    SYNC_STATUS = "sync_status"


class SyncStatus(str, Enum):
    """Connection state of the background sync, as shown to the user."""

    SYNCING = "syncing"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class SyncOutcome(str, Enum):
    """
    Result of one save request.

    SYNCED = written locally and confirmed by the remote store
    LOCAL_ONLY = written locally only (guest user or session without messages)
    DEFERRED = written locally, remote push coalesced into a later flush
    PENDING = written locally, remote push failed and was queued for retry
    SKIPPED = written locally, remote push refused (no identity / not owner)
    """

    SYNCED = "synced"
    LOCAL_ONLY = "local_only"
    DEFERRED = "deferred"
    PENDING = "pending"
    SKIPPED = "skipped"


class SubscriptionStatus(str, Enum):
    """Realtime subscription state."""

    SUBSCRIBED = "SUBSCRIBED"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"
    CHANNEL_ERROR = "CHANNEL_ERROR"
