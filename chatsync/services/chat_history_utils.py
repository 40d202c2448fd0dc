"""
Pure helpers for chat history: session construction, auto-titling, ordering
and de-duplication.

Nothing here touches storage; the sync manager composes these.
"""

from __future__ import annotations

import time
from typing import Iterable, Optional
from uuid import uuid4

from chatsync.core.exceptions import NotFoundError
from chatsync.models.chat_session import ChatMessage, ChatSession
from chatsync.models.enums import MessageRole

DEFAULT_TITLE = "New Chat"
DEFAULT_TITLE_MAX_LENGTH = 30


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_session(title: str = DEFAULT_TITLE, now: Optional[int] = None) -> ChatSession:
    """
    Create an empty session.

    The id is a client-generated UUID so that a session keeps the same identity
    on every device from its first save on.
    """
    timestamp = now if now is not None else now_ms()
    return ChatSession(
        id=str(uuid4()),
        title=title,
        messages=[],
        created_at=timestamp,
        updated_at=timestamp,
    )


def derive_title(content: str, max_length: int = DEFAULT_TITLE_MAX_LENGTH) -> str:
    """Title from a message: first max_length characters, '...' when cut."""
    text = content.strip()
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text


def append_message(
    session: ChatSession,
    message: ChatMessage,
    default_title: str = DEFAULT_TITLE,
    title_max_length: int = DEFAULT_TITLE_MAX_LENGTH,
) -> ChatSession:
    """
    Return a copy of the session with the message appended.

    updated_at is bumped. A session still carrying the default title takes its
    title from the first user message, unless it was renamed by hand.
    """
    update = {
        "messages": [*session.messages, message],
        "updated_at": max(now_ms(), session.updated_at),
    }
    if (
        message.role == MessageRole.USER
        and not session.is_manually_renamed
        and session.title == default_title
    ):
        title = derive_title(message.content, title_max_length)
        if title:
            update["title"] = title
    return session.model_copy(update=update)


def dedupe_messages(messages: Iterable[ChatMessage]) -> list[ChatMessage]:
    """Drop repeated (timestamp, role, content) messages, keeping first-seen order."""
    seen: set[tuple[int, str, str]] = set()
    result = []
    for message in messages:
        key = message.dedup_key
        if key in seen:
            continue
        seen.add(key)
        result.append(message)
    return result


def sort_sessions(sessions: Iterable[ChatSession]) -> list[ChatSession]:
    """Pinned sessions first, then most recently updated."""
    return sorted(sessions, key=lambda s: (not s.is_pinned, -s.updated_at))


def visible_sessions(sessions: Iterable[ChatSession]) -> list[ChatSession]:
    """Sorted sessions that have at least one message."""
    return sort_sessions(s for s in sessions if s.messages)


def normalize_title(title: str) -> str:
    return " ".join(title.split()).casefold()


def dedupe_sessions(
    sessions: Iterable[ChatSession],
    window_ms: Optional[int] = None,
    default_title: str = DEFAULT_TITLE,
    keep_ids: Iterable[str] = (),
) -> list[ChatSession]:
    """
    Collapse duplicated sessions, keeping the most recently updated copy.

    Two passes:
    1. same id -> one copy.
    2. same normalized title and created_at within window_ms -> one copy.
       Sessions still titled default_title are never matched this way, and
       the pass is skipped when window_ms is None or not positive.

    The second pass is a heuristic for conversations that were started
    independently on two devices before either synced. Sessions in keep_ids
    take no part in it: they are neither dropped nor matched against.
    """
    by_id: dict[str, ChatSession] = {}
    for session in sessions:
        current = by_id.get(session.id)
        if current is None or session.updated_at > current.updated_at:
            by_id[session.id] = session

    ordered = sorted(by_id.values(), key=lambda s: s.updated_at, reverse=True)
    if not window_ms or window_ms <= 0:
        return ordered

    keep = set(keep_ids)
    skip_title = normalize_title(default_title)
    kept: list[ChatSession] = []
    for session in ordered:
        key = normalize_title(session.title)
        if session.id not in keep and key and key != skip_title and any(
            other.id not in keep
            and normalize_title(other.title) == key
            and abs(other.created_at - session.created_at) <= window_ms
            for other in kept
        ):
            continue
        kept.append(session)
    return kept


def favorite_messages(session: ChatSession) -> list[ChatMessage]:
    return [m for m in session.messages if m.is_favorite]


def toggle_message_favorite(
    session: ChatSession,
    timestamp: int,
    role: Optional[MessageRole] = None,
) -> ChatSession:
    """
    Flip is_favorite on the message identified by timestamp (and role).

    Raises:
        NotFoundError: If no message matches
    """
    messages = list(session.messages)
    for index, message in enumerate(messages):
        if message.timestamp == timestamp and (role is None or message.role == role):
            messages[index] = message.model_copy(update={"is_favorite": not message.is_favorite})
            return session.model_copy(
                update={"messages": messages, "updated_at": max(now_ms(), session.updated_at)}
            )
    raise NotFoundError(f"Message {timestamp} not found in session {session.id}")


def find_duplicate_sessions(
    sessions: Iterable[ChatSession],
) -> list[tuple[ChatSession, list[ChatSession]]]:
    """
    Group sessions by normalized title.

    Returns:
        (kept, duplicates) for every group with more than one session; the
        kept session is the most recently updated one.
    """
    groups: dict[str, list[ChatSession]] = {}
    for session in sessions:
        groups.setdefault(normalize_title(session.title) or "untitled", []).append(session)

    result = []
    for group in groups.values():
        if len(group) < 2:
            continue
        ordered = sorted(group, key=lambda s: (s.updated_at, s.created_at), reverse=True)
        result.append((ordered[0], ordered[1:]))
    return result
