"""
Sync manager: reconciliation policy between the local and the remote store.

Saves are optimistic. The session is committed to the local store first and
returned to the caller, then pushed to the remote store in the background
with a fixed-delay retry. A push that keeps failing puts the session id on
the pending-sync list (the outbox), which retry_pending() drains later.

Rename, pin and delete are foreground actions: the remote store is updated
first and the local copy only changes after it succeeded.

Two kinds of lock: the commit lock guards every local store mutation and is
never held across a remote push; a per-session push lock keeps the pushes of
one session in save order.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from chatsync.core.config import get_settings
from chatsync.core.exceptions import (
    ChatSyncError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from chatsync.core.logger import logger
from chatsync.interfaces.local_session_store import ILocalSessionStore
from chatsync.interfaces.remote_session_store import IRemoteSessionStore
from chatsync.models.chat import SaveResult
from chatsync.models.chat_session import ChatSession
from chatsync.models.enums import ChangeKind, MessageRole, SyncOutcome, SyncStatus
from chatsync.services.chat_history_utils import (
    dedupe_messages,
    dedupe_sessions,
    new_session,
    now_ms,
    toggle_message_favorite,
    visible_sessions,
)
from chatsync.services.event_bus import EventBus


class SyncManager:
    """Single owner of "what the user currently sees"."""

    def __init__(
        self,
        local_store: ILocalSessionStore,
        remote_store: Optional[IRemoteSessionStore] = None,
        event_bus: Optional[EventBus] = None,
        user_id: Optional[str] = None,
        debounce_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay_seconds: Optional[float] = None,
        dedup_window_seconds: Optional[int] = None,
        default_title: Optional[str] = None,
        title_max_length: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep=asyncio.sleep,
    ):
        settings = get_settings()
        self._local = local_store
        self._remote = remote_store
        self._bus = event_bus or EventBus()
        self.user_id = user_id

        self.debounce_seconds = (
            settings.SYNC_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self.max_retries = settings.SYNC_MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay_seconds = (
            settings.SYNC_RETRY_DELAY_SECONDS if retry_delay_seconds is None else retry_delay_seconds
        )
        if dedup_window_seconds is None:
            dedup_window_seconds = (
                settings.SESSION_DEDUP_WINDOW_SECONDS if settings.SESSION_DEDUP_ENABLED else 0
            )
        self.dedup_window_ms = int(dedup_window_seconds * 1000)
        self.default_title = default_title or settings.DEFAULT_SESSION_TITLE
        self.title_max_length = title_max_length or settings.TITLE_MAX_LENGTH

        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._push_locks: dict[str, asyncio.Lock] = {}
        self._last_push: dict[str, float] = {}
        self._deferred: dict[str, ChatSession] = {}
        self._flush_tasks: dict[str, asyncio.Task] = {}

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id) and self._remote is not None

    def set_user(self, user_id: Optional[str]) -> None:
        """Switch identity (None = guest)."""
        self.user_id = user_id
        self._last_push.clear()

    def has_deferred(self, session_id: str) -> bool:
        return session_id in self._deferred

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, title: Optional[str] = None) -> ChatSession:
        """New empty session. Nothing is stored until it has a message."""
        return new_session(title or self.default_title)

    def list_sessions(self) -> list[ChatSession]:
        """Visible sessions from the local store only."""
        return self._display(self._normalize(self._local.get_all()))

    async def save_session(self, session: ChatSession) -> SaveResult:
        """
        Commit a session locally and push it to the remote store.

        The local write always happens. A save arriving within the debounce
        window of the previous push for the same session is not pushed
        immediately: its snapshot replaces any earlier one and is flushed
        when the window ends.

        Other saves are not held up while this session's push is retried.
        """
        async with self._lock:
            committed = session.model_copy(
                update={
                    "messages": dedupe_messages(session.messages),
                    "updated_at": max(now_ms(), session.updated_at),
                }
            )
            self._local.save(committed)
            self._bus.publish(ChangeKind.SESSION_SAVED, committed, session_id=committed.id)

            if not self.is_authenticated or not committed.messages:
                return SaveResult(session=committed, outcome=SyncOutcome.LOCAL_ONLY)

            user_id = self.user_id
            last = self._last_push.get(committed.id)
            now = self._clock()
            if last is not None and self.debounce_seconds > 0 and now - last < self.debounce_seconds:
                self._deferred[committed.id] = committed
                self._schedule_flush(committed.id, last + self.debounce_seconds - now)
                logger.debug(f"Deferred remote push for session {committed.id}")
                return SaveResult(session=committed, outcome=SyncOutcome.DEFERRED)

            self._cancel_flush(committed.id)
            self._deferred.pop(committed.id, None)
            self._last_push[committed.id] = now

        async with self._push_lock(committed.id):
            outcome = await self._push_with_retry(committed, user_id)
        return SaveResult(session=committed, outcome=outcome)

    async def load_all_sessions(self) -> list[ChatSession]:
        """
        Load the session list, remote first.

        On success the merged result replaces the local store. Per session id
        the remote copy wins unless the local one is newer. Local sessions
        that are still waiting for a push, or were saved while the load was
        running, are kept even when the remote store does not have them. On
        any failure the local contents are returned. Never raises for remote
        problems.
        """
        if not self.is_authenticated:
            return self.list_sessions()

        user_id = self.user_id
        started = now_ms()
        self._publish_status(SyncStatus.SYNCING)
        try:
            remote_sessions = []
            for meta in await self._remote.list_sessions(user_id):
                messages = await self._remote.get_messages(meta.id)
                remote_sessions.append(meta.model_copy(update={"messages": messages}))
        except (ChatSyncError, PydanticValidationError) as e:
            logger.warning(f"Remote load failed, using local sessions: {e}")
            self._publish_status(SyncStatus.DISCONNECTED)
            return self.list_sessions()

        async with self._lock:
            by_id = {s.id: s for s in remote_sessions}
            unsynced = self._unsynced_ids()
            for local_copy in self._local.get_all():
                remote_copy = by_id.get(local_copy.id)
                recent = local_copy.id in unsynced or local_copy.updated_at >= started
                if remote_copy is None:
                    keep_local = recent
                elif recent:
                    keep_local = local_copy.updated_at >= remote_copy.updated_at
                else:
                    keep_local = local_copy.updated_at > remote_copy.updated_at
                if keep_local:
                    by_id[local_copy.id] = local_copy

            merged = self._normalize(by_id.values())
            self._local.replace_all(merged)
            visible = self._display(merged)

        logger.info(f"Loaded {len(merged)} sessions from remote store")
        self._bus.publish(ChangeKind.SESSIONS_RELOADED, len(merged))
        self._publish_status(SyncStatus.CONNECTED)
        return visible

    async def rename_session(self, session_id: str, new_title: str) -> ChatSession:
        """
        Rename a session and freeze auto-titling.

        Raises:
            ValidationError: If the title is blank or too long
            NotFoundError: If the session is unknown locally or remotely
            ForbiddenError / UnauthorizedError / StoreError: From the remote store
        """
        title = (new_title or "").strip()
        if not title:
            raise ValidationError("Title must not be empty")
        if len(title) > 200:
            raise ValidationError("Title must be at most 200 characters")

        async with self._lock:
            current = self._require_local(session_id)
            remote_copy = current.model_copy(
                update={
                    "title": title,
                    "is_manually_renamed": True,
                    "updated_at": max(now_ms(), current.updated_at),
                }
            )
            await self._push_metadata(remote_copy)
            renamed = self._local.rename(session_id, title) or remote_copy

        self._bus.publish(ChangeKind.SESSION_RENAMED, renamed, session_id=session_id)
        return renamed

    async def toggle_pin(self, session_id: str) -> ChatSession:
        """
        Flip is_pinned.

        Raises:
            NotFoundError: If the session is unknown locally or remotely
            ForbiddenError / UnauthorizedError / StoreError: From the remote store
        """
        async with self._lock:
            current = self._require_local(session_id)
            remote_copy = current.model_copy(
                update={
                    "is_pinned": not current.is_pinned,
                    "updated_at": max(now_ms(), current.updated_at),
                }
            )
            await self._push_metadata(remote_copy)
            toggled = self._local.toggle_pin(session_id) or remote_copy

        self._bus.publish(ChangeKind.SESSION_PIN_TOGGLED, toggled, session_id=session_id)
        return toggled

    async def delete_session(self, session_id: str) -> None:
        """
        Delete a session, remote first.

        A session that never reached the remote store (pending, or still
        empty) is deleted locally even when the remote store does not know it.

        Raises:
            NotFoundError: Already gone from the remote store
            ForbiddenError: Owned by another user
        """
        async with self._lock:
            local_copy = self._local.get(session_id)
            if self.is_authenticated:
                try:
                    await self._remote.delete_session(session_id, self.user_id)
                except NotFoundError:
                    never_pushed = session_id in self._local.get_pending() or (
                        local_copy is not None and not local_copy.messages
                    )
                    if not never_pushed:
                        raise
                    logger.info(f"Session {session_id} was never synced, deleting locally")
            elif local_copy is None:
                raise NotFoundError(f"Chat session {session_id} not found")

            self._forget(session_id)
            self._local.delete(session_id)
            self._local.remove_pending(session_id)

        self._bus.publish(ChangeKind.SESSION_DELETED, session_id, session_id=session_id)

    async def toggle_favorite(
        self,
        session_id: str,
        timestamp: int,
        role: Optional[MessageRole] = None,
    ) -> SaveResult:
        """Flip is_favorite on one message and save the session."""
        current = self._local.get(session_id)
        if current is None:
            raise NotFoundError(f"Chat session {session_id} not found")
        return await self.save_session(toggle_message_favorite(current, timestamp, role))

    # ------------------------------------------------------------------
    # Outbox and migration
    # ------------------------------------------------------------------

    async def retry_pending(self) -> dict[str, SyncOutcome]:
        """One push attempt per pending session; failures stay pending."""
        if not self.is_authenticated:
            return {}

        results: dict[str, SyncOutcome] = {}
        for session_id in self._local.get_pending():
            async with self._lock:
                session = self._local.get(session_id)
                if session is None or not session.messages:
                    self._local.remove_pending(session_id)
                    continue
            async with self._push_lock(session_id):
                results[session_id] = await self._push_with_retry(
                    session, self.user_id, attempts=1
                )
        if results:
            logger.info(f"Pending sync pass: {results}")
        return results

    async def migrate_local_sessions(self, user_id: Optional[str] = None) -> int:
        """
        Push every non-empty local session to the remote store after sign-in.

        Returns:
            Number of sessions confirmed by the remote store

        Raises:
            UnauthorizedError: If there is no identity to migrate to
        """
        target = user_id or self.user_id
        if not target or self._remote is None:
            raise UnauthorizedError("Sign in before migrating local sessions")

        migrated = 0
        for session in self._local.get_all():
            if not session.messages:
                continue
            async with self._push_lock(session.id):
                outcome = await self._push_with_retry(session, target)
            if outcome == SyncOutcome.SYNCED:
                migrated += 1
        logger.info(f"Migrated {migrated} local sessions for user {target}")
        return migrated

    async def flush(self) -> dict[str, SyncOutcome]:
        """Push every deferred snapshot now."""
        results: dict[str, SyncOutcome] = {}
        for session_id in list(self._deferred):
            self._cancel_flush(session_id)
            outcome = await self._flush_one(session_id)
            if outcome is not None:
                results[session_id] = outcome
        return results

    async def close(self) -> None:
        """Flush deferred pushes and stop timers."""
        if self.is_authenticated:
            await self.flush()
        for session_id in list(self._flush_tasks):
            self._cancel_flush(session_id)

    # ------------------------------------------------------------------
    # Realtime updates
    # ------------------------------------------------------------------

    async def apply_remote_session(self, session: ChatSession) -> bool:
        """
        Merge a session pushed from another device into the local store.

        The push is ignored when the local copy is newer, has unsynced edits,
        or has the same timestamp and more messages.

        Returns:
            True if the local store was updated
        """
        incoming = session.model_copy(update={"messages": dedupe_messages(session.messages)})
        async with self._lock:
            current = self._local.get(incoming.id)
            if current is not None:
                if incoming.id in self._deferred or incoming.id in self._local.get_pending():
                    return False
                if current.updated_at > incoming.updated_at:
                    return False
                if (
                    current.updated_at == incoming.updated_at
                    and len(incoming.messages) < len(current.messages)
                ):
                    return False
                if current == incoming:
                    return False
            self._local.save(incoming)

        self._bus.publish(ChangeKind.SESSION_SAVED, incoming, session_id=incoming.id)
        return True

    async def apply_remote_delete(self, session_id: str) -> bool:
        """Remove a session deleted on another device. Returns False if unknown."""
        async with self._lock:
            if self._local.get(session_id) is None:
                return False
            self._forget(session_id)
            self._local.delete(session_id)
            self._local.remove_pending(session_id)

        self._bus.publish(ChangeKind.SESSION_DELETED, session_id, session_id=session_id)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _normalize(self, sessions) -> list[ChatSession]:
        """Message and id level dedup; this is what gets persisted."""
        cleaned = [
            s.model_copy(update={"messages": dedupe_messages(s.messages)}) for s in sessions
        ]
        return dedupe_sessions(cleaned)

    def _display(self, sessions: list[ChatSession]) -> list[ChatSession]:
        """
        Visible sessions, with the title+time heuristic applied for display only.

        Guest sessions never came from another device, so the heuristic only
        runs when signed in, and never touches sessions still waiting for a push.
        """
        window = self.dedup_window_ms if self.is_authenticated else 0
        return visible_sessions(
            dedupe_sessions(sessions, window, self.default_title, keep_ids=self._unsynced_ids())
        )

    def _unsynced_ids(self) -> set[str]:
        return set(self._local.get_pending()) | set(self._deferred)

    def _push_lock(self, session_id: str) -> asyncio.Lock:
        return self._push_locks.setdefault(session_id, asyncio.Lock())

    def _require_local(self, session_id: str) -> ChatSession:
        session = self._local.get(session_id)
        if session is None:
            raise NotFoundError(f"Chat session {session_id} not found")
        return session

    def _publish_status(self, status: SyncStatus) -> None:
        self._bus.publish(ChangeKind.SYNC_STATUS, status)

    async def _push_metadata(self, session: ChatSession) -> None:
        """Foreground metadata write; errors propagate."""
        if not self.is_authenticated or not session.messages:
            return
        await self._remote.upsert_session(session, self.user_id)

    async def _push(self, session: ChatSession, user_id: str) -> None:
        """Write metadata, then replace the remote message list."""
        await self._remote.upsert_session(session, user_id)
        await self._remote.delete_messages(session.id, user_id)
        for message in dedupe_messages(session.messages):
            await self._remote.append_message(message, session.id, user_id)

    async def _push_with_retry(
        self,
        session: ChatSession,
        user_id: str,
        attempts: Optional[int] = None,
    ) -> SyncOutcome:
        total = attempts if attempts is not None else 1 + max(0, self.max_retries)
        self._last_push[session.id] = self._clock()
        self._publish_status(SyncStatus.SYNCING)

        for attempt in range(1, total + 1):
            try:
                await self._push(session, user_id)
            except (UnauthorizedError, ForbiddenError) as e:
                logger.warning(f"Remote push for session {session.id} refused: {e}")
                self._publish_status(SyncStatus.DISCONNECTED)
                return SyncOutcome.SKIPPED
            except ChatSyncError as e:
                logger.warning(
                    f"Remote push for session {session.id} failed (attempt {attempt}/{total}): {e}"
                )
                if attempt < total:
                    await self._sleep(self.retry_delay_seconds)
                continue
            except Exception:
                self._local.add_pending(session.id)
                self._publish_status(SyncStatus.DISCONNECTED)
                raise

            self._local.remove_pending(session.id)
            self._publish_status(SyncStatus.CONNECTED)
            return SyncOutcome.SYNCED

        self._local.add_pending(session.id)
        logger.warning(f"Session {session.id} queued for pending sync")
        self._publish_status(SyncStatus.DISCONNECTED)
        return SyncOutcome.PENDING

    def _schedule_flush(self, session_id: str, delay: float) -> None:
        if session_id in self._flush_tasks:
            return
        task = asyncio.create_task(self._flush_after(session_id, max(0.0, delay)))
        self._flush_tasks[session_id] = task

    def _cancel_flush(self, session_id: str) -> None:
        task = self._flush_tasks.pop(session_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    def _forget(self, session_id: str) -> None:
        self._cancel_flush(session_id)
        self._deferred.pop(session_id, None)
        self._last_push.pop(session_id, None)
        lock = self._push_locks.get(session_id)
        if lock is not None and not lock.locked():
            del self._push_locks[session_id]

    async def _flush_after(self, session_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        self._flush_tasks.pop(session_id, None)
        try:
            await self._flush_one(session_id)
        except Exception:
            # Nobody awaits this task; the session is already on the pending list.
            logger.exception(f"Deferred push for session {session_id} failed")

    async def _flush_one(self, session_id: str) -> Optional[SyncOutcome]:
        async with self._lock:
            snapshot = self._deferred.pop(session_id, None)
            if snapshot is None or not self.is_authenticated:
                return None
            latest = self._local.get(session_id)
            if latest is None:
                return None
            user_id = self.user_id

        async with self._push_lock(session_id):
            return await self._push_with_retry(latest, user_id)
