"""
Realtime bridge: applies changes made on other devices to the local store.

Session and message change notifications for the signed-in user are turned
into a full session fetch from the remote store and handed to the sync
manager. Deletes are forwarded by id. The bridge does not reconnect on its
own; a missed window is repaired by the next load_all_sessions().
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from chatsync.core.config import get_settings
from chatsync.core.exceptions import ChatSyncError
from chatsync.core.logger import logger
from chatsync.interfaces.change_feed import IChangeFeed
from chatsync.interfaces.remote_session_store import IRemoteSessionStore
from chatsync.models.chat_session import (
    MESSAGES_TABLE,
    SESSIONS_TABLE,
    RealtimeChange,
    SessionRecord,
)
from chatsync.models.enums import ChangeEventType, SubscriptionStatus
from chatsync.services.sync_manager import SyncManager


class RealtimeBridge:
    """Consumes one user's change feed."""

    def __init__(
        self,
        change_feed: IChangeFeed,
        remote_store: IRemoteSessionStore,
        sync_manager: SyncManager,
        subscribe_timeout: Optional[float] = None,
        on_status: Optional[Callable[[SubscriptionStatus], Any]] = None,
    ):
        settings = get_settings()
        self._feed = change_feed
        self._remote = remote_store
        self._sync = sync_manager
        self._timeout = (
            settings.REALTIME_SUBSCRIBE_TIMEOUT_SECONDS if subscribe_timeout is None else subscribe_timeout
        )
        self._on_status = on_status
        self._status = SubscriptionStatus.CLOSED
        self._user_id: Optional[str] = None
        self._queue: Optional[asyncio.Queue[str]] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def status(self) -> SubscriptionStatus:
        return self._status

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def _set_status(self, status: SubscriptionStatus) -> None:
        if status == self._status:
            return
        self._status = status
        logger.info(f"Realtime subscription status: {status.value}")
        if self._on_status is not None:
            try:
                self._on_status(status)
            except Exception:
                logger.exception("Realtime status callback failed")

    async def start(self, user_id: str) -> SubscriptionStatus:
        """Subscribe to the user's changes."""
        if self._task is not None:
            await self.stop()

        self._user_id = user_id
        try:
            queue = await asyncio.wait_for(self._feed.connect(user_id), timeout=self._timeout)
        except asyncio.TimeoutError:
            self._set_status(SubscriptionStatus.TIMED_OUT)
            return self._status
        except (ChatSyncError, OSError) as e:
            logger.warning(f"Realtime subscription failed: {e}")
            self._set_status(SubscriptionStatus.CHANNEL_ERROR)
            return self._status

        self._queue = queue
        self._task = asyncio.create_task(self._consume(queue))
        self._set_status(SubscriptionStatus.SUBSCRIBED)
        return self._status

    async def stop(self) -> None:
        """Unsubscribe and release the feed."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        queue, self._queue = self._queue, None
        if queue is not None and self._user_id:
            await self._feed.disconnect(self._user_id, queue)
        self._set_status(SubscriptionStatus.CLOSED)

    async def _consume(self, queue: asyncio.Queue[str]) -> None:
        while True:
            raw = await queue.get()
            if not await self.handle_message(raw):
                return

    async def handle_message(self, raw: str) -> bool:
        """
        Process one feed payload.

        Returns:
            False when the feed reported that it ended
        """
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed realtime payload")
            return True
        if not isinstance(data, dict):
            return True

        control = data.get("type")
        if control == "connected":
            self._set_status(SubscriptionStatus.SUBSCRIBED)
            return True
        if control == "closed":
            self._set_status(SubscriptionStatus.CLOSED)
            return False
        if control == "error":
            self._set_status(SubscriptionStatus.CHANNEL_ERROR)
            return False

        try:
            change = RealtimeChange.model_validate(data)
            await self._apply(change)
        except (ChatSyncError, PydanticValidationError) as e:
            logger.warning(f"Failed to apply realtime change: {e}")
        return True

    async def _apply(self, change: RealtimeChange) -> None:
        if change.table == SESSIONS_TABLE:
            if change.event_type == ChangeEventType.DELETE:
                session_id = (change.old or {}).get("id")
                if session_id:
                    await self._sync.apply_remote_delete(session_id)
                return
            if not change.new:
                return
            record = SessionRecord.model_validate(change.new)
            if record.user_id != self._user_id:
                return
            await self._refresh(record.to_session())
            return

        if change.table == MESSAGES_TABLE:
            if change.event_type == ChangeEventType.DELETE or not change.new:
                return
            session_id = change.new.get("session_id")
            if not session_id:
                return
            meta = await self._remote.get_session(session_id, self._user_id)
            if meta is not None:
                await self._refresh(meta)

    async def _refresh(self, meta) -> None:
        messages = await self._remote.get_messages(meta.id)
        await self._sync.apply_remote_session(meta.model_copy(update={"messages": messages}))
