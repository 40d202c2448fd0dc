"""
In-process change feed of the hosted store.

Every open stream owns a bounded queue. A subscriber that falls behind loses
its oldest payloads instead of blocking writers; the client repairs the gap
with its next full load.
"""

import asyncio
import json
from typing import Any, Optional, Union

from chatsync.core.config import get_settings
from chatsync.core.logger import logger
from chatsync.interfaces.change_feed import CLOSED_MESSAGE, IChangeFeed
from chatsync.models.chat_session import RealtimeChange


class RealtimeManager(IChangeFeed):
    """Per-user fan-out of row changes to open streams."""

    def __init__(self, max_queue_size: Optional[int] = None) -> None:
        self.max_queue_size = (
            get_settings().REALTIME_QUEUE_SIZE if max_queue_size is None else max_queue_size
        )
        self._subscribers: dict[str, set[asyncio.Queue[str]]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, user_id: str) -> asyncio.Queue[str]:
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self.max_queue_size)
        async with self._lock:
            self._subscribers.setdefault(user_id, set()).add(queue)
        return queue

    async def disconnect(self, user_id: str, queue: asyncio.Queue[str]) -> None:
        async with self._lock:
            queues = self._subscribers.get(user_id, set())
            queues.discard(queue)
            if not queues:
                self._subscribers.pop(user_id, None)

    async def publish(
        self,
        user_id: str,
        change: Union[RealtimeChange, dict[str, Any]],
    ) -> int:
        """
        Deliver one change to every stream of the user.

        Returns:
            Number of streams reached
        """
        if isinstance(change, RealtimeChange):
            change = change.to_payload()
        message = json.dumps(change, separators=(",", ":"))
        async with self._lock:
            targets = list(self._subscribers.get(user_id, ()))
        for queue in targets:
            self._offer(queue, message)
        return len(targets)

    async def close_all(self) -> None:
        """End every open stream (server shutdown)."""
        async with self._lock:
            subscribers, self._subscribers = self._subscribers, {}
        for queues in subscribers.values():
            for queue in queues:
                self._offer(queue, CLOSED_MESSAGE)
        if subscribers:
            logger.info(f"Closed change streams of {len(subscribers)} users")

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscribers.get(user_id, ()))

    @staticmethod
    def _offer(queue: asyncio.Queue[str], message: str) -> None:
        if queue.full():
            queue.get_nowait()
            logger.warning("Change stream subscriber is lagging, dropped oldest change")
        queue.put_nowait(message)


realtime_manager = RealtimeManager()
