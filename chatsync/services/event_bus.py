"""
In-process publish/subscribe for chat history changes.

Delivery is fire-and-forget and at-most-once: an event published while nobody
is subscribed is lost. Events are refresh hints; subscribers re-read state
from the stores instead of trusting the payload.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from itertools import count
from typing import Any, Callable, Optional

from chatsync.core.logger import logger
from chatsync.models.enums import ChangeKind


@dataclass(frozen=True)
class ChangeEvent:
    kind: ChangeKind
    payload: Any = None
    session_id: Optional[str] = None


Handler = Callable[[ChangeEvent], Any]


class Subscription:
    """Handle returned by EventBus.subscribe; release it with unsubscribe()."""

    def __init__(self, bus: "EventBus", token: int):
        self._bus = bus
        self._token = token
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._bus._remove(self._token)
            self._active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()


class EventBus:
    """Synchronous fan-out to handlers in registration order."""

    def __init__(self) -> None:
        self._handlers: dict[int, Handler] = {}
        self._tokens = count(1)
        self._tasks: set[asyncio.Task] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: Handler) -> Subscription:
        token = next(self._tokens)
        self._handlers[token] = handler
        return Subscription(self, token)

    def _remove(self, token: int) -> None:
        self._handlers.pop(token, None)

    def publish(
        self,
        kind: ChangeKind,
        payload: Any = None,
        session_id: Optional[str] = None,
    ) -> int:
        """
        Invoke every current handler with a ChangeEvent.

        Handlers subscribed or removed during delivery do not affect this
        publish. A handler that raises is logged and skipped. Coroutines
        returned by async handlers are scheduled on the running loop.

        Returns:
            Number of handlers invoked
        """
        event = ChangeEvent(kind=kind, payload=payload, session_id=session_id)
        handlers = list(self._handlers.values())
        for handler in handlers:
            try:
                result = handler(event)
            except Exception:
                logger.exception(f"Event handler failed for {kind.value}")
                continue
            if inspect.isawaitable(result):
                self._schedule(result, kind)
        return len(handlers)

    def _schedule(self, awaitable: Any, kind: ChangeKind) -> None:
        try:
            loop = asyncio.get_running_loop()
            task = asyncio.ensure_future(awaitable, loop=loop)
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            logger.warning(f"No running event loop, dropped async handler for {kind.value}")
            return
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Async event handler failed: {error!r}")

    async def drain(self) -> None:
        """Wait for scheduled async handlers to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
