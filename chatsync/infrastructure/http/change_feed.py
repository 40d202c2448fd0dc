"""
Server-sent-events client of the realtime change feed.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx

from chatsync.core.config import get_settings
from chatsync.core.logger import logger
from chatsync.interfaces.change_feed import CLOSED_MESSAGE, IChangeFeed, control_message


class HttpChangeFeed(IChangeFeed):
    """Reads GET /api/realtime/stream into a queue, one reader task per connection."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        access_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.REMOTE_API_BASE_URL).rstrip("/")
        self._access_token = access_token
        self._transport = transport
        self._readers: dict[int, asyncio.Task] = {}

    async def connect(self, user_id: str) -> asyncio.Queue[str]:
        queue: asyncio.Queue[str] = asyncio.Queue()
        token = self._access_token or user_id
        task = asyncio.create_task(self._read_stream(token, queue))
        self._readers[id(queue)] = task
        return queue

    async def disconnect(self, user_id: str, queue: asyncio.Queue[str]) -> None:
        task = self._readers.pop(id(queue), None)
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _read_stream(self, token: str, queue: asyncio.Queue[str]) -> None:
        headers = {"Authorization": f"Bearer {token}", "Accept": "text/event-stream"}
        # No read timeout: the server only sends keep-alive comments between changes.
        timeout = httpx.Timeout(10.0, read=None)
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=timeout, transport=self._transport
            ) as client:
                async with client.stream("GET", "/api/realtime/stream", headers=headers) as response:
                    if response.status_code != 200:
                        logger.warning(f"Change feed rejected with status {response.status_code}")
                        queue.put_nowait(control_message("error", reason=f"status {response.status_code}"))
                        return
                    async for line in response.aiter_lines():
                        if not line or line.startswith(":"):
                            continue
                        if line.startswith("data:"):
                            payload = line[5:].strip()
                            queue.put_nowait(payload)
                            if payload == CLOSED_MESSAGE:
                                return
        except httpx.HTTPError as e:
            logger.warning(f"Change feed connection failed: {e}")
            queue.put_nowait(control_message("error", reason=str(e)))
            return
        queue.put_nowait(CLOSED_MESSAGE)
