"""
Server-sent events stream of the caller's row changes.
"""

import asyncio
from typing import AsyncGenerator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from chatsync.api.deps import ChangeFeed, CurrentUser
from chatsync.core.config import get_settings
from chatsync.core.logger import logger
from chatsync.interfaces.change_feed import CLOSED_MESSAGE, CONNECTED_MESSAGE

router = APIRouter()

KEEPALIVE_COMMENT = ": keep-alive\n\n"


def sse_event(data: str) -> str:
    return f"data: {data}\n\n"


@router.get("/stream")
async def stream_changes(
    user: CurrentUser,
    request: Request,
    feed: ChangeFeed,
) -> StreamingResponse:
    """Stream the caller's changes until the client leaves or the feed closes."""
    queue = await feed.connect(user.id)
    keepalive = get_settings().REALTIME_KEEPALIVE_SECONDS
    logger.info(f"Change stream opened for user {user.id}")

    async def event_generator() -> AsyncGenerator[str, None]:
        try:
            yield sse_event(CONNECTED_MESSAGE)
            while not await request.is_disconnected():
                try:
                    data = await asyncio.wait_for(queue.get(), timeout=keepalive)
                except asyncio.TimeoutError:
                    yield KEEPALIVE_COMMENT
                    continue
                yield sse_event(data)
                if data == CLOSED_MESSAGE:
                    break
        finally:
            await feed.disconnect(user.id, queue)
            logger.info(f"Change stream closed for user {user.id}")

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
