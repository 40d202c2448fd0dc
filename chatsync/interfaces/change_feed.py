"""
Change feed interface.

A change feed delivers JSON-encoded row changes for one user into an
asyncio queue. Payloads are RealtimeChange dicts, or control messages of the
form {"type": "connected" | "closed" | "error"}.
"""

import asyncio
import json
from abc import ABC, abstractmethod


def control_message(kind: str, **fields) -> str:
    """Encode a control message."""
    return json.dumps({"type": kind, **fields}, separators=(",", ":"))


CONNECTED_MESSAGE = control_message("connected")
CLOSED_MESSAGE = control_message("closed")


class IChangeFeed(ABC):
    """Abstract interface for per-user change notification transports."""

    @abstractmethod
    async def connect(self, user_id: str) -> asyncio.Queue[str]:
        """
        Subscribe to a user's changes.

        Args:
            user_id: Owner user ID

        Returns:
            Queue receiving JSON payloads
        """
        pass

    @abstractmethod
    async def disconnect(self, user_id: str, queue: asyncio.Queue[str]) -> None:
        """Release a subscription obtained from connect()."""
        pass
