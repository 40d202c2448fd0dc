"""API routers."""

from chatsync.api import chat_messages, chat_sessions, realtime

__all__ = ["chat_messages", "chat_sessions", "realtime"]
