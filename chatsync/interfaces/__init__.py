"""Abstract interfaces for infrastructure abstraction."""

from chatsync.interfaces.auth_provider import IAuthProvider, User
from chatsync.interfaces.change_feed import IChangeFeed
from chatsync.interfaces.key_value_storage import IKeyValueStorage
from chatsync.interfaces.llm_backend import ILLMBackend
from chatsync.interfaces.local_session_store import ILocalSessionStore
from chatsync.interfaces.remote_session_store import IRemoteSessionStore

__all__ = [
    "IAuthProvider",
    "User",
    "IChangeFeed",
    "IKeyValueStorage",
    "ILLMBackend",
    "ILocalSessionStore",
    "IRemoteSessionStore",
]
