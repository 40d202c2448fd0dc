"""
Client-side composition of the chat history sync stack for one user.
"""

from __future__ import annotations

import uuid
from typing import Optional

import httpx

from chatsync.core.config import get_settings
from chatsync.core.logger import logger
from chatsync.infrastructure.dify.dify_client import DifyClient
from chatsync.infrastructure.http.change_feed import HttpChangeFeed
from chatsync.infrastructure.http.remote_session_store import HttpRemoteSessionStore
from chatsync.infrastructure.local.key_value_storage import FileKeyValueStorage
from chatsync.infrastructure.local.local_session_store import LocalSessionStore
from chatsync.interfaces.key_value_storage import IKeyValueStorage
from chatsync.interfaces.llm_backend import ILLMBackend
from chatsync.models.chat import SaveResult
from chatsync.models.chat_session import ChatSession
from chatsync.models.enums import ChangeKind, SubscriptionStatus, SyncStatus
from chatsync.services.chat_service import ChatService
from chatsync.services.event_bus import EventBus
from chatsync.services.pending_sync_scheduler import PendingSyncScheduler
from chatsync.services.realtime_bridge import RealtimeBridge
from chatsync.services.sync_manager import SyncManager


class ChatSyncClient:
    """
    Wires local store, HTTP remote store, event bus, sync manager, realtime
    bridge, chat service and pending-sync scheduler together.

    Without a user id the client runs in guest mode: local store only.
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        access_token: Optional[str] = None,
        base_url: Optional[str] = None,
        storage: Optional[IKeyValueStorage] = None,
        llm_backend: Optional[ILLMBackend] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        enable_scheduler: bool = True,
    ):
        settings = get_settings()
        self._base_url = base_url
        self._transport = transport
        self._storage = storage or FileKeyValueStorage(settings.LOCAL_STORE_PATH)
        self._device_id_key = settings.LOCAL_DEVICE_ID_KEY
        self.local_store = LocalSessionStore(
            self._storage,
            sessions_key=settings.LOCAL_SESSIONS_KEY,
            pending_key=settings.LOCAL_PENDING_KEY,
        )
        self.remote_store = HttpRemoteSessionStore(base_url, access_token, transport=transport)
        self.change_feed = HttpChangeFeed(base_url, access_token, transport=transport)
        self.event_bus = EventBus()
        self.sync_manager = SyncManager(
            self.local_store,
            self.remote_store,
            self.event_bus,
            user_id=user_id,
        )
        self.realtime_bridge = RealtimeBridge(
            self.change_feed,
            self.remote_store,
            self.sync_manager,
            on_status=self._on_realtime_status,
        )
        # An injected backend keeps its own end user.
        self.dify_client = None if llm_backend else DifyClient(end_user=user_id or self.device_id())
        self.chat_service = ChatService(self.sync_manager, llm_backend or self.dify_client)
        self.scheduler = PendingSyncScheduler(self.sync_manager) if enable_scheduler else None

    @property
    def user_id(self) -> Optional[str]:
        return self.sync_manager.user_id

    def device_id(self) -> str:
        """Stable guest identity of this device, created on first use."""
        device_id = self._storage.get_item(self._device_id_key)
        if not device_id:
            device_id = f"guest-{uuid.uuid4().hex}"
            self._storage.set_item(self._device_id_key, device_id)
        return device_id

    def _set_end_user(self, user_id: Optional[str]) -> None:
        if self.dify_client is not None:
            self.dify_client.end_user = user_id or self.device_id()

    def _on_realtime_status(self, status: SubscriptionStatus) -> None:
        sync_status = (
            SyncStatus.CONNECTED if status == SubscriptionStatus.SUBSCRIBED else SyncStatus.DISCONNECTED
        )
        self.event_bus.publish(ChangeKind.SYNC_STATUS, sync_status)

    async def start(self) -> list[ChatSession]:
        """Load sessions and, when signed in, start realtime and reconciliation."""
        if self.user_id:
            await self.realtime_bridge.start(self.user_id)
            if self.scheduler is not None:
                await self.scheduler.start()
        return await self.sync_manager.load_all_sessions()

    async def sign_in(
        self,
        user_id: str,
        access_token: Optional[str] = None,
        migrate: bool = True,
    ) -> list[ChatSession]:
        """Switch from guest to an account, optionally pushing guest sessions."""
        self.remote_store.set_access_token(access_token)
        self.change_feed = HttpChangeFeed(self._base_url, access_token, transport=self._transport)
        await self.realtime_bridge.stop()
        self.realtime_bridge = RealtimeBridge(
            self.change_feed,
            self.remote_store,
            self.sync_manager,
            on_status=self._on_realtime_status,
        )
        self.sync_manager.set_user(user_id)
        self._set_end_user(user_id)
        if migrate:
            migrated = await self.sync_manager.migrate_local_sessions(user_id)
            logger.info(f"Guest migration finished: {migrated} sessions")
        return await self.start()

    async def sign_out(self) -> None:
        """Back to guest mode. Deferred pushes are flushed first."""
        await self.sync_manager.flush()
        await self.realtime_bridge.stop()
        if self.scheduler is not None:
            await self.scheduler.stop()
        self.sync_manager.set_user(None)
        self._set_end_user(None)
        self.remote_store.set_access_token(None)

    def new_chat(self) -> ChatSession:
        return self.sync_manager.create_session()

    def list_sessions(self) -> list[ChatSession]:
        return self.sync_manager.list_sessions()

    async def send_message(self, session: ChatSession, text: str) -> SaveResult:
        return await self.chat_service.send_message(session, text)

    async def close(self) -> None:
        await self.realtime_bridge.stop()
        if self.scheduler is not None:
            await self.scheduler.stop()
        await self.sync_manager.close()
        await self.remote_store.aclose()
