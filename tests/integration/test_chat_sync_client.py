"""
Integration tests for the client-side composition (guest mode and sign-in).
"""

from typing import Optional

import httpx
import pytest

from chatsync.api.deps import get_auth_provider, get_remote_session_store
from chatsync.client import ChatSyncClient
from chatsync.infrastructure.auth.mock_auth import MockAuthProvider
from chatsync.infrastructure.local.key_value_storage import InMemoryKeyValueStorage
from chatsync.interfaces.llm_backend import ILLMBackend
from chatsync.main import create_app
from chatsync.models.chat import ChatReply
from chatsync.models.enums import SyncOutcome


class EchoBackend(ILLMBackend):
    async def send(self, message: str, conversation_id: Optional[str] = None) -> ChatReply:
        return ChatReply(answer=f"echo: {message}", conversation_id="conv-echo")


@pytest.fixture
def transport(remote_store):
    app = create_app()
    app.dependency_overrides[get_remote_session_store] = lambda: remote_store
    app.dependency_overrides[get_auth_provider] = lambda: MockAuthProvider(enabled=True)
    return httpx.ASGITransport(app=app)


@pytest.fixture
async def client(transport):
    client = ChatSyncClient(
        base_url="http://testserver",
        storage=InMemoryKeyValueStorage(),
        llm_backend=EchoBackend(),
        transport=transport,
        enable_scheduler=False,
    )
    yield client
    await client.close()


@pytest.mark.asyncio
async def test_guest_chat_stays_on_device(client, remote_store):
    session = client.new_chat()

    result = await client.send_message(session, "Hello offline")

    assert result.outcome == SyncOutcome.LOCAL_ONLY
    sessions = client.list_sessions()
    assert [m.content for m in sessions[0].messages] == ["Hello offline", "echo: Hello offline"]
    assert sessions[0].conversation_id == "conv-echo"
    assert await remote_store.list_sessions("alice") == []


@pytest.mark.asyncio
async def test_sign_in_migrates_guest_sessions(client, remote_store):
    await client.send_message(client.new_chat(), "Guest question")

    sessions = await client.sign_in("alice")

    assert client.user_id == "alice"
    assert [s.title for s in sessions] == ["Guest question"]
    remote = await remote_store.list_sessions("alice")
    assert [s.title for s in remote] == ["Guest question"]
    assert len(await remote_store.get_messages(remote[0].id)) == 2


@pytest.mark.asyncio
async def test_sign_out_returns_to_guest(client):
    await client.sign_in("alice", migrate=False)
    await client.sign_out()

    assert client.user_id is None
    result = await client.send_message(client.new_chat(), "after sign out")
    assert result.outcome == SyncOutcome.LOCAL_ONLY


@pytest.mark.asyncio
async def test_dify_end_user_follows_identity(transport):
    storage = InMemoryKeyValueStorage()
    client = ChatSyncClient(
        base_url="http://testserver",
        storage=storage,
        transport=transport,
        enable_scheduler=False,
    )
    try:
        guest = client.dify_client.end_user
        assert guest.startswith("guest-")
        assert guest == client.device_id()

        await client.sign_in("alice", migrate=False)
        assert client.dify_client.end_user == "alice"

        await client.sign_out()
        assert client.dify_client.end_user == guest
    finally:
        await client.close()

    reopened = ChatSyncClient(base_url="http://testserver", storage=storage, enable_scheduler=False)
    try:
        assert reopened.dify_client.end_user == guest
    finally:
        await reopened.close()


@pytest.mark.asyncio
async def test_injected_backend_has_no_dify_client(client):
    assert client.dify_client is None
