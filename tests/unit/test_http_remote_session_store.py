"""
Unit tests for the HTTP remote store client (httpx.MockTransport).
"""

import json

import httpx
import pytest

from chatsync.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    StoreError,
    UnauthorizedError,
)
from chatsync.infrastructure.http.remote_session_store import HttpRemoteSessionStore
from chatsync.models.chat_session import ChatMessage, ChatSession
from chatsync.models.enums import MessageRole

SESSION_RECORD = {
    "id": "s1",
    "user_id": "u1",
    "title": "Bread",
    "conversation_id": "conv-1",
    "is_pinned": True,
    "is_manually_renamed": False,
    "created_at": "2024-01-01T00:00:00Z",
    "updated_at": "2024-01-01T00:00:01Z",
}


def _store(handler) -> HttpRemoteSessionStore:
    return HttpRemoteSessionStore(
        base_url="http://remote.test",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_list_sessions_parses_records():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("authorization")
        seen["path"] = request.url.path
        return httpx.Response(200, json={"sessions": [SESSION_RECORD]})

    store = _store(handler)
    sessions = await store.list_sessions("u1")
    await store.aclose()

    assert seen == {"auth": "Bearer u1", "path": "/api/chat-sessions"}
    assert sessions[0].id == "s1"
    assert sessions[0].is_pinned is True
    assert sessions[0].created_at == 1_704_067_200_000
    assert sessions[0].updated_at == 1_704_067_201_000


@pytest.mark.asyncio
async def test_access_token_overrides_user_id():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["authorization"] == "Bearer real-token"
        return httpx.Response(200, json={"sessions": []})

    store = HttpRemoteSessionStore(
        base_url="http://remote.test",
        access_token="real-token",
        transport=httpx.MockTransport(handler),
    )
    assert await store.list_sessions("u1") == []


@pytest.mark.asyncio
async def test_get_messages_sends_session_id():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["session_id"] == "s1"
        return httpx.Response(
            200,
            json={
                "messages": [
                    {"session_id": "s1", "user_id": "u1", "role": "user", "content": "hi", "timestamp": 1},
                    {"session_id": "s1", "user_id": "u1", "role": "bot", "content": "yo", "timestamp": 2, "is_favorite": True},
                ]
            },
        )

    messages = await _store(handler).get_messages("s1")

    assert [m.role for m in messages] == [MessageRole.USER, MessageRole.BOT]
    assert messages[1].is_favorite is True


@pytest.mark.asyncio
async def test_upsert_and_append_payloads():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append((request.method, request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"success": True})

    store = _store(handler)
    session = ChatSession(id="s1", title="Bread", created_at=1_704_067_200_000, updated_at=1_704_067_200_000)
    await store.upsert_session(session, "u1")
    await store.append_message(
        ChatMessage(role=MessageRole.USER, content="hi", timestamp=5), "s1", "u1"
    )

    method, path, body = bodies[0]
    assert (method, path) == ("POST", "/api/chat-sessions")
    assert body["session"]["id"] == "s1"
    assert body["session"]["user_id"] == "u1"
    assert body["session"]["created_at"].startswith("2024-01-01T00:00:00")

    method, path, body = bodies[1]
    assert (method, path) == ("POST", "/api/chat-messages")
    assert body["session_id"] == "s1"
    assert body["message"]["content"] == "hi"
    assert body["message"]["timestamp"] == 5


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code, error",
    [
        (401, UnauthorizedError),
        (403, ForbiddenError),
        (404, NotFoundError),
        (500, StoreError),
        (422, StoreError),
    ],
)
async def test_status_codes_map_to_exceptions(status_code, error):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"detail": "nope"})

    with pytest.raises(error):
        await _store(handler).delete_session("s1", "u1")


@pytest.mark.asyncio
async def test_transport_error_is_store_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    with pytest.raises(StoreError):
        await _store(handler).list_sessions("u1")


@pytest.mark.asyncio
async def test_malformed_payload_is_store_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"sessions": [{"id": "s1"}]})

    with pytest.raises(StoreError):
        await _store(handler).list_sessions("u1")


@pytest.mark.asyncio
async def test_get_session_not_found_returns_none():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"detail": "missing"})

    assert await _store(handler).get_session("s1", "u1") is None


@pytest.mark.asyncio
async def test_missing_identity_never_hits_the_network():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(UnauthorizedError):
        await _store(handler).upsert_session(
            ChatSession(id="s1", title="x", created_at=1, updated_at=1), None
        )
