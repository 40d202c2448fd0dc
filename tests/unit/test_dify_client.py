"""
Unit tests for the Dify client.
"""

import json

import httpx
import pytest

from chatsync.core.exceptions import LLMError
from chatsync.infrastructure.dify.dify_client import NO_RESPONSE, DifyClient


def _client(handler, api_key: str = "app-key") -> DifyClient:
    return DifyClient(
        api_key=api_key,
        base_url="http://dify.test/v1",
        end_user="user-1",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_blocking_request_body():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"answer": "Paris", "conversation_id": "conv-9"})

    reply = await _client(handler).send("Capital of France?")

    assert reply.answer == "Paris"
    assert reply.conversation_id == "conv-9"
    request = requests[0]
    assert request.url.path == "/v1/chat-messages"
    assert request.headers["authorization"] == "Bearer app-key"
    assert json.loads(request.content) == {
        "inputs": {},
        "query": "Capital of France?",
        "response_mode": "blocking",
        "user": "user-1",
    }


@pytest.mark.asyncio
async def test_conversation_id_is_forwarded():
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content)["conversation_id"] == "conv-1"
        return httpx.Response(200, json={"answer": "again"})

    reply = await _client(handler).send("follow up", "conv-1")

    assert reply.conversation_id == "conv-1"


@pytest.mark.asyncio
async def test_blank_conversation_id_is_omitted():
    def handler(request: httpx.Request) -> httpx.Response:
        assert "conversation_id" not in json.loads(request.content)
        return httpx.Response(200, json={"answer": "hi"})

    await _client(handler).send("hello", "   ")


@pytest.mark.asyncio
async def test_expired_conversation_is_retried_as_new():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        bodies.append(body)
        if "conversation_id" in body:
            return httpx.Response(404, json={"code": "not_found", "message": "Conversation Not Exists."})
        return httpx.Response(200, json={"answer": "fresh start", "conversation_id": "conv-new"})

    reply = await _client(handler).send("hello", "conv-old")

    assert len(bodies) == 2
    assert reply.answer == "fresh start"
    assert reply.conversation_id == "conv-new"


@pytest.mark.asyncio
async def test_empty_answer_uses_placeholder():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"answer": ""})

    assert (await _client(handler).send("hello")).answer == NO_RESPONSE


@pytest.mark.asyncio
async def test_missing_api_key():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(LLMError):
        await _client(handler, api_key="").send("hello")


@pytest.mark.asyncio
async def test_error_payload_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"code": "invalid_param", "message": "bad query"})

    with pytest.raises(LLMError, match="bad query"):
        await _client(handler).send("hello")


@pytest.mark.asyncio
async def test_non_json_response_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>bad gateway</html>")

    with pytest.raises(LLMError):
        await _client(handler).send("hello")


@pytest.mark.asyncio
async def test_transport_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(LLMError):
        await _client(handler).send("hello")


@pytest.mark.asyncio
async def test_default_end_user_is_stable_across_turns():
    """Dify scopes conversations to the user, so every turn must send the same one."""
    users = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        users.append(body["user"])
        return httpx.Response(200, json={"answer": "ok", "conversation_id": "conv-1"})

    client = DifyClient(
        api_key="app-key",
        base_url="http://dify.test/v1",
        transport=httpx.MockTransport(handler),
    )
    first = await client.send("hello")
    second = await client.send("and then?", first.conversation_id)

    assert second.conversation_id == "conv-1"
    assert len(users) == 2
    assert users[0] == users[1]
    assert users[0].startswith("user-")
