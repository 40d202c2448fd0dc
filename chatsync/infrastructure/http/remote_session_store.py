"""
HTTP client of the hosted persistence API.

Status codes are mapped back onto the exception tree so that callers see the
same errors as with the in-process SQLite store.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from chatsync.core.config import get_settings
from chatsync.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    StoreError,
    UnauthorizedError,
)
from chatsync.interfaces.remote_session_store import IRemoteSessionStore
from chatsync.models.chat_session import ChatMessage, ChatSession, MessageRecord, SessionRecord


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return response.reason_phrase


class HttpRemoteSessionStore(IRemoteSessionStore):
    """Remote store over the persistence API, bearer-token authenticated."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: API root (default: REMOTE_API_BASE_URL)
            access_token: Bearer token. When omitted the user id is sent as the
                token, which is what the mock auth provider expects.
            timeout: Request timeout in seconds (default: REMOTE_TIMEOUT_SECONDS)
            transport: Optional httpx transport (tests, in-process ASGI app)
        """
        settings = get_settings()
        self.base_url = (base_url or settings.REMOTE_API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.REMOTE_TIMEOUT_SECONDS
        self._access_token = access_token
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._last_user_id: Optional[str] = None

    def set_access_token(self, token: Optional[str]) -> None:
        self._access_token = token

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _headers(self, user_id: Optional[str]) -> dict[str, str]:
        token = self._access_token or user_id or self._last_user_id
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        user_id: Optional[str],
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._get_client().request(
                method, path, headers=self._headers(user_id), **kwargs
            )
        except httpx.HTTPError as e:
            raise StoreError(f"Remote store request failed: {e}") from e

        if response.status_code == 401:
            raise UnauthorizedError(_error_detail(response))
        if response.status_code == 403:
            raise ForbiddenError(_error_detail(response))
        if response.status_code == 404:
            raise NotFoundError(_error_detail(response))
        if response.status_code >= 400:
            raise StoreError(
                f"Remote store returned {response.status_code}: {_error_detail(response)}",
                details={"status_code": response.status_code},
            )
        return response

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise StoreError(f"Malformed remote store response: {e}") from e
        if not isinstance(body, dict):
            raise StoreError("Malformed remote store response: expected an object")
        return body

    def _require_user(self, user_id: Optional[str]) -> str:
        if not user_id:
            raise UnauthorizedError("Authentication required")
        self._last_user_id = user_id
        return user_id

    async def list_sessions(self, user_id: Optional[str]) -> list[ChatSession]:
        user_id = self._require_user(user_id)
        body = self._json(await self._request("GET", "/api/chat-sessions", user_id))
        try:
            return [
                SessionRecord.model_validate(item).to_session()
                for item in body.get("sessions", [])
            ]
        except PydanticValidationError as e:
            raise StoreError(f"Malformed session record: {e}") from e

    async def get_session(self, session_id: str, user_id: Optional[str]) -> Optional[ChatSession]:
        user_id = self._require_user(user_id)
        try:
            response = await self._request("GET", f"/api/chat-sessions/{session_id}", user_id)
        except NotFoundError:
            return None
        body = self._json(response)
        try:
            return SessionRecord.model_validate(body.get("session")).to_session()
        except PydanticValidationError as e:
            raise StoreError(f"Malformed session record: {e}") from e

    async def get_messages(self, session_id: str) -> list[ChatMessage]:
        try:
            response = await self._request(
                "GET", "/api/chat-messages", None, params={"session_id": session_id}
            )
        except NotFoundError:
            return []
        body = self._json(response)
        try:
            return [
                MessageRecord.model_validate(item).to_message()
                for item in body.get("messages", [])
            ]
        except PydanticValidationError as e:
            raise StoreError(f"Malformed message record: {e}") from e

    async def upsert_session(self, session: ChatSession, user_id: Optional[str]) -> None:
        user_id = self._require_user(user_id)
        record = SessionRecord.from_session(session, user_id)
        await self._request(
            "POST",
            "/api/chat-sessions",
            user_id,
            json={"session": record.model_dump(mode="json")},
        )

    async def append_message(
        self,
        message: ChatMessage,
        session_id: str,
        user_id: Optional[str],
    ) -> None:
        user_id = self._require_user(user_id)
        record = MessageRecord.from_message(message, session_id, user_id)
        await self._request(
            "POST",
            "/api/chat-messages",
            user_id,
            json={
                "session_id": session_id,
                "message": record.model_dump(mode="json", exclude_none=True),
            },
        )

    async def delete_session(self, session_id: str, user_id: Optional[str]) -> None:
        user_id = self._require_user(user_id)
        await self._request("DELETE", f"/api/chat-sessions/{session_id}", user_id)

    async def delete_messages(self, session_id: str, user_id: Optional[str]) -> None:
        user_id = self._require_user(user_id)
        await self._request(
            "DELETE", "/api/chat-messages", user_id, params={"session_id": session_id}
        )
