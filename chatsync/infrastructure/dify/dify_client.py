"""
Dify chat-messages API client.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

import httpx

from chatsync.core.config import get_settings
from chatsync.core.exceptions import LLMError
from chatsync.core.logger import logger
from chatsync.interfaces.llm_backend import ILLMBackend
from chatsync.models.chat import ChatReply

NO_RESPONSE = "(no response)"


class DifyClient(ILLMBackend):
    """Blocking-mode client of POST {base}/chat-messages."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        end_user: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.api_key = (api_key if api_key is not None else settings.DIFY_API_KEY).strip()
        self.base_url = (base_url or settings.DIFY_API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.DIFY_TIMEOUT_SECONDS
        self.end_user = end_user or f"user-{uuid.uuid4().hex}"
        self._transport = transport

    def _build_body(self, message: str, conversation_id: Optional[str]) -> dict[str, Any]:
        body: dict[str, Any] = {
            "inputs": {},
            "query": message,
            "response_mode": "blocking",
            "user": self.end_user,
        }
        if conversation_id and conversation_id.strip():
            body["conversation_id"] = conversation_id
        return body

    async def _post(self, client: httpx.AsyncClient, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        try:
            response = await client.post(
                "/chat-messages",
                json=body,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as e:
            raise LLMError(f"Dify request failed: {e}") from e
        try:
            data = response.json()
        except ValueError as e:
            raise LLMError(f"Dify returned a non-JSON response ({response.status_code})") from e
        if not isinstance(data, dict):
            raise LLMError("Dify returned an unexpected payload")
        return response.status_code, data

    async def send(self, message: str, conversation_id: Optional[str] = None) -> ChatReply:
        if not self.api_key:
            raise LLMError("DIFY_API_KEY is not configured")

        body = self._build_body(message, conversation_id)
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            status_code, data = await self._post(client, body)

            if status_code >= 400 or data.get("code"):
                # Expired conversation on the Dify side: start a new one
                if data.get("code") == "not_found" and conversation_id:
                    logger.info("Dify conversation not found, retrying as a new conversation")
                    body.pop("conversation_id", None)
                    status_code, data = await self._post(client, body)
                    if status_code >= 400 or data.get("code"):
                        raise LLMError(f"Dify error: {data.get('message') or data.get('code')}", details=data)
                    return ChatReply(
                        answer=data.get("answer") or NO_RESPONSE,
                        conversation_id=data.get("conversation_id"),
                    )
                raise LLMError(f"Dify error: {data.get('message') or data.get('code')}", details=data)

        return ChatReply(
            answer=data.get("answer") or NO_RESPONSE,
            conversation_id=data.get("conversation_id") or conversation_id,
        )
