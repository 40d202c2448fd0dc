"""
Key-value backed implementation of the local session store.

The whole session list lives under one key and is rewritten on every
mutation (read-modify-write). The pending-sync outbox is a JSON list of
session ids under a second key.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from chatsync.core.exceptions import InfrastructureError
from chatsync.core.logger import logger
from chatsync.interfaces.key_value_storage import IKeyValueStorage
from chatsync.interfaces.local_session_store import ILocalSessionStore
from chatsync.models.chat_session import ChatSession
from chatsync.services.chat_history_utils import now_ms, sort_sessions


class LocalSessionStore(ILocalSessionStore):
    """On-device session cache over an IKeyValueStorage."""

    def __init__(
        self,
        storage: IKeyValueStorage,
        sessions_key: str = "chat_sessions",
        pending_key: str = "pending_sync_sessions",
    ):
        self._storage = storage
        self._sessions_key = sessions_key
        self._pending_key = pending_key

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def get_all(self) -> list[ChatSession]:
        return sort_sessions(self._read_sessions())

    def get(self, session_id: str) -> Optional[ChatSession]:
        for session in self._read_sessions():
            if session.id == session_id:
                return session
        return None

    def save(self, session: ChatSession) -> None:
        sessions = self._read_sessions()
        for index, stored in enumerate(sessions):
            if stored.id == session.id:
                sessions[index] = session
                break
        else:
            sessions.append(session)
        self._write_sessions(sessions)

    def replace_all(self, sessions: list[ChatSession]) -> None:
        self._write_sessions(list(sessions))

    def delete(self, session_id: str) -> None:
        sessions = self._read_sessions()
        remaining = [s for s in sessions if s.id != session_id]
        if len(remaining) != len(sessions):
            self._write_sessions(remaining)

    def rename(self, session_id: str, new_title: str) -> Optional[ChatSession]:
        return self._update(
            session_id,
            lambda s: {
                "title": new_title,
                "is_manually_renamed": True,
                "updated_at": max(now_ms(), s.updated_at),
            },
        )

    def toggle_pin(self, session_id: str) -> Optional[ChatSession]:
        return self._update(
            session_id,
            lambda s: {
                "is_pinned": not s.is_pinned,
                "updated_at": max(now_ms(), s.updated_at),
            },
        )

    # ------------------------------------------------------------------
    # Pending-sync outbox
    # ------------------------------------------------------------------

    def get_pending(self) -> list[str]:
        raw = self._read_json(self._pending_key)
        if not isinstance(raw, list):
            return []
        return [item for item in raw if isinstance(item, str)]

    def add_pending(self, session_id: str) -> None:
        pending = self.get_pending()
        if session_id not in pending:
            pending.append(session_id)
            self._write_json(self._pending_key, pending)

    def remove_pending(self, session_id: str) -> None:
        pending = self.get_pending()
        if session_id not in pending:
            return
        remaining = [item for item in pending if item != session_id]
        if remaining:
            self._write_json(self._pending_key, remaining)
        else:
            try:
                self._storage.remove_item(self._pending_key)
            except InfrastructureError as e:
                logger.error(f"Failed to clear pending sync list: {e}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _update(self, session_id: str, changes) -> Optional[ChatSession]:
        sessions = self._read_sessions()
        for index, stored in enumerate(sessions):
            if stored.id == session_id:
                updated = stored.model_copy(update=changes(stored))
                sessions[index] = updated
                self._write_sessions(sessions)
                return updated
        return None

    def _read_sessions(self) -> list[ChatSession]:
        raw = self._read_json(self._sessions_key)
        if not isinstance(raw, list):
            return []
        sessions = []
        for entry in raw:
            try:
                sessions.append(ChatSession.model_validate(entry))
            except PydanticValidationError as e:
                logger.warning(f"Skipping corrupt local session entry: {e.error_count()} errors")
        return sessions

    def _write_sessions(self, sessions: list[ChatSession]) -> None:
        self._write_json(self._sessions_key, [s.to_storage() for s in sessions])

    def _read_json(self, key: str) -> Any:
        try:
            stored = self._storage.get_item(key)
        except (InfrastructureError, OSError) as e:
            logger.error(f"Local store unavailable ({key}): {e}")
            return None
        if not stored:
            return None
        try:
            return json.loads(stored)
        except json.JSONDecodeError:
            logger.error(f"Failed to parse local store value for {key}")
            return None

    def _write_json(self, key: str, value: Any) -> None:
        try:
            self._storage.set_item(key, json.dumps(value, ensure_ascii=False))
        except (InfrastructureError, OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write local store value for {key}: {e}")
