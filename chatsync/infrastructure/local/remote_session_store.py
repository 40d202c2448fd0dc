"""
SQLite implementation of the hosted session store.

Every query is scoped by the caller's user id. After each committed write the
change is published to the owner's change feed, which is what the Realtime
Bridge on other devices listens to.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from chatsync.core.exceptions import ForbiddenError, NotFoundError, StoreError, UnauthorizedError
from chatsync.core.logger import logger
from chatsync.infrastructure.local.database import ChatMessageORM, ChatSessionORM, get_session_factory
from chatsync.interfaces.remote_session_store import IRemoteSessionStore
from chatsync.models.chat_session import (
    MESSAGES_TABLE,
    SESSIONS_TABLE,
    ChatMessage,
    ChatSession,
    MessageRecord,
    RealtimeChange,
    SessionRecord,
    ms_to_datetime,
)
from chatsync.models.enums import ChangeEventType, MessageRole
from chatsync.services.realtime_service import RealtimeManager


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise UnauthorizedError("Authentication required")
    return user_id


def _naive_utc(ms: int):
    return ms_to_datetime(ms).replace(tzinfo=None)


class SqliteRemoteSessionStore(IRemoteSessionStore):
    """SQLite implementation of the hosted session store."""

    def __init__(self, session_factory=None, publisher: Optional[RealtimeManager] = None):
        self._session_factory = session_factory or get_session_factory()
        self._publisher = publisher

    def _session_orm_to_record(self, orm: ChatSessionORM) -> SessionRecord:
        """Convert session ORM object to wire record."""
        return SessionRecord(
            id=orm.id,
            user_id=orm.user_id,
            title=orm.title,
            conversation_id=orm.conversation_id,
            is_pinned=bool(orm.is_pinned),
            is_manually_renamed=bool(orm.is_manually_renamed),
            created_at=orm.created_at,
            updated_at=orm.updated_at,
        )

    def _message_orm_to_record(self, orm: ChatMessageORM) -> MessageRecord:
        """Convert message ORM object to wire record."""
        return MessageRecord(
            id=orm.id,
            session_id=orm.session_id,
            user_id=orm.user_id,
            role=MessageRole(orm.role),
            content=orm.content or "",
            timestamp=orm.timestamp,
            is_favorite=bool(orm.is_favorite),
        )

    async def _get_owned(self, db, session_id: str, user_id: str) -> ChatSessionORM:
        orm = await db.get(ChatSessionORM, session_id)
        if orm is None:
            raise NotFoundError(f"Chat session {session_id} not found")
        if orm.user_id != user_id:
            raise ForbiddenError(f"Chat session {session_id} belongs to another user")
        return orm

    async def _publish(self, user_id: str, change: RealtimeChange) -> None:
        if self._publisher is None:
            return
        await self._publisher.publish(user_id, change)

    async def list_sessions(self, user_id: Optional[str]) -> list[ChatSession]:
        """List chat sessions for a user."""
        user_id = _require_user(user_id)
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(ChatSessionORM)
                    .where(ChatSessionORM.user_id == user_id)
                    .order_by(ChatSessionORM.updated_at.desc())
                )
                return [self._session_orm_to_record(orm).to_session() for orm in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to list chat sessions: {e}")

    async def get_session(self, session_id: str, user_id: Optional[str]) -> Optional[ChatSession]:
        """Get one session's metadata."""
        user_id = _require_user(user_id)
        try:
            async with self._session_factory() as db:
                orm = await db.get(ChatSessionORM, session_id)
                if orm is None:
                    return None
                if orm.user_id != user_id:
                    raise ForbiddenError(f"Chat session {session_id} belongs to another user")
                return self._session_orm_to_record(orm).to_session()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load chat session: {e}")

    async def get_messages(self, session_id: str) -> list[ChatMessage]:
        """List messages for a session."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(ChatMessageORM)
                    .where(ChatMessageORM.session_id == session_id)
                    .order_by(ChatMessageORM.timestamp.asc(), ChatMessageORM.created_at.asc())
                )
                return [self._message_orm_to_record(orm).to_message() for orm in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load chat messages: {e}")

    async def upsert_session(self, session: ChatSession, user_id: Optional[str]) -> None:
        """Create or update a chat session."""
        user_id = _require_user(user_id)
        try:
            async with self._session_factory() as db:
                orm = await db.get(ChatSessionORM, session.id)
                if orm is not None and orm.user_id != user_id:
                    raise ForbiddenError(f"Chat session {session.id} belongs to another user")

                event_type = ChangeEventType.UPDATE
                if orm is None:
                    event_type = ChangeEventType.INSERT
                    orm = ChatSessionORM(id=session.id, user_id=user_id)
                    db.add(orm)

                orm.title = session.title
                orm.conversation_id = session.conversation_id
                orm.is_pinned = session.is_pinned
                orm.is_manually_renamed = session.is_manually_renamed
                orm.created_at = _naive_utc(session.created_at)
                orm.updated_at = _naive_utc(session.updated_at)

                await db.commit()
                await db.refresh(orm)
                record = self._session_orm_to_record(orm)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to save chat session: {e}")

        await self._publish(
            user_id,
            RealtimeChange(
                event_type=event_type,
                table=SESSIONS_TABLE,
                new=record.model_dump(mode="json"),
            ),
        )

    async def append_message(
        self,
        message: ChatMessage,
        session_id: str,
        user_id: Optional[str],
    ) -> None:
        """Add a message to a session."""
        user_id = _require_user(user_id)
        try:
            async with self._session_factory() as db:
                await self._get_owned(db, session_id, user_id)
                orm = ChatMessageORM(
                    session_id=session_id,
                    user_id=user_id,
                    role=message.role.value,
                    content=message.content or "",
                    timestamp=message.timestamp,
                    is_favorite=message.is_favorite,
                )
                db.add(orm)
                await db.commit()
                await db.refresh(orm)
                record = self._message_orm_to_record(orm)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to save chat message: {e}")

        await self._publish(
            user_id,
            RealtimeChange(
                event_type=ChangeEventType.INSERT,
                table=MESSAGES_TABLE,
                new=record.model_dump(mode="json"),
            ),
        )

    async def delete_session(self, session_id: str, user_id: Optional[str]) -> None:
        """Delete a chat session and its messages."""
        user_id = _require_user(user_id)
        try:
            async with self._session_factory() as db:
                orm = await self._get_owned(db, session_id, user_id)
                await db.execute(delete(ChatMessageORM).where(ChatMessageORM.session_id == session_id))
                await db.delete(orm)
                await db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to delete chat session: {e}")

        logger.info(f"Deleted chat session {session_id}")
        await self._publish(
            user_id,
            RealtimeChange(
                event_type=ChangeEventType.DELETE,
                table=SESSIONS_TABLE,
                old={"id": session_id, "user_id": user_id},
            ),
        )

    async def delete_messages(self, session_id: str, user_id: Optional[str]) -> None:
        """Delete every message of a session."""
        user_id = _require_user(user_id)
        try:
            async with self._session_factory() as db:
                await self._get_owned(db, session_id, user_id)
                await db.execute(delete(ChatMessageORM).where(ChatMessageORM.session_id == session_id))
                await db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to delete chat messages: {e}")

        await self._publish(
            user_id,
            RealtimeChange(
                event_type=ChangeEventType.DELETE,
                table=MESSAGES_TABLE,
                old={"session_id": session_id, "user_id": user_id},
            ),
        )
