"""
Chat sessions API endpoints.

Session metadata CRUD of the hosted store, scoped to the caller.
"""

from fastapi import APIRouter, status
from pydantic import BaseModel

from chatsync.api.deps import CurrentUser, RemoteStore, to_http_exception
from chatsync.core.exceptions import ChatSyncError, NotFoundError
from chatsync.models.chat_session import SessionRecord

router = APIRouter()


class SessionListResponse(BaseModel):
    sessions: list[SessionRecord]


class SessionResponse(BaseModel):
    session: SessionRecord


class SessionUpsertRequest(BaseModel):
    session: SessionRecord


@router.get("", response_model=SessionListResponse)
async def list_chat_sessions(user: CurrentUser, store: RemoteStore):
    """List the caller's sessions, most recently updated first."""
    try:
        sessions = await store.list_sessions(user.id)
    except ChatSyncError as e:
        raise to_http_exception(e)
    return SessionListResponse(
        sessions=[SessionRecord.from_session(s, user.id) for s in sessions]
    )


@router.get("/{session_id}", response_model=SessionResponse)
async def get_chat_session(session_id: str, user: CurrentUser, store: RemoteStore):
    """Get one session's metadata."""
    try:
        session = await store.get_session(session_id, user.id)
        if session is None:
            raise NotFoundError(f"Chat session {session_id} not found")
    except ChatSyncError as e:
        raise to_http_exception(e)
    return SessionResponse(session=SessionRecord.from_session(session, user.id))


@router.post("", response_model=SessionResponse)
async def upsert_chat_session(
    request: SessionUpsertRequest,
    user: CurrentUser,
    store: RemoteStore,
):
    """Create or overwrite a session. The owner is always the caller."""
    session = request.session.to_session()
    try:
        await store.upsert_session(session, user.id)
    except ChatSyncError as e:
        raise to_http_exception(e)
    return SessionResponse(session=SessionRecord.from_session(session, user.id))


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chat_session(session_id: str, user: CurrentUser, store: RemoteStore):
    """Delete a session and its messages."""
    try:
        await store.delete_session(session_id, user.id)
    except ChatSyncError as e:
        raise to_http_exception(e)
