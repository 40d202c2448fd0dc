"""
Chat messages API endpoints.
"""

from fastapi import APIRouter, Query, status
from pydantic import BaseModel

from chatsync.api.deps import CurrentUser, RemoteStore, to_http_exception
from chatsync.core.exceptions import ChatSyncError
from chatsync.models.chat_session import MessageRecord
from chatsync.models.enums import MessageRole

router = APIRouter()


class MessageListResponse(BaseModel):
    messages: list[MessageRecord]


class MessageIn(BaseModel):
    role: MessageRole
    content: str = ""
    timestamp: int
    is_favorite: bool = False


class MessageAppendRequest(BaseModel):
    session_id: str
    message: MessageIn


@router.get("", response_model=MessageListResponse)
async def list_chat_messages(
    user: CurrentUser,
    store: RemoteStore,
    session_id: str = Query(...),
):
    """List a session's messages. Unknown sessions have no messages."""
    try:
        session = await store.get_session(session_id, user.id)
        if session is None:
            return MessageListResponse(messages=[])
        messages = await store.get_messages(session_id)
    except ChatSyncError as e:
        raise to_http_exception(e)
    return MessageListResponse(
        messages=[MessageRecord.from_message(m, session_id, user.id) for m in messages]
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def append_chat_message(
    request: MessageAppendRequest,
    user: CurrentUser,
    store: RemoteStore,
):
    """Append one message to a session owned by the caller."""
    record = MessageRecord(
        session_id=request.session_id,
        user_id=user.id,
        **request.message.model_dump(),
    )
    try:
        await store.append_message(record.to_message(), request.session_id, user.id)
    except ChatSyncError as e:
        raise to_http_exception(e)
    return {"success": True}


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chat_messages(
    user: CurrentUser,
    store: RemoteStore,
    session_id: str = Query(...),
):
    """Delete every message of a session owned by the caller."""
    try:
        await store.delete_messages(session_id, user.id)
    except ChatSyncError as e:
        raise to_http_exception(e)
