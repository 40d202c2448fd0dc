"""
Chat service: one conversational turn, persisted through the sync manager.
"""

from typing import Optional

from chatsync.core.config import get_settings
from chatsync.core.exceptions import LLMError, ValidationError
from chatsync.core.logger import logger
from chatsync.interfaces.llm_backend import ILLMBackend
from chatsync.models.chat import SaveResult
from chatsync.models.chat_session import ChatMessage, ChatSession
from chatsync.models.enums import MessageRole
from chatsync.services.chat_history_utils import append_message, now_ms
from chatsync.services.sync_manager import SyncManager


class ChatService:
    """Send a user message, store the bot answer, save the session."""

    def __init__(
        self,
        sync_manager: SyncManager,
        llm_backend: ILLMBackend,
        error_message: Optional[str] = None,
    ):
        self._sync = sync_manager
        self._llm = llm_backend
        self._error_message = error_message or get_settings().LLM_ERROR_MESSAGE

    def _append(self, session: ChatSession, role: MessageRole, content: str) -> ChatSession:
        message = ChatMessage(role=role, content=content, timestamp=now_ms())
        return append_message(
            session,
            message,
            default_title=self._sync.default_title,
            title_max_length=self._sync.title_max_length,
        )

    async def send_message(self, session: ChatSession, text: str) -> SaveResult:
        """
        Run one turn.

        The user message is saved before the backend call so it survives a
        crash or a slow answer. A failing backend call stores the configured
        error message as the bot turn instead of raising.

        Raises:
            ValidationError: If the text is blank
        """
        content = (text or "").strip()
        if not content:
            raise ValidationError("Message must not be empty")

        session = self._append(session, MessageRole.USER, content)
        session = (await self._sync.save_session(session)).session

        conversation_id = session.conversation_id
        try:
            reply = await self._llm.send(content, conversation_id)
            answer = reply.answer
            conversation_id = reply.conversation_id or conversation_id
        except LLMError as e:
            logger.error(f"LLM backend failed for session {session.id}: {e}")
            answer = self._error_message

        session = self._append(session, MessageRole.BOT, answer)
        if conversation_id != session.conversation_id:
            session = session.model_copy(update={"conversation_id": conversation_id})
        return await self._sync.save_session(session)
