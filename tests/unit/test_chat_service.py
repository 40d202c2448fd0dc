"""
Unit tests for the chat service.
"""

from typing import Optional

import pytest

from chatsync.core.exceptions import LLMError, ValidationError
from chatsync.interfaces.llm_backend import ILLMBackend
from chatsync.models.chat import ChatReply
from chatsync.models.enums import MessageRole, SyncOutcome
from chatsync.services.chat_service import ChatService
from chatsync.services.sync_manager import SyncManager


class FakeBackend(ILLMBackend):
    def __init__(self, answer: str = "Sure!", conversation_id: Optional[str] = "conv-1", error: bool = False):
        self.answer = answer
        self.conversation_id = conversation_id
        self.error = error
        self.calls = []

    async def send(self, message: str, conversation_id: Optional[str] = None) -> ChatReply:
        self.calls.append((message, conversation_id))
        if self.error:
            raise LLMError("backend down")
        return ChatReply(answer=self.answer, conversation_id=self.conversation_id)


@pytest.fixture
def sync_manager(local_store, remote_store, event_bus, test_user_id):
    return SyncManager(
        local_store,
        remote_store,
        event_bus,
        user_id=test_user_id,
        debounce_seconds=0,
        retry_delay_seconds=0,
    )


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_turn_is_stored_locally_and_remotely(self, sync_manager, local_store, remote_store):
        backend = FakeBackend(answer="Use a bread starter.")
        service = ChatService(sync_manager, backend)
        session = sync_manager.create_session()

        result = await service.send_message(session, "  How do I make sourdough?  ")

        assert result.outcome == SyncOutcome.SYNCED
        stored = local_store.get(session.id)
        assert [(m.role, m.content) for m in stored.messages] == [
            (MessageRole.USER, "How do I make sourdough?"),
            (MessageRole.BOT, "Use a bread starter."),
        ]
        assert stored.title == "How do I make sourdough?"
        assert stored.conversation_id == "conv-1"
        assert backend.calls == [("How do I make sourdough?", None)]
        assert len(await remote_store.get_messages(session.id)) == 2

    @pytest.mark.asyncio
    async def test_conversation_id_is_reused(self, sync_manager):
        backend = FakeBackend()
        service = ChatService(sync_manager, backend)

        first = await service.send_message(sync_manager.create_session(), "hi")
        await service.send_message(first.session, "and again")

        assert backend.calls[1] == ("and again", "conv-1")

    @pytest.mark.asyncio
    async def test_backend_failure_stores_error_answer(self, sync_manager):
        service = ChatService(sync_manager, FakeBackend(error=True), error_message="(error)")

        result = await service.send_message(sync_manager.create_session(), "hello")

        bot = result.session.messages[-1]
        assert bot.role == MessageRole.BOT
        assert bot.content == "(error)"
        assert result.session.conversation_id is None

    @pytest.mark.asyncio
    async def test_blank_text_is_rejected(self, sync_manager):
        service = ChatService(sync_manager, FakeBackend())
        with pytest.raises(ValidationError):
            await service.send_message(sync_manager.create_session(), "   ")

    @pytest.mark.asyncio
    async def test_guest_turn_stays_local(self, local_store, event_bus):
        manager = SyncManager(local_store, None, event_bus, debounce_seconds=0)
        service = ChatService(manager, FakeBackend())

        result = await service.send_message(manager.create_session(), "offline question")

        assert result.outcome == SyncOutcome.LOCAL_ONLY
        assert len(manager.list_sessions()[0].messages) == 2
