"""
Unit tests for the local session store.
"""

import json

from chatsync.core.exceptions import InfrastructureError
from chatsync.infrastructure.local.key_value_storage import InMemoryKeyValueStorage
from chatsync.infrastructure.local.local_session_store import LocalSessionStore
from chatsync.models.chat_session import ChatMessage, ChatSession
from chatsync.models.enums import MessageRole


def _session(session_id: str, updated_at: int = 1_000, **kwargs) -> ChatSession:
    return ChatSession(
        id=session_id,
        title=kwargs.pop("title", f"Chat {session_id}"),
        messages=kwargs.pop(
            "messages", [ChatMessage(role=MessageRole.USER, content="hi", timestamp=updated_at)]
        ),
        created_at=kwargs.pop("created_at", updated_at),
        updated_at=updated_at,
        **kwargs,
    )


class FailingStorage(InMemoryKeyValueStorage):
    def set_item(self, key: str, value: str) -> None:
        raise InfrastructureError("quota exceeded")


def test_save_twice_keeps_one_copy(local_store):
    """Saving the same session twice stores it once."""
    session = _session("a")
    local_store.save(session)
    local_store.save(session)

    assert [s.id for s in local_store.get_all()] == ["a"]


def test_save_overwrites_existing(local_store):
    local_store.save(_session("a", title="Before"))
    local_store.save(_session("a", title="After"))

    assert local_store.get("a").title == "After"


def test_get_all_sorted_pinned_then_recent(local_store):
    local_store.save(_session("old", updated_at=1_000))
    local_store.save(_session("new", updated_at=2_000))
    local_store.save(_session("pinned", updated_at=500, is_pinned=True))

    assert [s.id for s in local_store.get_all()] == ["pinned", "new", "old"]


def test_storage_uses_camel_case_shape(storage, local_store):
    local_store.save(_session("a", conversation_id="conv-1", is_pinned=True))

    stored = json.loads(storage.get_item("chat_sessions"))
    assert stored[0]["conversationId"] == "conv-1"
    assert stored[0]["isPinned"] is True
    assert "createdAt" in stored[0] and "updatedAt" in stored[0]
    assert stored[0]["messages"][0]["isFavorite"] is False


def test_corrupt_data_reads_as_empty(storage, local_store):
    storage.set_item("chat_sessions", "{not json")
    assert local_store.get_all() == []


def test_invalid_entries_are_skipped(storage, local_store):
    valid = _session("ok").to_storage()
    storage.set_item("chat_sessions", json.dumps([{"id": "broken"}, valid]))

    assert [s.id for s in local_store.get_all()] == ["ok"]


def test_write_failure_is_swallowed():
    store = LocalSessionStore(FailingStorage())
    store.save(_session("a"))
    assert store.get_all() == []


def test_delete_is_noop_when_absent(local_store):
    local_store.save(_session("a"))
    local_store.delete("missing")
    local_store.delete("a")
    assert local_store.get_all() == []


def test_rename_bumps_updated_at_and_freezes_title(local_store):
    local_store.save(_session("a", updated_at=1_000))

    renamed = local_store.rename("a", "Renamed")

    assert renamed.title == "Renamed"
    assert renamed.is_manually_renamed is True
    assert renamed.updated_at > 1_000
    assert local_store.get("a") == renamed


def test_toggle_pin(local_store):
    local_store.save(_session("a"))

    assert local_store.toggle_pin("a").is_pinned is True
    assert local_store.toggle_pin("a").is_pinned is False
    assert local_store.toggle_pin("missing") is None


def test_pending_list(storage, local_store):
    local_store.add_pending("a")
    local_store.add_pending("a")
    local_store.add_pending("b")
    assert local_store.get_pending() == ["a", "b"]
    assert json.loads(storage.get_item("pending_sync_sessions")) == ["a", "b"]

    local_store.remove_pending("a")
    local_store.remove_pending("b")
    assert local_store.get_pending() == []
    assert storage.get_item("pending_sync_sessions") is None


def test_replace_all(local_store):
    local_store.save(_session("a"))
    local_store.replace_all([_session("b"), _session("c")])
    assert {s.id for s in local_store.get_all()} == {"b", "c"}
