"""
Unit tests for the event bus.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from chatsync.models.enums import ChangeKind
from chatsync.services.event_bus import ChangeEvent, EventBus


def test_handlers_run_in_registration_order(event_bus):
    calls = []
    event_bus.subscribe(lambda e: calls.append(("first", e.kind)))
    event_bus.subscribe(lambda e: calls.append(("second", e.kind)))

    delivered = event_bus.publish(ChangeKind.SESSION_SAVED, session_id="a")

    assert delivered == 2
    assert calls == [
        ("first", ChangeKind.SESSION_SAVED),
        ("second", ChangeKind.SESSION_SAVED),
    ]


def test_event_carries_payload_and_session_id(event_bus):
    handler = MagicMock()
    event_bus.subscribe(handler)

    event_bus.publish(ChangeKind.SESSION_RENAMED, {"title": "x"}, session_id="s1")

    handler.assert_called_once_with(
        ChangeEvent(kind=ChangeKind.SESSION_RENAMED, payload={"title": "x"}, session_id="s1")
    )


def test_publish_without_subscribers_is_lost(event_bus):
    assert event_bus.publish(ChangeKind.SESSION_DELETED) == 0

    handler = MagicMock()
    event_bus.subscribe(handler)
    handler.assert_not_called()


def test_unsubscribe_stops_delivery(event_bus):
    handler = MagicMock()
    subscription = event_bus.subscribe(handler)

    subscription.unsubscribe()
    subscription.unsubscribe()
    event_bus.publish(ChangeKind.SESSION_SAVED)

    handler.assert_not_called()
    assert subscription.active is False
    assert event_bus.subscriber_count == 0


def test_subscription_as_context_manager(event_bus):
    handler = MagicMock()
    with event_bus.subscribe(handler):
        event_bus.publish(ChangeKind.SESSION_SAVED)
    event_bus.publish(ChangeKind.SESSION_SAVED)

    assert handler.call_count == 1


def test_failing_handler_does_not_stop_others(event_bus):
    def broken(event):
        raise RuntimeError("boom")

    handler = MagicMock()
    event_bus.subscribe(broken)
    event_bus.subscribe(handler)

    event_bus.publish(ChangeKind.SESSION_SAVED)

    handler.assert_called_once()


def test_handler_added_during_publish_waits_for_next_event(event_bus):
    late = MagicMock()

    def subscribe_late(event):
        event_bus.subscribe(late)

    event_bus.subscribe(subscribe_late)
    event_bus.publish(ChangeKind.SESSION_SAVED)
    late.assert_not_called()

    event_bus.publish(ChangeKind.SESSION_SAVED)
    late.assert_called_once()


@pytest.mark.asyncio
async def test_async_handlers_are_scheduled(event_bus):
    received = []

    async def handler(event):
        await asyncio.sleep(0)
        received.append(event.kind)

    event_bus.subscribe(handler)
    event_bus.publish(ChangeKind.SESSIONS_RELOADED)
    await event_bus.drain()

    assert received == [ChangeKind.SESSIONS_RELOADED]


def test_async_handler_without_loop_is_dropped(event_bus):
    async def handler(event):
        raise AssertionError("should not run")

    event_bus.subscribe(handler)
    assert event_bus.publish(ChangeKind.SESSION_SAVED) == 1
