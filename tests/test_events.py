"""
Tests for EventSystem.
"""
import pytest
from core.events import Event, EventSystem, EventType


def test_event_system_initialization():
    """Test EventSystem initialization."""
    system = EventSystem()

    assert system is not None
    assert system.get_subscription_count() == 0


def test_subscribe_and_publish():
    """Test subscribing to and publishing events."""
    system = EventSystem()
    received_events = []

    sub_id = system.subscribe(EventType.BUFFER_CHANGED, received_events.append)

    assert sub_id is not None
    assert system.get_subscription_count() == 1

    system.publish(EventType.BUFFER_CHANGED, data={'length': 3})

    assert len(received_events) == 1
    assert received_events[0].event_type == "deck.buffer_changed"
    assert received_events[0].data == {'length': 3}


def test_unsubscribe():
    """Test unsubscribing from events."""
    system = EventSystem()
    received_events = []

    sub_id = system.subscribe(EventType.DECISION, received_events.append)
    system.unsubscribe(sub_id)
    system.publish(EventType.DECISION)

    assert received_events == []
    assert system.get_subscription_count() == 0


def test_unsubscribe_unknown_id_is_noop():
    system = EventSystem()
    system.unsubscribe("does-not-exist")
    assert system.get_subscription_count() == 0


def test_priority_order():
    """Higher priority subscribers are called first."""
    system = EventSystem()
    order = []

    system.subscribe("x", lambda e: order.append("low"), priority=10)
    system.subscribe("x", lambda e: order.append("high"), priority=90)
    system.publish("x")

    assert order == ["high", "low"]


def test_mark_handled_stops_delivery():
    system = EventSystem()
    calls = []

    def first(event: Event):
        calls.append("first")
        event.mark_handled()

    system.subscribe("x", first, priority=90)
    system.subscribe("x", lambda e: calls.append("second"), priority=10)
    system.publish("x")

    assert calls == ["first"]


def test_filter_fn():
    system = EventSystem()
    received = []
    system.subscribe("x", received.append, filter_fn=lambda e: e.data == "keep")

    system.publish("x", data="drop")
    system.publish("x", data="keep")

    assert [e.data for e in received] == ["keep"]


def test_failing_handler_does_not_block_others():
    system = EventSystem()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    system.subscribe("x", broken, priority=90)
    system.subscribe("x", received.append, priority=10)
    system.publish("x")

    assert len(received) == 1


def test_history_is_bounded():
    system = EventSystem(max_history=5)
    for i in range(10):
        system.publish("x", data=i)

    history = system.get_event_history()
    assert [e.data for e in history] == [5, 6, 7, 8, 9]
    assert len(system.get_event_history(limit=2)) == 2


@pytest.mark.parametrize("bad", ["", "   ", None])
def test_invalid_event_type_rejected(bad):
    system = EventSystem()
    with pytest.raises(ValueError):
        system.publish(bad)
    with pytest.raises(ValueError):
        system.subscribe(bad, lambda e: None)


def test_non_callable_rejected():
    system = EventSystem()
    with pytest.raises(ValueError):
        system.subscribe("x", "not callable")
