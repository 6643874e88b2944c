# tests/test_reconciler.py

import random

from eventhub.api_client import SSEDecoder
from eventhub.models import EventStatus
from eventhub.reconciler import EVENT_CREATED, EVENT_UPDATED, EVENTS_CLEARED, EventView
from mock_service import NewEvent, format_sse


def test_created_messages_are_newest_first(make_event):
    view = EventView()
    view.replace_events([make_event(1)])

    for event_id in (2, 3, 4):
        view.apply(EVENT_CREATED, make_event(event_id).to_wire())

    assert view.ids()[:3] == [4, 3, 2]
    assert view.ids()[-1] == 1


def test_update_is_idempotent(make_event):
    view = EventView()
    view.replace_events([make_event(3), make_event(2), make_event(1)])
    update = make_event(2, status=EventStatus.PROCESSED).to_wire()

    view.apply(EVENT_UPDATED, update)
    once = [e.model_copy() for e in view.events]
    view.apply(EVENT_UPDATED, update)

    assert view.events == once
    assert view.ids() == [3, 2, 1]
    assert view.events[1].status == EventStatus.PROCESSED


def test_update_for_unknown_id_is_dropped(make_event):
    view = EventView()
    view.replace_events([make_event(2), make_event(1)])
    before = list(view.events)

    assert view.apply(EVENT_UPDATED, make_event(99).to_wire()) is True
    assert view.events == before


def test_created_twice_does_not_duplicate(make_event):
    view = EventView()
    view.apply(EVENT_CREATED, make_event(7).to_wire())
    view.apply(EVENT_CREATED, make_event(8).to_wire())
    view.apply(EVENT_CREATED, make_event(7, status=EventStatus.PROCESSED).to_wire())

    assert view.ids() == [8, 7]
    assert view.events[1].status == EventStatus.PROCESSED


def test_cleared_empties_view(make_event):
    view = EventView()
    view.replace_events([make_event(1), make_event(2)])

    assert view.apply(EVENTS_CLEARED, None) is True
    assert len(view) == 0


def test_malformed_and_unknown_messages_are_skipped(make_event):
    view = EventView()
    view.replace_events([make_event(1)])

    assert view.apply(EVENT_CREATED, {"title": "no id"}) is False
    assert view.apply("heartbeat", {"id": 5}) is False
    assert view.ids() == [1]


def test_push_stream_converges_to_service_snapshot(service_store):
    """Random service activity replayed through the SSE wire format ends equal to the listing."""
    service_store.reset_for_testing()
    rng = random.Random(42)
    queue = service_store.subscribe()
    view = EventView()
    decoder = SSEDecoder()

    for step in range(200):
        roll = rng.random()
        if roll < 0.5 or not service_store.events:
            service_store.create(
                NewEvent(title=f"Order #{step}", source="pytest", type="USER_ACTION")
            )
        elif roll < 0.95:
            event_id = rng.choice(list(service_store.events))
            status = rng.choice([EventStatus.PROCESSING, EventStatus.PROCESSED, EventStatus.FAILED])
            service_store.set_status(event_id, status)
        else:
            service_store.clear()

    while not queue.empty():
        name, data = queue.get_nowait()
        for line in format_sse(name, data).split("\n"):
            message = decoder.feed(line)
            if message is not None:
                view.apply(message.name, message.payload())

    assert view.events == service_store.list_events()

    # A fresh snapshot always wins
    view.replace_events(service_store.list_events())
    assert view.events == service_store.list_events()
    service_store.reset_for_testing()
