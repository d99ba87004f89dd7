from __future__ import annotations

from typing import TYPE_CHECKING

from rowsync.models.change import ChangeEvent, ChangeEventType, ChangeFilter
from rowsync.models.row import RowIdentity
from rowsync.subscription import ChangeFeedSubscription

if TYPE_CHECKING:
    from conftest import FakeStore

KEY = "realtime-profiles-u1"


def _subscription(store: FakeStore, received: list[ChangeEvent], messages: list[str]) -> ChangeFeedSubscription:
    return ChangeFeedSubscription(
        store,
        RowIdentity(table="profiles", row_id="u1"),
        received.append,
        schema="public",
        logger=messages.append,
    )


def _update(name: str) -> ChangeEvent:
    return ChangeEvent(event_type=ChangeEventType.UPDATE, new={"id": "u1", "name": name})


def test_open_registers_row_scoped_filter(store: FakeStore, messages: list[str]) -> None:
    received: list[ChangeEvent] = []
    sub = _subscription(store, received, messages)

    handle = sub.open()

    assert sub.is_open
    assert sub.handle is handle
    assert sub.channel_key == KEY
    assert store.channels[0].change_filter == ChangeFilter(
        table="profiles",
        schema="public",
        event="*",
        filter="id=eq.u1",
    )
    assert messages == []


def test_reopen_releases_previous_registration_first(store: FakeStore, messages: list[str]) -> None:
    sub = _subscription(store, [], messages)

    first = sub.open()
    second = sub.open()

    assert first.closed
    assert not second.closed
    assert store.calls == [("subscribe", KEY), ("unsubscribe", KEY), ("subscribe", KEY)]
    # Our own previous handle is released before the duplicate check runs.
    assert messages == []


def test_existing_external_registration_is_reported(store: FakeStore, messages: list[str]) -> None:
    other = _subscription(store, [], [])
    other.open()

    sub = _subscription(store, [], messages)
    sub.open()

    assert len(messages) == 1
    assert "Channel realtime-profiles-u1 already exists" in messages[0]
    # The check itself must not register anything.
    assert store.calls == [("subscribe", KEY), ("subscribe", KEY)]


def test_events_delivered_in_order_while_open(store: FakeStore, messages: list[str]) -> None:
    received: list[ChangeEvent] = []
    sub = _subscription(store, received, messages)
    sub.open()

    store.emit(KEY, _update("a"))
    store.emit(KEY, _update("b"))

    assert [ev.new["name"] for ev in received] == ["a", "b"]


def test_close_is_idempotent_and_stops_delivery(store: FakeStore, messages: list[str]) -> None:
    received: list[ChangeEvent] = []
    sub = _subscription(store, received, messages)
    handle = sub.open()
    callback = store.channels[0].callback

    sub.close()
    sub.close()
    sub.close(handle)
    callback(_update("late"))

    assert not sub.is_open
    assert received == []
    assert store.calls.count(("unsubscribe", KEY)) == 1


def test_late_event_from_replaced_registration_is_dropped(store: FakeStore, messages: list[str]) -> None:
    received: list[ChangeEvent] = []
    sub = _subscription(store, received, messages)
    sub.open()
    stale_callback = store.channels[0].callback
    sub.open()

    stale_callback(_update("stale"))
    store.emit(KEY, _update("fresh"))

    assert [ev.new["name"] for ev in received] == ["fresh"]
