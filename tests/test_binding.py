from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from rowsync.binding import RowBinding
from rowsync.config import SyncOptions
from rowsync.engine import NoopRowHandle, RowSyncEngine
from rowsync.models.change import ChangeEvent, ChangeEventType

if TYPE_CHECKING:
    from conftest import FakeStore


def _update(name: str) -> ChangeEvent:
    return ChangeEvent(event_type=ChangeEventType.UPDATE, new={"id": "u1", "name": name}, table="profiles")


@pytest.mark.asyncio
async def test_binding_emits_state_tuples(store: FakeStore) -> None:
    store.rows[("profiles", "u1")] = {"id": "u1", "name": "Ann"}
    binding = RowBinding("profiles", "u1")
    states: list[tuple[Any, bool]] = []
    binding.subscribe(lambda state: states.append((state[0], state[2])))

    assert binding.state[0] is None
    assert binding.state[2] is False

    engine = binding.engine
    assert isinstance(engine, RowSyncEngine)
    await engine.wait_pending()
    store.emit("realtime-profiles-u1", _update("Ann2"))

    assert states == [({"id": "u1", "name": "Ann"}, True), ({"id": "u1", "name": "Ann2"}, True)]
    binding.close()


@pytest.mark.asyncio
async def test_rebind_releases_before_subscribing(store: FakeStore) -> None:
    binding = RowBinding("profiles", "u1")
    first = binding.engine

    binding.bind("profiles", "u2")

    assert store.calls == [
        ("subscribe", "realtime-profiles-u1"),
        ("unsubscribe", "realtime-profiles-u1"),
        ("subscribe", "realtime-profiles-u2"),
    ]
    assert isinstance(first, RowSyncEngine)
    assert not first.is_attached
    assert store.channel_keys() == ["realtime-profiles-u2"]
    binding.close()
    await first.wait_pending()


@pytest.mark.asyncio
async def test_same_bind_is_a_noop(store: FakeStore) -> None:
    binding = RowBinding("profiles", "u1")
    engine = binding.engine

    binding.bind("profiles", "u1")
    binding.bind("profiles", "u1", SyncOptions())

    assert binding.engine is engine
    assert store.calls == [("subscribe", "realtime-profiles-u1")]
    binding.close()


@pytest.mark.asyncio
async def test_setter_from_state_tuple_writes_through(store: FakeStore) -> None:
    store.rows[("profiles", "u1")] = {"id": "u1", "name": "Ann"}
    binding = RowBinding("profiles", "u1")
    engine = binding.engine
    assert isinstance(engine, RowSyncEngine)
    await engine.wait_pending()

    _value, set_row, _loaded, _detach = binding.state
    set_row(lambda prev: {**prev, "name": "X"})
    await engine.wait_pending()

    assert binding.state[0] == {"id": "u1", "name": "X"}
    assert store.updates[0]["values"] == {"id": "u1", "name": "X"}
    binding.close()


@pytest.mark.asyncio
async def test_close_detaches_and_silences(store: FakeStore) -> None:
    binding = RowBinding("profiles", "u1")
    states: list[Any] = []
    binding.subscribe(states.append)
    engine = binding.engine

    binding.close()
    binding.close()
    store.emit("realtime-profiles-u1", _update("late"))

    assert binding.engine is None
    assert binding.state[0] is None
    assert states == []
    assert store.open_channels("realtime-profiles-u1") == []
    assert isinstance(engine, RowSyncEngine)
    await engine.wait_pending()


def test_binding_without_row_id_is_inert(store: FakeStore, messages: list[str]) -> None:
    binding = RowBinding("profiles", None, SyncOptions(logger=messages.append))

    assert isinstance(binding.engine, NoopRowHandle)
    assert binding.state[0] is None
    assert binding.state[2] is False
    assert store.calls == []
    assert messages == ["rowsync: Invalid row_id for table profiles"]
