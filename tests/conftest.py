from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest

from rowsync import registry
from rowsync.exceptions import RowNotFoundError
from rowsync.models.change import ChangeEvent, ChangeFilter
from rowsync.store import ChangeCallback


@dataclass(eq=False)
class FakeChannel:
    channel_key: str
    change_filter: ChangeFilter
    callback: ChangeCallback
    closed: bool = False

    @property
    def topic(self) -> str:
        return f"realtime:{self.channel_key}"


@dataclass
class FakeStore:
    """In-memory StoreClient.

    With ``hold_reads`` set, each read blocks on a future the test resolves
    via :meth:`resolve_read` / :meth:`fail_read`, so interleavings with
    change events are fully deterministic.
    """

    rows: dict[tuple[str, Any], dict[str, Any]] = field(default_factory=dict)
    hold_reads: bool = False
    update_error: Exception | None = None
    reads: list[dict[str, Any]] = field(default_factory=list)
    updates: list[dict[str, Any]] = field(default_factory=list)
    channels: list[FakeChannel] = field(default_factory=list)
    calls: list[tuple[str, str]] = field(default_factory=list)
    _pending: list[asyncio.Future[dict[str, Any]]] = field(default_factory=list)

    async def select_single(
        self,
        table: str,
        *,
        column: str,
        value: Any,
        columns: str = "*",
        schema: str = "public",
    ) -> dict[str, Any]:
        self.reads.append({"table": table, "column": column, "value": value, "columns": columns, "schema": schema})
        if self.hold_reads:
            fut: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
            self._pending.append(fut)
            return await fut
        row = self.rows.get((table, value))
        if row is None:
            raise RowNotFoundError("JSON object requested, multiple (or no) rows returned", code="PGRST116")
        return row

    def resolve_read(self, row: dict[str, Any]) -> None:
        fut = self._pending.pop(0)
        if not fut.done():
            fut.set_result(row)

    def fail_read(self, exc: Exception) -> None:
        fut = self._pending.pop(0)
        if not fut.done():
            fut.set_exception(exc)

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        *,
        column: str,
        value: Any,
        schema: str = "public",
    ) -> None:
        self.updates.append({"table": table, "values": values, "column": column, "value": value, "schema": schema})
        if self.update_error is not None:
            raise self.update_error

    def subscribe(self, channel_key: str, change_filter: ChangeFilter, callback: ChangeCallback) -> FakeChannel:
        channel = FakeChannel(channel_key=channel_key, change_filter=change_filter, callback=callback)
        self.channels.append(channel)
        self.calls.append(("subscribe", channel_key))
        return channel

    def unsubscribe(self, handle: FakeChannel) -> None:
        self.calls.append(("unsubscribe", handle.channel_key))
        handle.closed = True

    def has_channel(self, channel_key: str) -> bool:
        return any(ch.channel_key == channel_key and not ch.closed for ch in self.channels)

    def channel_keys(self) -> list[str]:
        return [ch.channel_key for ch in self.channels if not ch.closed]

    def open_channels(self, channel_key: str) -> list[FakeChannel]:
        return [ch for ch in self.channels if ch.channel_key == channel_key and not ch.closed]

    def emit(self, channel_key: str, event: ChangeEvent) -> None:
        for channel in self.open_channels(channel_key):
            channel.callback(event)


@pytest.fixture
def store(monkeypatch: pytest.MonkeyPatch) -> FakeStore:
    fake = FakeStore()
    monkeypatch.setattr(registry, "_client", fake)
    return fake


@pytest.fixture
def messages() -> list[str]:
    return []
