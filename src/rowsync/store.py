"""Structural interface of the store client consumed by the sync engine.

The production implementation is :class:`rowsync.client.RowStoreClient`;
tests pass an in-memory double.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from rowsync.models.change import ChangeEvent, ChangeFilter

ChangeCallback = Callable[[ChangeEvent], None]


class ChannelHandle(Protocol):
    """Opaque token for one live change-feed registration."""

    @property
    def topic(self) -> str: ...

    @property
    def closed(self) -> bool: ...


class StoreClient(Protocol):
    async def select_single(
        self,
        table: str,
        *,
        column: str,
        value: Any,
        columns: str = "*",
        schema: str = "public",
    ) -> dict[str, Any]:
        """Return the one row where ``column = value``.

        Raises :class:`rowsync.exceptions.RowNotFoundError` when no row
        matches and another :class:`rowsync.exceptions.RowSyncError` on
        any other failure.
        """
        ...

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        *,
        column: str,
        value: Any,
        schema: str = "public",
    ) -> None: ...

    def subscribe(
        self,
        channel_key: str,
        change_filter: ChangeFilter,
        callback: ChangeCallback,
    ) -> ChannelHandle: ...

    def unsubscribe(self, handle: ChannelHandle) -> None: ...

    def has_channel(self, channel_key: str) -> bool:
        """Side-effect-free check for a live registration under *channel_key*."""
        ...

    def channel_keys(self) -> list[str]: ...
