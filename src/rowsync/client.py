"""High-level async store client (REST point reads/writes + websocket change feed)."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from rowsync._constants import DEFAULT_SCHEMA
from rowsync._realtime import RealtimeChannel, RealtimeRuntime
from rowsync._transport import RestTransport
from rowsync.config import RowSyncConfig
from rowsync.exceptions import RowSyncError
from rowsync.models.change import ChangeFilter
from rowsync.store import ChangeCallback

_logger = logging.getLogger(__name__)


class RowStoreClient:
    """Async client implementing :class:`rowsync.store.StoreClient`.

    Usage::

        async with RowStoreClient(RowSyncConfig.from_env()) as client:
            rowsync.initialize(client)
            engine = rowsync.attach("profiles", "u1")
    """

    def __init__(
        self,
        config: RowSyncConfig,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport: RestTransport | None = None
        self._realtime: RealtimeRuntime | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> RowStoreClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        self._transport = RestTransport(self._config, self._http_session)
        self._realtime = RealtimeRuntime(config=self._config, http_session=self._http_session, logger=_logger)
        if self._config.realtime_enabled:
            await self._realtime.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        realtime = self._realtime
        self._realtime = None
        if realtime is not None:
            await realtime.stop()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None

    @property
    def config(self) -> RowSyncConfig:
        return self._config

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> RestTransport:
        if self._transport is None:
            raise RowSyncError("Client not initialized. Use 'async with RowStoreClient(...) as client:'")
        return self._transport

    def _require_realtime(self) -> RealtimeRuntime:
        if self._realtime is None:
            raise RowSyncError("Client not initialized. Use 'async with RowStoreClient(...) as client:'")
        return self._realtime

    # ------------------------------------------------------------------
    # Point read / point update
    # ------------------------------------------------------------------

    async def select_single(
        self,
        table: str,
        *,
        column: str,
        value: Any,
        columns: str = "*",
        schema: str = DEFAULT_SCHEMA,
    ) -> dict[str, Any]:
        return await self._require_transport().select_single(
            table,
            column=column,
            value=value,
            columns=columns,
            schema=schema,
        )

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        *,
        column: str,
        value: Any,
        schema: str = DEFAULT_SCHEMA,
    ) -> None:
        await self._require_transport().update(table, values, column=column, value=value, schema=schema)

    # ------------------------------------------------------------------
    # Change feed
    # ------------------------------------------------------------------

    def subscribe(self, channel_key: str, change_filter: ChangeFilter, callback: ChangeCallback) -> RealtimeChannel:
        realtime = self._require_realtime()
        if not self._config.realtime_enabled:
            _logger.debug("Realtime disabled; %s will not receive events", channel_key)
        return realtime.subscribe(channel_key, change_filter, callback)

    def unsubscribe(self, handle: RealtimeChannel) -> None:
        # Releasing after the client closed is a no-op.
        if self._realtime is None:
            handle.closed = True
            return
        self._realtime.unsubscribe(handle)

    def has_channel(self, channel_key: str) -> bool:
        return self._realtime is not None and self._realtime.has_channel(channel_key)

    def channel_keys(self) -> list[str]:
        return self._realtime.channel_keys() if self._realtime is not None else []
