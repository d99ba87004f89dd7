"""Row synchronization engine.

Binds one row of the store to a local current value, fed by three paths:

- one initial point read,
- one change-feed subscription for the row,
- optimistic local edits, persisted in the background.

All three write into a single :class:`rowsync.state.cell.RowCell`; see
:mod:`rowsync.state.policy` for the merge rules.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine, Mapping
from typing import Any, Protocol, TypeVar

from rowsync import registry
from rowsync.config import SyncOptions
from rowsync.exceptions import RowSyncError
from rowsync.models.change import ChangeEvent
from rowsync.models.row import RowIdentity
from rowsync.state.cell import UNKNOWN, RowCell
from rowsync.state.events import RowUpdate
from rowsync.store import StoreClient
from rowsync.subscription import ChangeFeedSubscription

_logger = logging.getLogger(__name__)

T = TypeVar("T")

# A replacement row, or a callable taking the previous row (or None).
RowUpdater = Any
RowState = tuple[Any, Callable[[RowUpdater], None], bool, Callable[[], None]]


class RowHandle(Protocol):
    """What :func:`attach` hands back to a consumer."""

    @property
    def value(self) -> Any: ...

    @property
    def loaded(self) -> bool: ...

    def set_row(self, updater: RowUpdater) -> None: ...

    def detach(self) -> None: ...

    def as_tuple(self) -> RowState: ...


class NoopRowHandle:
    """Handle returned when no row id was given.

    Value is permanently ``None``, loaded permanently ``False``; the setter
    and detach do nothing.
    """

    def __init__(self, table: str) -> None:
        self.table = table

    @property
    def value(self) -> None:
        return None

    @property
    def loaded(self) -> bool:
        return False

    def set_row(self, updater: RowUpdater) -> None:
        return None

    def detach(self) -> None:
        return None

    def add_listener(self, listener: Callable[[Any], None]) -> Callable[[], None]:
        return lambda: None

    def as_tuple(self) -> RowState:
        return None, self.set_row, False, self.detach


class RowSyncEngine:
    """Keeps one row and a local value consistent.

    Usage::

        engine = RowSyncEngine(RowIdentity(table="profiles", row_id="u1")).attach()
        await engine.wait_loaded()
        engine.set_row(lambda prev: {**prev, "name": "X"})
        ...
        engine.detach()

    Must be attached from inside a running event loop. Exactly one read and
    one subscription are made per instance; to follow another row, detach
    and create a new engine.
    """

    def __init__(self, identity: RowIdentity, options: SyncOptions | None = None) -> None:
        self._identity = identity
        self._options = options or SyncOptions(primary_key=identity.primary_key)
        self._cell = RowCell()
        self._client: StoreClient | None = None
        self._subscription: ChangeFeedSubscription | None = None
        self._read_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._listeners: list[Callable[[RowSyncEngine], None]] = []
        self._loaded_event = asyncio.Event()
        self._attached = False
        self._detached = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self) -> RowSyncEngine:
        """Start the initial read and open the row subscription.

        Returns immediately with ``value`` set to ``UNKNOWN``.

        Raises
        ------
        RowSyncConfigError
            If the client registry was never initialized.
        """
        if self._attached or self._detached:
            raise RowSyncError(f"Engine for {self.channel_key} was already attached")

        client = registry.get_client()
        loop = asyncio.get_running_loop()
        self._client = client
        self._attached = True

        try:
            self._read_task = self._spawn(self._fetch_initial(client), loop)
            self._subscription = ChangeFeedSubscription(
                client,
                self._identity,
                self._on_change,
                schema=self._options.schema,
                logger=self._options.logger,
            )
            self._subscription.open()
        except BaseException:
            self.detach()
            raise

        _logger.debug("Attached %s", self.channel_key)
        return self

    def detach(self) -> None:
        """Stop syncing. Idempotent.

        The in-flight read is cancelled and its result ignored; the
        subscription is released. Background persists already scheduled are
        left to finish but never touch local state.
        """
        if self._detached:
            return
        self._detached = True

        read_task = self._read_task
        self._read_task = None
        if read_task is not None and not read_task.done():
            read_task.cancel()

        subscription = self._subscription
        self._subscription = None
        if subscription is not None:
            subscription.close()

        self._listeners.clear()
        # Wake wait_loaded() callers; they see loaded is still False.
        self._loaded_event.set()
        _logger.debug("Detached %s", self.channel_key)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def identity(self) -> RowIdentity:
        return self._identity

    @property
    def options(self) -> SyncOptions:
        return self._options

    @property
    def channel_key(self) -> str:
        return self._identity.channel_key

    @property
    def value(self) -> Any:
        """Current row, ``None`` if absent, or ``UNKNOWN`` before anything arrived."""
        return self._cell.value

    @property
    def loaded(self) -> bool:
        return self._cell.loaded

    @property
    def is_attached(self) -> bool:
        return self._attached and not self._detached

    def as_tuple(self) -> RowState:
        """``(value, set_row, loaded, detach)`` with ``UNKNOWN`` rendered as ``None``."""
        value = self._cell.value
        return (None if value is UNKNOWN else value), self.set_row, self._cell.loaded, self.detach

    def add_listener(self, listener: Callable[[RowSyncEngine], None]) -> Callable[[], None]:
        """Call *listener* with this engine after every state change."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def wait_loaded(self, timeout: float | None = None) -> bool:
        """Wait until ``loaded`` is true; return ``False`` on timeout or detach."""
        if self._cell.loaded:
            return True
        if self._detached:
            return False
        try:
            await asyncio.wait_for(self._loaded_event.wait(), timeout)
        except TimeoutError:
            return False
        return self._cell.loaded

    async def wait_pending(self) -> None:
        """Wait for the initial read and every scheduled persist to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Optimistic writes
    # ------------------------------------------------------------------

    def set_row(self, updater: RowUpdater) -> None:
        """Apply *updater* locally, then persist in the background.

        *updater* is a replacement value or a callable ``prev -> new`` where
        ``prev`` is ``None`` until a value is known. The new value is visible
        as soon as this returns; persistence failures are only logged.
        """
        if not self.is_attached:
            _logger.debug("set_row ignored for %s: engine not attached", self.channel_key)
            return

        previous = self._cell.value
        if previous is UNKNOWN:
            previous = None
        new_value = updater(previous) if callable(updater) else updater

        self._apply(RowUpdate.local(new_value))

        if self._options.auto_sync and new_value is not None:
            self._spawn(self._persist(new_value))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _spawn(
        self,
        coro: Coroutine[Any, Any, T],
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> asyncio.Task[T]:
        task = (loop or asyncio.get_running_loop()).create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _fetch_initial(self, client: StoreClient) -> None:
        identity = self._identity
        row: Any = None
        try:
            row = await client.select_single(
                identity.table,
                column=identity.primary_key,
                value=identity.row_id,
                columns=self._options.select,
                schema=self._options.schema,
            )
        except Exception as exc:
            if self._detached:
                return
            if not isinstance(exc, RowSyncError):
                _logger.debug("Initial read for %s failed", self.channel_key, exc_info=True)
            self._options.logger(f"Failed to fetch row from {identity.table}: {exc}")

        if self._detached:
            return
        self._apply(RowUpdate.read(row))

    async def _persist(self, row: Any) -> None:
        identity = self._identity
        values = dict(row) if isinstance(row, Mapping) else row
        try:
            await self._require_client().update(
                identity.table,
                values,
                column=identity.primary_key,
                value=identity.row_id,
                schema=self._options.schema,
            )
        except Exception as exc:
            if not isinstance(exc, RowSyncError):
                _logger.debug("Persist for %s failed", self.channel_key, exc_info=True)
            self._options.logger(f"Auto-sync failed: {exc}")

    def _on_change(self, event: ChangeEvent) -> None:
        if self._detached:
            return
        self._apply(RowUpdate.feed(None if event.is_delete else event.new))

    def _apply(self, update: RowUpdate) -> None:
        changed = self._cell.apply(update)
        if self._cell.loaded:
            self._loaded_event.set()
        if changed:
            self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                _logger.debug("Row listener failed for %s", self.channel_key, exc_info=True)

    def _require_client(self) -> StoreClient:
        if self._client is None:
            raise RowSyncError("Engine not attached")
        return self._client


def attach(
    table: str,
    row_id: str | int | None,
    options: SyncOptions | None = None,
) -> RowSyncEngine | NoopRowHandle:
    """Start syncing ``table`` row ``row_id``.

    A missing *row_id* is not an error: a :class:`NoopRowHandle` is
    returned and, unless ``options.skip`` is set, one diagnostic is logged.
    """
    options = options or SyncOptions()
    if row_id is None:
        if not options.skip:
            options.logger(f"rowsync: Invalid row_id for table {table}")
        return NoopRowHandle(table)

    identity = RowIdentity(table=table, row_id=row_id, primary_key=options.primary_key)
    return RowSyncEngine(identity, options).attach()
