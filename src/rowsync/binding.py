"""Observable binding of one row for a rendering layer."""

from __future__ import annotations

import logging
from collections.abc import Callable

from rowsync.config import SyncOptions
from rowsync.engine import NoopRowHandle, RowState, RowSyncEngine, RowUpdater, attach

_logger = logging.getLogger(__name__)

StateListener = Callable[[RowState], None]


class RowBinding:
    """Exposes ``(value, set_row, loaded, detach)`` and re-renders on change.

    Rebinding to another ``(table, row_id)`` tears the old engine down
    before the new one is attached, so at most one subscription is alive
    per binding.
    """

    def __init__(
        self,
        table: str,
        row_id: str | int | None,
        options: SyncOptions | None = None,
    ) -> None:
        self._listeners: list[StateListener] = []
        self._engine: RowSyncEngine | NoopRowHandle | None = None
        self._remove_engine_listener: Callable[[], None] | None = None
        self._key: tuple[str, str | int | None, SyncOptions] | None = None
        self.bind(table, row_id, options)

    @property
    def engine(self) -> RowSyncEngine | NoopRowHandle | None:
        return self._engine

    @property
    def state(self) -> RowState:
        if self._engine is None:
            return None, _noop_setter, False, _noop
        return self._engine.as_tuple()

    def bind(self, table: str, row_id: str | int | None, options: SyncOptions | None = None) -> None:
        """Follow ``table``/``row_id``; no-op when nothing changed."""
        options = options or SyncOptions()
        key = (table, row_id, options)
        if key == self._key and self._engine is not None:
            return

        # Release before acquire.
        self._release()
        self._key = key
        engine = attach(table, row_id, options)
        self._engine = engine
        self._remove_engine_listener = engine.add_listener(lambda _engine: self._emit())
        _logger.debug("Bound %s/%s", table, row_id)
        self._emit()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call *listener* with the state tuple after every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        self._release()
        self._key = None
        self._listeners.clear()

    def _release(self) -> None:
        remove = self._remove_engine_listener
        self._remove_engine_listener = None
        if remove is not None:
            remove()
        engine = self._engine
        self._engine = None
        if engine is not None:
            engine.detach()

    def _emit(self) -> None:
        state = self.state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                _logger.debug("Binding listener failed", exc_info=True)


def _noop_setter(updater: RowUpdater) -> None:
    return None


def _noop() -> None:
    return None
