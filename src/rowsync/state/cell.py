"""Current-value cell shared by the read, feed, and local-edit paths."""

from __future__ import annotations

from typing import Any, Final

from rowsync.state.events import RowUpdate, UpdateKind, UpdateSource
from rowsync.state.policy import marks_loaded, should_replace_value


class _Unknown:
    """Sentinel for "not fetched yet" (distinct from ``None``, a definite absence)."""

    _instance: _Unknown | None = None

    def __new__(cls) -> _Unknown:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNKNOWN"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Unknown:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Unknown:
        return self


UNKNOWN: Final = _Unknown()


class RowCell:
    """Merged view of one row.

    Deterministic: the same sequence of :class:`RowUpdate` always yields the
    same ``value``/``loaded`` pair. ``UNKNOWN`` never comes back once
    replaced and ``loaded`` never goes back to false.
    """

    __slots__ = ("_value", "_loaded", "_feed_seen")

    def __init__(self) -> None:
        self._value: Any = UNKNOWN
        self._loaded = False
        self._feed_seen = False

    @property
    def value(self) -> Any:
        return self._value

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def feed_seen(self) -> bool:
        """Whether the change feed has delivered at least one event."""
        return self._feed_seen

    def apply(self, update: RowUpdate) -> bool:
        """Apply *update*; return whether ``value`` or ``loaded`` changed."""
        before = (self._value, self._loaded)

        if should_replace_value(update, feed_seen=self._feed_seen):
            self._value = update.data if update.kind == UpdateKind.UPSERT else None
        if marks_loaded(update):
            self._loaded = True
        if update.source == UpdateSource.FEED:
            self._feed_seen = True

        return self._value is not before[0] or self._loaded != before[1]
