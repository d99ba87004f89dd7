"""State/cell layer.

This package is the single source of truth for how the initial read, the
change feed, and local optimistic edits are merged into one current value.
"""

from rowsync.state.cell import UNKNOWN, RowCell
from rowsync.state.events import RowUpdate, UpdateKind, UpdateSource

__all__ = [
    "UNKNOWN",
    "RowCell",
    "RowUpdate",
    "UpdateKind",
    "UpdateSource",
]
