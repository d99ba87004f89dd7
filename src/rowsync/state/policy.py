"""Deterministic merge policy for a single row cell.

The change feed is authoritative once it has delivered anything: an
in-flight read that resolves afterwards only flips the loaded flag.
"""

from __future__ import annotations

from rowsync.state.events import RowUpdate, UpdateKind, UpdateSource


def should_replace_value(update: RowUpdate, *, feed_seen: bool) -> bool:
    """Whether *update* overwrites the current value."""
    if update.kind == UpdateKind.MISSING:
        # A failed or empty read never erases what the feed delivered.
        return False
    if update.source == UpdateSource.READ:
        return not feed_seen
    return True


def marks_loaded(update: RowUpdate) -> bool:
    """Whether *update* flips the loaded flag to true."""
    if update.source == UpdateSource.READ:
        return True
    if update.source == UpdateSource.FEED:
        # A delete implies the row existed; loaded is left as-is.
        return update.kind == UpdateKind.UPSERT
    return False
