"""Typed models for row identities and change-feed events."""

from rowsync.models.change import ChangeEvent, ChangeEventType, ChangeFilter
from rowsync.models.row import RowIdentity

__all__ = [
    "ChangeEvent",
    "ChangeEventType",
    "ChangeFilter",
    "RowIdentity",
]
