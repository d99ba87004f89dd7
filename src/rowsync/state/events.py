"""Normalized row updates.

Every input path (initial read, change feed, local edit) converts its
input into a :class:`RowUpdate`. Only :class:`rowsync.state.cell.RowCell`
is allowed to merge them.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


class UpdateSource(StrEnum):
    READ = "read"
    FEED = "feed"
    LOCAL = "local"


class UpdateKind(StrEnum):
    UPSERT = "upsert"
    DELETE = "delete"
    # Read finished without a row (not found or failed).
    MISSING = "missing"


class RowUpdate(BaseModel):
    """A normalized update to apply to a row cell."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    source: UpdateSource
    kind: UpdateKind
    data: Any = None

    @model_validator(mode="after")
    def _check_data(self) -> RowUpdate:
        if self.kind == UpdateKind.UPSERT and self.data is None:
            raise ValueError("upsert requires data")
        if self.kind != UpdateKind.UPSERT and self.data is not None:
            raise ValueError(f"{self.kind} carries no data")
        return self

    @classmethod
    def read(cls, row: Any) -> RowUpdate:
        if row is None:
            return cls(source=UpdateSource.READ, kind=UpdateKind.MISSING)
        return cls(source=UpdateSource.READ, kind=UpdateKind.UPSERT, data=row)

    @classmethod
    def feed(cls, row: Any | None) -> RowUpdate:
        if row is None:
            return cls(source=UpdateSource.FEED, kind=UpdateKind.DELETE)
        return cls(source=UpdateSource.FEED, kind=UpdateKind.UPSERT, data=row)

    @classmethod
    def local(cls, row: Any) -> RowUpdate:
        if row is None:
            return cls(source=UpdateSource.LOCAL, kind=UpdateKind.DELETE)
        return cls(source=UpdateSource.LOCAL, kind=UpdateKind.UPSERT, data=row)
