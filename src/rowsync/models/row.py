"""Row identity model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rowsync._constants import CHANNEL_KEY_PREFIX, DEFAULT_PRIMARY_KEY


class RowIdentity(BaseModel):
    """Address of exactly one row in the store.

    Immutable for the lifetime of an engine; any change means a new engine
    (new read, new subscription).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    table: str = Field(..., description="Table name")
    row_id: str | int = Field(..., description="Primary key value")
    primary_key: str = Field(default=DEFAULT_PRIMARY_KEY, description="Primary key column")

    @field_validator("table", "primary_key")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must be non-empty")
        return stripped

    @property
    def channel_key(self) -> str:
        """Key the change-feed registration for this row is deduplicated under."""
        return f"{CHANNEL_KEY_PREFIX}-{self.table}-{self.row_id}"

    @property
    def eq_filter(self) -> str:
        """PostgREST-style equality filter, e.g. ``id=eq.42``."""
        return f"{self.primary_key}=eq.{self.row_id}"
