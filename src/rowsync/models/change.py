"""Change-feed event and filter models."""

from __future__ import annotations

import dataclasses
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from rowsync._constants import DEFAULT_SCHEMA, EVENT_ALL


class ChangeEventType(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclasses.dataclass(frozen=True)
class ChangeFilter:
    """Server-side filter for one change-feed registration."""

    table: str
    schema: str = DEFAULT_SCHEMA
    event: str = EVENT_ALL
    filter: str | None = None

    def to_config(self) -> dict[str, str]:
        """Render as a ``postgres_changes`` entry of a ``phx_join`` config."""
        config = {"event": self.event, "schema": self.schema, "table": self.table}
        if self.filter:
            config["filter"] = self.filter
        return config


class ChangeEvent(BaseModel):
    """One insert/update/delete notification for a row.

    Accepts both the server wire shape (``type``/``record``/``old_record``)
    and the client-library shape (``eventType``/``new``/``old``).
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    event_type: ChangeEventType = Field(validation_alias=AliasChoices("event_type", "eventType", "type"))
    new: dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("new", "record"))
    old: dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("old", "old_record"))
    db_schema: str | None = Field(default=None, validation_alias=AliasChoices("db_schema", "schema"))
    table: str | None = None
    commit_timestamp: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _unwrap_and_clean(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        # Server frames nest the change under "data".
        inner = values.get("data")
        if isinstance(inner, dict) and ("type" in inner or "eventType" in inner):
            values = inner
        # The server sends null instead of {} for absent records.
        return {k: v for k, v in values.items() if v is not None}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ChangeEvent:
        """Parse a ``postgres_changes`` payload.

        Raises :class:`pydantic.ValidationError` when the payload carries no
        recognised event type.
        """
        return cls.model_validate(payload)

    @property
    def is_delete(self) -> bool:
        return self.event_type == ChangeEventType.DELETE
