"""Custom exception hierarchy for rowsync."""

from __future__ import annotations


class RowSyncError(Exception):
    """Base exception for all rowsync errors."""


class RowSyncConfigError(RowSyncError):
    """Invalid or missing configuration (e.g. client used before initialization)."""


class RowSyncTransportError(RowSyncError):
    """HTTP/websocket-level failure (network, unexpected status, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class RowSyncApiError(RowSyncError):
    """The store answered with an application-level error body."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        endpoint: str = "",
    ) -> None:
        self.code = code
        self.endpoint = endpoint
        super().__init__(message)


class RowNotFoundError(RowSyncApiError):
    """A single-row read matched no row (PostgREST code ``PGRST116``).

    Also raised when the filter matched more than one row, since the
    server reports both cases under the same code.
    """


class RowSyncRealtimeError(RowSyncError):
    """Change-feed protocol failure (join refused, malformed frame)."""
