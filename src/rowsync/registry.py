"""Process-wide store client registry.

:func:`initialize` must run once before any row is attached; there is no
implicit default client.
"""

from __future__ import annotations

import logging

from rowsync.exceptions import RowSyncConfigError
from rowsync.store import StoreClient

_logger = logging.getLogger(__name__)

_client: StoreClient | None = None


def initialize(client: StoreClient) -> None:
    """Install *client* as the store client used by every engine."""
    global _client
    if _client is not None and _client is not client:
        _logger.warning("Store client already initialized; replacing it")
    _client = client


def get_client() -> StoreClient:
    """Return the configured client.

    Raises
    ------
    RowSyncConfigError
        If :func:`initialize` has not been called.
    """
    if _client is None:
        raise RowSyncConfigError("Store client not initialized. Call rowsync.initialize(client) first.")
    return _client


def is_initialized() -> bool:
    return _client is not None
