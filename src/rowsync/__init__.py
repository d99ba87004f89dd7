"""rowsync - keep one remote row and a local value in sync (read, change feed, optimistic writes)."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("rowsync")
except PackageNotFoundError:
    __version__ = "0+local"
from rowsync.binding import RowBinding
from rowsync.client import RowStoreClient
from rowsync.config import RowSyncConfig, SyncOptions
from rowsync.engine import NoopRowHandle, RowHandle, RowSyncEngine, attach
from rowsync.exceptions import (
    RowNotFoundError,
    RowSyncApiError,
    RowSyncConfigError,
    RowSyncError,
    RowSyncRealtimeError,
    RowSyncTransportError,
)
from rowsync.models import ChangeEvent, ChangeEventType, ChangeFilter, RowIdentity
from rowsync.registry import get_client, initialize, is_initialized
from rowsync.state import UNKNOWN
from rowsync.store import ChannelHandle, StoreClient
from rowsync.subscription import ChangeFeedSubscription

__all__ = [
    "__version__",
    "UNKNOWN",
    "ChangeEvent",
    "ChangeEventType",
    "ChangeFeedSubscription",
    "ChangeFilter",
    "ChannelHandle",
    "NoopRowHandle",
    "RowBinding",
    "RowHandle",
    "RowIdentity",
    "RowNotFoundError",
    "RowStoreClient",
    "RowSyncApiError",
    "RowSyncConfig",
    "RowSyncConfigError",
    "RowSyncEngine",
    "RowSyncError",
    "RowSyncRealtimeError",
    "RowSyncTransportError",
    "StoreClient",
    "SyncOptions",
    "attach",
    "get_client",
    "initialize",
    "is_initialized",
]
