"""Single-row change-feed registration."""

from __future__ import annotations

import logging
from collections.abc import Callable

from rowsync._constants import EVENT_ALL
from rowsync.config import warning_sink
from rowsync.models.change import ChangeEvent, ChangeFilter
from rowsync.models.row import RowIdentity
from rowsync.store import ChannelHandle, StoreClient

_logger = logging.getLogger(__name__)


class ChangeFeedSubscription:
    """Owns at most one change-feed registration for one row.

    The registration is scoped to exactly that row: table, schema and an
    equality filter on the primary key. Events are forwarded to *callback*
    in delivery order, and only while the subscription is open.
    """

    def __init__(
        self,
        client: StoreClient,
        identity: RowIdentity,
        callback: Callable[[ChangeEvent], None],
        *,
        schema: str = "public",
        logger: Callable[[str], None] = warning_sink,
    ) -> None:
        self._client = client
        self._identity = identity
        self._schema = schema
        self._callback = callback
        self._logger = logger
        self._handle: ChannelHandle | None = None
        self._generation = 0

    @property
    def channel_key(self) -> str:
        return self._identity.channel_key

    @property
    def handle(self) -> ChannelHandle | None:
        return self._handle

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def open(self) -> ChannelHandle:
        """Register the row filter and return the new handle.

        Any handle this instance still holds is released first, so the same
        key is never registered twice by one subscription.
        """
        if self._handle is not None:
            _logger.debug("Releasing previous registration for %s before reopening", self.channel_key)
            self.close()

        # Best-effort diagnostic only; another component may register the
        # same key between this check and the subscribe below.
        if self._client.has_channel(self.channel_key):
            self._logger(
                f"Warning: Channel {self.channel_key} already exists. This might cause duplicate subscriptions."
            )

        change_filter = ChangeFilter(
            table=self._identity.table,
            schema=self._schema,
            event=EVENT_ALL,
            filter=self._identity.eq_filter,
        )
        self._generation += 1
        generation = self._generation
        handle = self._client.subscribe(
            self.channel_key,
            change_filter,
            lambda event: self._deliver(generation, event),
        )
        self._handle = handle
        _logger.debug("Subscribed %s filter=%s", self.channel_key, change_filter.filter)
        return handle

    def close(self, handle: ChannelHandle | None = None) -> None:
        """Release *handle* (default: the current one). Safe to call repeatedly."""
        target = handle if handle is not None else self._handle
        if target is None:
            return
        if target is self._handle:
            self._handle = None
        if target.closed:
            return
        self._client.unsubscribe(target)
        _logger.debug("Unsubscribed %s", target.topic)

    def _deliver(self, generation: int, event: ChangeEvent) -> None:
        # Drop late events from a released registration.
        if generation != self._generation or self._handle is None or self._handle.closed:
            return
        self._callback(event)
