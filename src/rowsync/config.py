"""Client configuration and per-row synchronization options for rowsync."""

from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Callable
from typing import Any

from rowsync._constants import (
    DEFAULT_PRIMARY_KEY,
    DEFAULT_SCHEMA,
    DEFAULT_SELECT,
    REALTIME_PATH,
    REST_PATH,
    USER_AGENT,
)
from rowsync.exceptions import RowSyncConfigError

_diagnostics = logging.getLogger("rowsync")


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def warning_sink(message: str) -> None:
    """Default diagnostic sink: forward to the ``rowsync`` logger at WARNING."""
    _diagnostics.warning("%s", message)


@dataclasses.dataclass(frozen=True)
class RowSyncConfig:
    """Store client configuration.

    Parameters
    ----------
    url : str
        Project base URL, e.g. ``"https://abc.example.co"``. REST calls go
        to ``{url}/rest/v1`` and the change feed to the matching websocket
        endpoint.
    api_key : str
        Project API key, sent as the ``apikey`` header/query parameter.
    access_token : str or None
        User JWT for row-level security. Falls back to *api_key*.
    request_timeout : float
        Total timeout in seconds for each REST request.
    realtime_enabled : bool
        Open the websocket change feed when the client starts.
    realtime_heartbeat_interval : float
        Seconds between Phoenix heartbeats.
    realtime_reconnect_delay : float
        Seconds to wait before reconnecting a dropped websocket.
    realtime_join_timeout : float
        Seconds to wait for a ``phx_join`` reply before logging the join as stale.
    user_agent : str
        ``User-Agent`` / ``X-Client-Info`` value sent with every request.
    """

    url: str
    api_key: str
    access_token: str | None = None
    request_timeout: float = 10.0
    realtime_enabled: bool = True
    realtime_heartbeat_interval: float = 25.0
    realtime_reconnect_delay: float = 5.0
    realtime_join_timeout: float = 10.0
    user_agent: str = USER_AGENT

    def __post_init__(self) -> None:
        if not self.url or not self.url.strip():
            raise RowSyncConfigError("url must be non-empty")
        if not self.api_key or not self.api_key.strip():
            raise RowSyncConfigError("api_key must be non-empty")
        object.__setattr__(self, "url", self.url.strip().rstrip("/"))

    @property
    def bearer_token(self) -> str:
        return self.access_token or self.api_key

    @property
    def rest_url(self) -> str:
        return f"{self.url}{REST_PATH}"

    @property
    def realtime_url(self) -> str:
        if self.url.startswith("https://"):
            base = "wss://" + self.url[len("https://") :]
        elif self.url.startswith("http://"):
            base = "ws://" + self.url[len("http://") :]
        else:
            base = self.url
        return f"{base}{REALTIME_PATH}"

    @classmethod
    def from_env(cls, **overrides: Any) -> RowSyncConfig:
        """Create configuration from environment variables.

        Reads ``ROWSYNC_URL``, ``ROWSYNC_API_KEY`` and optional ``ROWSYNC_*``
        variables. Explicit keyword arguments override environment values.

        Raises
        ------
        RowSyncConfigError
            When url or api key is missing after overrides are applied.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "ROWSYNC_URL": "url",
            "ROWSYNC_API_KEY": "api_key",
            "ROWSYNC_ACCESS_TOKEN": "access_token",
            "ROWSYNC_USER_AGENT": "user_agent",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        timeout_env = env.get("ROWSYNC_REQUEST_TIMEOUT")
        if timeout_env is not None and "request_timeout" not in overrides:
            config_kwargs["request_timeout"] = float(timeout_env)

        if "realtime_enabled" not in overrides:
            config_kwargs["realtime_enabled"] = _env_bool(env.get("ROWSYNC_REALTIME_ENABLED"), True)

        heartbeat_env = env.get("ROWSYNC_REALTIME_HEARTBEAT_INTERVAL")
        if heartbeat_env is not None and "realtime_heartbeat_interval" not in overrides:
            config_kwargs["realtime_heartbeat_interval"] = float(heartbeat_env)

        config_kwargs.update(overrides)

        missing = [name for name in ("url", "api_key") if not config_kwargs.get(name)]
        if missing:
            raise RowSyncConfigError(f"Missing configuration: {', '.join(missing)}")

        return cls(**config_kwargs)


@dataclasses.dataclass(frozen=True)
class SyncOptions:
    """Per-row synchronization options, fixed for the lifetime of one engine.

    Parameters
    ----------
    schema : str
        Schema qualifier for reads, writes and the change-feed filter.
    primary_key : str
        Column used for lookup, update and the change-feed equality filter.
    auto_sync : bool
        Whether local edits are persisted to the store.
    select : str
        Column expression fetched by the initial read.
    skip : bool
        Short-circuit silently (no diagnostic) when the row id is missing.
    logger : callable
        Destination for every diagnostic message.
    """

    schema: str = DEFAULT_SCHEMA
    primary_key: str = DEFAULT_PRIMARY_KEY
    auto_sync: bool = True
    select: str = DEFAULT_SELECT
    skip: bool = False
    logger: Callable[[str], None] = warning_sink
