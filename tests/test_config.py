from __future__ import annotations

import logging

import pytest

from rowsync.config import RowSyncConfig, SyncOptions, warning_sink
from rowsync.exceptions import RowSyncConfigError


def test_from_env_reads_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ROWSYNC_URL", "https://abc.example.co/")
    monkeypatch.setenv("ROWSYNC_API_KEY", "anon-key")
    monkeypatch.setenv("ROWSYNC_REQUEST_TIMEOUT", "3.5")
    monkeypatch.setenv("ROWSYNC_REALTIME_ENABLED", "off")
    monkeypatch.setenv("ROWSYNC_REALTIME_HEARTBEAT_INTERVAL", "15")

    config = RowSyncConfig.from_env()

    assert config.url == "https://abc.example.co"
    assert config.api_key == "anon-key"
    assert config.request_timeout == 3.5
    assert config.realtime_enabled is False
    assert config.realtime_heartbeat_interval == 15.0
    assert config.bearer_token == "anon-key"


def test_from_env_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ROWSYNC_URL", "https://env.example.co")
    monkeypatch.setenv("ROWSYNC_API_KEY", "anon-key")
    monkeypatch.setenv("ROWSYNC_REALTIME_ENABLED", "no")

    config = RowSyncConfig.from_env(url="http://localhost:54321", realtime_enabled=True, access_token="jwt")

    assert config.url == "http://localhost:54321"
    assert config.realtime_enabled is True
    assert config.bearer_token == "jwt"


def test_from_env_missing_values_raise(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ROWSYNC_URL", raising=False)
    monkeypatch.delenv("ROWSYNC_API_KEY", raising=False)

    with pytest.raises(RowSyncConfigError, match="url, api_key"):
        RowSyncConfig.from_env()


def test_endpoint_urls() -> None:
    secure = RowSyncConfig(url="https://abc.example.co", api_key="k")
    local = RowSyncConfig(url="http://localhost:54321", api_key="k")

    assert secure.rest_url == "https://abc.example.co/rest/v1"
    assert secure.realtime_url == "wss://abc.example.co/realtime/v1/websocket"
    assert local.realtime_url == "ws://localhost:54321/realtime/v1/websocket"


def test_empty_api_key_rejected() -> None:
    with pytest.raises(RowSyncConfigError):
        RowSyncConfig(url="https://abc.example.co", api_key=" ")


def test_sync_option_defaults() -> None:
    options = SyncOptions()

    assert options.schema == "public"
    assert options.primary_key == "id"
    assert options.auto_sync is True
    assert options.select == "*"
    assert options.skip is False
    assert options.logger is warning_sink


def test_warning_sink_logs_to_rowsync_logger(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="rowsync"):
        warning_sink("Auto-sync failed: boom")

    assert caplog.records[-1].name == "rowsync"
    assert caplog.records[-1].getMessage() == "Auto-sync failed: boom"
