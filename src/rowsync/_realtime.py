"""Websocket change-feed runtime (Phoenix channel protocol).

Owns:
- the websocket connection, heartbeat and reconnect loop
- channel registration (join/leave) keyed by channel key
- dispatch of ``postgres_changes`` frames to channel callbacks
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from pydantic import ValidationError

from rowsync._constants import (
    PHX_CLOSE,
    PHX_ERROR,
    PHX_HEARTBEAT,
    PHX_JOIN,
    PHX_LEAVE,
    PHX_REPLY,
    PHX_TOPIC,
    POSTGRES_CHANGES,
    REALTIME_TOPIC_PREFIX,
    REALTIME_VSN,
)
from rowsync._redact import redact_for_log
from rowsync.config import RowSyncConfig
from rowsync.exceptions import RowSyncRealtimeError
from rowsync.models.change import ChangeEvent, ChangeFilter
from rowsync.store import ChangeCallback


@dataclass(eq=False)
class RealtimeChannel:
    """One local change-feed registration. Doubles as the subscription handle."""

    channel_key: str
    change_filter: ChangeFilter
    callback: ChangeCallback
    closed: bool = False
    topic: str = ""

    def __post_init__(self) -> None:
        if not self.topic:
            self.topic = f"{REALTIME_TOPIC_PREFIX}{self.channel_key}"


@dataclass
class _TopicState:
    """Server-side join state shared by every local channel on a topic.

    A topic is joined with exactly one filter, so channels only share it when
    both key and filter match.
    """

    channel_key: str
    change_filter: ChangeFilter
    channels: list[RealtimeChannel] = field(default_factory=list)
    join_ref: str | None = None
    joined: bool = False
    rejoin_pending: bool = False


def build_join_frame(channel: RealtimeChannel, *, ref: str, access_token: str) -> dict[str, Any]:
    """Build the ``phx_join`` frame subscribing *channel* to its row filter."""
    return {
        "topic": channel.topic,
        "event": PHX_JOIN,
        "payload": {
            "config": {
                "broadcast": {"ack": False, "self": False},
                "presence": {"key": ""},
                "postgres_changes": [channel.change_filter.to_config()],
                "private": False,
            },
            "access_token": access_token,
        },
        "ref": ref,
        "join_ref": ref,
    }


class RealtimeRuntime:
    """Asyncio websocket runtime that delivers parsed change events to channels.

    Registration is synchronous: :meth:`subscribe` records the channel and
    the join is sent in the background (immediately when connected, or on
    the next (re)connect). Callbacks always run on the event loop.
    """

    def __init__(
        self,
        *,
        config: RowSyncConfig,
        http_session: aiohttp.ClientSession | None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._http = http_session
        self._logger = logger or logging.getLogger(__name__)
        self._topics: dict[str, _TopicState] = {}
        self._refs = itertools.count(1)
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._pending_sends: set[asyncio.Task[None]] = set()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the connect/read loop in the background."""
        if self._running:
            return
        if self._http is None:
            raise RowSyncRealtimeError("Realtime runtime has no HTTP session")
        self._running = True
        self._run_task = asyncio.get_running_loop().create_task(self._run())
        self._logger.debug("Realtime runtime started url=%s", self._config.realtime_url)

    async def stop(self) -> None:
        """Disconnect and stop reconnecting. Registered channels are kept."""
        self._running = False
        run_task = self._run_task
        self._run_task = None
        ws = self._ws
        if ws is not None and not ws.closed:
            await ws.close()
        if run_task is not None:
            run_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await run_task
        for task in list(self._pending_sends):
            task.cancel()
        self._logger.debug("Realtime runtime stopped")

    async def _run(self) -> None:
        assert self._http is not None  # noqa: S101
        while self._running:
            try:
                async with self._http.ws_connect(
                    self._config.realtime_url,
                    params={"apikey": self._config.api_key, "vsn": REALTIME_VSN},
                ) as ws:
                    self._ws = ws
                    self._logger.debug("Realtime connected")
                    await self._on_connected()
                    async for msg in ws:
                        if msg.type == aiohttp.WSMsgType.TEXT:
                            self._on_text(msg.data)
                        elif msg.type in (aiohttp.WSMsgType.ERROR, aiohttp.WSMsgType.CLOSED):
                            break
            except asyncio.CancelledError:
                raise
            except Exception:
                self._logger.debug("Realtime connection failed", exc_info=True)
            finally:
                self._ws = None
                self._on_disconnected()

            if self._running:
                self._logger.debug("Realtime reconnecting in %.1fs", self._config.realtime_reconnect_delay)
                await asyncio.sleep(self._config.realtime_reconnect_delay)

    async def _on_connected(self) -> None:
        self._heartbeat_task = asyncio.get_running_loop().create_task(self._heartbeat())
        for state in list(self._topics.values()):
            if state.channels:
                await self._send_join(state.channels[0])

    def _on_disconnected(self) -> None:
        heartbeat = self._heartbeat_task
        self._heartbeat_task = None
        if heartbeat is not None:
            heartbeat.cancel()
        for state in self._topics.values():
            state.joined = False
            state.join_ref = None

    async def _heartbeat(self) -> None:
        while True:
            await asyncio.sleep(self._config.realtime_heartbeat_interval)
            await self._send({"topic": PHX_TOPIC, "event": PHX_HEARTBEAT, "payload": {}, "ref": self._next_ref()})

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _topic_for(self, channel_key: str, change_filter: ChangeFilter) -> str:
        for topic, state in self._topics.items():
            if state.channel_key == channel_key and state.change_filter == change_filter:
                return topic
        # Same key, different filter (other schema or key column): new suffixed topic.
        base = f"{REALTIME_TOPIC_PREFIX}{channel_key}"
        topic = base
        n = 1
        while topic in self._topics:
            n += 1
            topic = f"{base}:{n}"
        return topic

    def subscribe(self, channel_key: str, change_filter: ChangeFilter, callback: ChangeCallback) -> RealtimeChannel:
        topic = self._topic_for(channel_key, change_filter)
        channel = RealtimeChannel(channel_key=channel_key, change_filter=change_filter, callback=callback, topic=topic)
        state = self._topics.get(topic)
        if state is None:
            state = self._topics[topic] = _TopicState(channel_key=channel_key, change_filter=change_filter)
        state.channels.append(channel)
        if len(state.channels) > 1:
            # Phoenix allows one join per topic per socket; later channels share it.
            self._logger.debug("Channel %s shares an existing join", channel.topic)
        elif self.is_connected:
            self._schedule(self._send_join(channel))
        return channel

    def unsubscribe(self, channel: RealtimeChannel) -> None:
        if channel.closed:
            return
        channel.closed = True
        state = self._topics.get(channel.topic)
        if state is None:
            return
        with contextlib.suppress(ValueError):
            state.channels.remove(channel)
        if state.channels:
            return
        del self._topics[channel.topic]
        if self.is_connected and state.join_ref is not None:
            frame = {
                "topic": channel.topic,
                "event": PHX_LEAVE,
                "payload": {},
                "ref": self._next_ref(),
                "join_ref": state.join_ref,
            }
            self._schedule(self._send(frame))

    def has_channel(self, channel_key: str) -> bool:
        return any(
            state.channel_key == channel_key and any(not ch.closed for ch in state.channels)
            for state in self._topics.values()
        )

    def channel_keys(self) -> list[str]:
        return list(dict.fromkeys(state.channel_key for state in self._topics.values() if state.channels))

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    def _next_ref(self) -> str:
        return str(next(self._refs))

    def _schedule(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending_sends.add(task)
        task.add_done_callback(self._pending_sends.discard)

    async def _send(self, frame: dict[str, Any]) -> None:
        ws = self._ws
        if ws is None or ws.closed:
            return
        self._logger.debug("Realtime send %s", redact_for_log(frame))
        try:
            await ws.send_str(json.dumps(frame, separators=(",", ":")))
        except (aiohttp.ClientError, ConnectionError):
            self._logger.debug("Realtime send failed topic=%s", frame.get("topic"), exc_info=True)

    async def _send_join(self, channel: RealtimeChannel) -> None:
        state = self._topics.get(channel.topic)
        if state is None or channel.closed:
            return
        ref = self._next_ref()
        state.join_ref = ref
        state.joined = False
        await self._send(build_join_frame(channel, ref=ref, access_token=self._config.bearer_token))
        asyncio.get_running_loop().call_later(
            self._config.realtime_join_timeout,
            self._check_join,
            channel.topic,
            ref,
        )

    def _check_join(self, topic: str, ref: str) -> None:
        state = self._topics.get(topic)
        if state is not None and state.join_ref == ref and not state.joined:
            self._logger.warning(
                "Realtime join for %s not acknowledged after %.1fs", topic, self._config.realtime_join_timeout
            )

    def _schedule_rejoin(self, topic: str, state: _TopicState) -> None:
        # Without a socket the next (re)connect re-joins every topic anyway.
        if not self.is_connected or state.join_ref is None or state.rejoin_pending:
            return
        state.rejoin_pending = True
        asyncio.get_running_loop().call_later(
            self._config.realtime_reconnect_delay,
            self._rejoin,
            topic,
            state.join_ref,
        )

    def _rejoin(self, topic: str, ref: str) -> None:
        state = self._topics.get(topic)
        if state is not None:
            state.rejoin_pending = False
        # Skip when a reconnect already sent a newer join.
        if state is None or state.join_ref != ref or state.joined or not state.channels:
            return
        if not self.is_connected:
            return
        self._logger.debug("Realtime rejoining %s", topic)
        self._schedule(self._send_join(state.channels[0]))

    def _on_text(self, data: str) -> None:
        try:
            frame = json.loads(data)
        except json.JSONDecodeError:
            self._logger.debug("Realtime frame is not JSON: %s", data[:200])
            return
        if isinstance(frame, dict):
            self._handle_frame(frame)

    def _handle_frame(self, frame: dict[str, Any]) -> None:
        topic = frame.get("topic")
        event = frame.get("event")
        payload = frame.get("payload")
        if not isinstance(topic, str) or topic == PHX_TOPIC:
            return
        state = self._topics.get(topic)
        if state is None:
            # Late frame for a topic nobody holds any more.
            return
        if not isinstance(payload, dict):
            payload = {}

        if event == PHX_REPLY:
            if frame.get("ref") != state.join_ref:
                return
            if payload.get("status") == "ok":
                state.joined = True
                self._logger.debug("Realtime joined %s", topic)
            else:
                self._logger.warning("Realtime join for %s refused: %s", topic, payload.get("response"))
                self._schedule_rejoin(topic, state)
            return

        if event in (PHX_ERROR, PHX_CLOSE):
            state.joined = False
            self._logger.debug("Realtime channel %s %s", topic, event)
            self._schedule_rejoin(topic, state)
            return

        if event != POSTGRES_CHANGES:
            return

        try:
            change = ChangeEvent.from_payload(payload)
        except ValidationError:
            self._logger.debug("Unparseable change payload on %s: %s", topic, redact_for_log(payload), exc_info=True)
            return

        for channel in list(state.channels):
            if channel.closed:
                continue
            try:
                channel.callback(change)
            except Exception:
                self._logger.debug("Change callback failed for %s", topic, exc_info=True)
