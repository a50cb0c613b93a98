"""
Session manager - connection lifecycle and inbound routing.

Coordinates the stream components:
- ConnectionManager for the WebSocket transport
- HeartbeatResponder for keepalive probes
- ChannelClassifier for channel -> event kind
- EventDispatcher for payload decoding and callbacks
- SubscriptionRegistry for replay after reconnects
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import orjson

from huobistream.classifier import ChannelClassifier
from huobistream.config import StreamConfig
from huobistream.connection import ConnectedCallback, ConnectionManager, FrameCallback
from huobistream.envelope import decode_frame
from huobistream.errors import MessageParseError, MissingCallbackError, StreamConnectionError
from huobistream.handlers import EventCallback, EventDispatcher
from huobistream.heartbeat import HeartbeatResponder
from huobistream.subscriptions import SubscriptionRegistry
from huobistream.types import (
    ConnectionHealth,
    EventKind,
    SessionState,
    Subscription,
    SubscriptionAck,
)

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def connect(self) -> None: ...

    async def send(self, data: str | bytes) -> None: ...

    async def close(self) -> None: ...

    def get_health(self) -> ConnectionHealth: ...


class TransportFactory(Protocol):
    def __call__(
        self,
        config: Any,
        on_frame: FrameCallback,
        on_connected: Optional[ConnectedCallback] = None,
        *,
        name: str = "connection",
    ) -> Transport: ...


@dataclass
class SessionStats:
    """Counters for the inbound path."""

    frames_received: int = 0
    decode_errors: int = 0
    unknown_channels: int = 0
    acks_ok: int = 0
    acks_error: int = 0
    subscribes_sent: int = 0
    resubscribes_sent: int = 0
    reconnects: int = 0


class SessionManager:
    """
    Owns the single connection of a client and routes inbound frames.

    State Machine:
        [UNCONNECTED] --connect()--> [CONNECTING] --success--> [CONNECTED]
              ^                            |
              +---------- failure ---------+

    Usage:
        session = SessionManager(StreamConfig())
        session.register_callback(EventKind.TRADE, on_trade)
        await session.subscribe(Subscription(EventKind.TRADE, CurrencyPair("btc", "usdt")))
        # ... later ...
        await session.close()
    """

    def __init__(
        self,
        config: Optional[StreamConfig] = None,
        *,
        transport_factory: Optional[TransportFactory] = None,
        classifier: Optional[ChannelClassifier] = None,
        dispatcher: Optional[EventDispatcher] = None,
        name: str = "huobi_spot",
    ) -> None:
        self._config = config or StreamConfig()
        self._transport_factory = transport_factory or ConnectionManager
        self._classifier = classifier or ChannelClassifier()
        self._dispatcher = dispatcher or EventDispatcher(name=f"{name}_dispatch")
        self._heartbeat = HeartbeatResponder()
        self._registry = SubscriptionRegistry()
        self._name = name

        self._state = SessionState.UNCONNECTED
        self._connect_lock = asyncio.Lock()
        self._transport: Optional[Transport] = None
        # Set when a fresh transport has to restore earlier subscriptions
        self._replay_pending = False

        self._stats = SessionStats()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == SessionState.CONNECTED

    @property
    def config(self) -> StreamConfig:
        return self._config

    @property
    def stats(self) -> SessionStats:
        return self._stats

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    @property
    def subscriptions(self) -> tuple[Subscription, ...]:
        return self._registry.snapshot()

    # --- Registration ---

    def register_callback(self, kind: EventKind, callback: EventCallback) -> None:
        self._dispatcher.register(kind, callback)

    # --- Lifecycle ---

    async def connect(self) -> None:
        """
        Open the connection once.

        Concurrent callers share a single attempt; later calls are no-ops
        until close() or a failed attempt returns the session to UNCONNECTED.

        Raises:
            StreamConnectionError: If the transport gives up connecting
        """
        if self._state == SessionState.CONNECTED:
            return

        async with self._connect_lock:
            if self._state != SessionState.UNCONNECTED:
                return

            self._state = SessionState.CONNECTING
            transport = self._transport_factory(
                self._config.connection,
                self._on_frame,
                self._on_connected,
                name=f"{self._name}_ws",
            )
            # Must be set before the receive loop starts answering heartbeats
            self._transport = transport
            try:
                await transport.connect()
            except BaseException:
                self._transport = None
                self._state = SessionState.UNCONNECTED
                self._replay_pending = len(self._registry) > 0
                raise

            self._state = SessionState.CONNECTED
            logger.info(f"[{self._name}] Session connected")

    async def close(self) -> None:
        """Close the connection; registered subscriptions are kept."""
        async with self._connect_lock:
            transport = self._transport
            self._transport = None
            self._state = SessionState.UNCONNECTED
            self._replay_pending = len(self._registry) > 0

        if transport is not None:
            await transport.close()
            logger.info(f"[{self._name}] Session closed")

    async def subscribe(self, subscription: Subscription) -> None:
        """
        Subscribe to a channel.

        Raises:
            MissingCallbackError: If no callback is registered for the
                subscription's kind; nothing is recorded or sent
            StreamConnectionError: If the connection cannot be established
        """
        if not self._dispatcher.has_callback(subscription.kind):
            raise MissingCallbackError(
                f"Register a {subscription.kind.value} callback before subscribing",
                kind=subscription.kind.value,
                component="SessionManager",
            )

        self._registry.add(subscription)
        await self.connect()
        await self._send_subscribe(subscription)
        self._stats.subscribes_sent += 1

    async def _send_subscribe(self, subscription: Subscription) -> None:
        frame = subscription.to_frame()
        logger.debug(f"[{self._name}] Subscribing {frame['sub']} (id={frame['id']})")
        await self._send(orjson.dumps(frame))

    async def _send(self, data: bytes) -> None:
        if self._transport is None:
            raise StreamConnectionError(
                "Session is not connected",
                url=self._config.ws_url,
                component="SessionManager",
            )
        await self._transport.send(data)

    # --- Transport callbacks ---

    async def _on_connected(self, reconnect: bool) -> None:
        """
        Replay subscriptions; runs before the receive loop resumes.

        A fresh transport after close() or a failed connect replays as well,
        its socket carries none of the registered channels.
        """
        if reconnect:
            self._stats.reconnects += 1
        elif not self._replay_pending:
            return

        subscriptions = self._registry.snapshot()
        logger.info(
            f"[{self._name}] Connected, restoring {len(subscriptions)} subscription(s)"
        )
        for subscription in subscriptions:
            await self._send_subscribe(subscription)
            self._stats.resubscribes_sent += 1
        # Cleared only once every frame is out; a socket lost mid-replay retries it
        self._replay_pending = False

    async def _on_frame(self, raw: bytes) -> None:
        """Handle one decompressed inbound frame."""
        self._stats.frames_received += 1

        # Heartbeat first, never behind payload decoding
        handled, reply = self._heartbeat.offer(raw)
        if handled:
            if reply is not None:
                await self._send(reply)
            return

        if self._config.log_raw_messages:
            logger.debug(f"[{self._name}] <- {raw.decode('utf-8', errors='replace')}")

        try:
            decoded = decode_frame(raw)
        except MessageParseError as e:
            self._stats.decode_errors += 1
            logger.warning(f"[{self._name}] Dropping frame: {e}")
            return

        if isinstance(decoded, SubscriptionAck):
            self._on_ack(decoded)
            return

        classification = self._classifier.classify(decoded.channel)
        if not classification.is_known:
            self._stats.unknown_channels += 1
            logger.error(
                f"[{self._name}] Unknown message ch={decoded.channel}, "
                f"msg={raw.decode('utf-8', errors='replace')}"
            )
            return

        try:
            await self._dispatcher.dispatch(classification, decoded)
        except MessageParseError as e:
            self._stats.decode_errors += 1
            logger.warning(f"[{self._name}] Dropping {classification.kind.value} frame: {e}")

    def _on_ack(self, ack: SubscriptionAck) -> None:
        if ack.ok:
            self._stats.acks_ok += 1
            logger.debug(f"[{self._name}] Subscribed {ack.subbed} (id={ack.id})")
            return

        self._stats.acks_error += 1
        logger.error(
            f"[{self._name}] Subscription rejected (id={ack.id}): "
            f"{ack.err_code} {ack.err_msg}"
        )

    # --- Health ---

    def get_health(self) -> Optional[ConnectionHealth]:
        if self._transport is None:
            return None
        return self._transport.get_health()

    def get_stats(self) -> dict[str, Any]:
        """Get statistics summary."""
        dispatch = self._dispatcher.stats
        return {
            "state": self._state.value,
            "subscriptions": len(self._registry),
            "frames_received": self._stats.frames_received,
            "heartbeats_answered": self._heartbeat.probes_answered,
            "decode_errors": self._stats.decode_errors,
            "unknown_channels": self._stats.unknown_channels,
            "reconnects": self._stats.reconnects,
            "dispatch": {
                "frames": dispatch.frames_dispatched,
                "events": dispatch.events_delivered,
                "callback_errors": dispatch.callback_errors,
                "by_kind": dict(dispatch.by_kind),
            },
        }
