"""
WebSocket transport for the Huobi stream.

The exchange pushes every market-data frame as gzip-compressed binary. This
module owns the socket and nothing above it:
- opening the socket within ``connect_timeout_s``
- treating ``receive_timeout_s`` of silence as a dead socket
- gunzipping binary frames before handing them on
- reopening lost sockets with capped, jittered exponential backoff

Frames are passed through uninterpreted. After each successful open the
transport awaits ``on_connected`` and only then starts reading, so the owner
can restore its subscriptions ahead of any new inbound data.
"""

from __future__ import annotations

import asyncio
import gzip
import logging
import random
import time
import zlib
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import aiohttp

from huobistream.config import ConnectionConfig
from huobistream.errors import StreamConnectionError
from huobistream.types import ConnectionHealth, ConnectionMetrics, ConnectionState

logger = logging.getLogger(__name__)

FrameCallback = Callable[[bytes], Awaitable[None]]
ConnectedCallback = Callable[[bool], Awaitable[None]]

MIN_BACKOFF_S = 0.1


class ConnectionManager:
    """
    One WebSocket to a Huobi endpoint, reopened when it drops.

    Usage:
        async def on_frame(raw: bytes) -> None:
            ...

        async def on_connected(reconnect: bool) -> None:
            ...

        ws = ConnectionManager(ConnectionConfig(), on_frame, on_connected)
        await ws.connect()
        await ws.send('{"id": "spot.ticker", "sub": "market.btcusdt.detail"}')
        await ws.close()
    """

    def __init__(
        self,
        config: ConnectionConfig,
        on_frame: FrameCallback,
        on_connected: Optional[ConnectedCallback] = None,
        decompress: Callable[[bytes], bytes] = gzip.decompress,
        name: str = "connection",
    ) -> None:
        """
        Args:
            config: Endpoint, timeouts and backoff settings
            on_frame: Awaited with each inbound frame, already decompressed
            on_connected: Awaited after every successful open and before
                reading starts; the argument is False only for the first open
            decompress: Applied to BINARY frames
            name: Prefix for log lines
        """
        self._config = config
        self._url = config.url
        self._on_frame = on_frame
        self._on_connected = on_connected
        self._decompress = decompress
        self._name = name

        self._state = ConnectionState.DISCONNECTED
        self._http: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._has_connected = False

        self._receive_task: Optional[asyncio.Task[None]] = None
        self._reconnect_task: Optional[asyncio.Task[None]] = None

        self._reconnect_attempt = 0
        self._should_reconnect = True
        self._closing = asyncio.Event()

        self._metrics = ConnectionMetrics()
        self._opened_at: Optional[datetime] = None
        self._last_frame_at: Optional[datetime] = None
        self._last_error: Optional[str] = None
        self._last_error_at: Optional[datetime] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def url(self) -> str:
        return self._url

    @property
    def metrics(self) -> ConnectionMetrics:
        return self._metrics

    def _transition(self, state: ConnectionState) -> None:
        if state != self._state:
            logger.debug(f"[{self._name}] {self._state.value} -> {state.value}")
        self._state = state

    # --- Opening ---

    async def connect(self) -> None:
        """
        Open the socket, retrying per the backoff settings, then start reading.

        Raises:
            StreamConnectionError: If ``max_reconnect_attempts`` is exhausted
        """
        if self._state in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
            logger.warning(f"[{self._name}] connect() while {self._state.value}, ignoring")
            return

        self._should_reconnect = True
        self._closing.clear()
        await self._open_until_ready()

    def _retries_exhausted(self) -> bool:
        limit = self._config.max_reconnect_attempts
        return limit > 0 and self._reconnect_attempt > limit

    async def _open_until_ready(self) -> None:
        self._transition(ConnectionState.CONNECTING)

        while self._should_reconnect:
            try:
                await self._establish_connection()
                if self._on_connected:
                    await self._on_connected(self._has_connected)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                await self._record_failure(e)
                continue

            self._has_connected = True
            self._reconnect_attempt = 0
            self._transition(ConnectionState.CONNECTED)
            self._receive_task = asyncio.create_task(
                self._receive_loop(), name=f"{self._name}_receive"
            )
            return

    async def _record_failure(self, error: Exception) -> None:
        """Count a failed open and sleep off the backoff, or give up."""
        self._reconnect_attempt += 1
        self._metrics.errors += 1
        self._last_error = str(error)
        self._last_error_at = datetime.now(timezone.utc)
        await self._close_socket()

        if self._retries_exhausted():
            self._transition(ConnectionState.DISCONNECTED)
            raise StreamConnectionError(
                f"Gave up on {self._url} after {self._reconnect_attempt} attempts",
                url=self._url,
                reconnect_attempt=self._reconnect_attempt,
                component="ConnectionManager",
            ) from error

        delay = self._calculate_backoff_delay()
        logger.warning(
            f"[{self._name}] Open failed ({error}), attempt {self._reconnect_attempt}, "
            f"next try in {delay:.2f}s"
        )
        self._transition(ConnectionState.RECONNECTING)
        await asyncio.sleep(delay)

    async def _establish_connection(self) -> None:
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.connect_timeout_s)
            )

        logger.info(f"[{self._name}] Opening {self._url}")
        self._ws = await self._http.ws_connect(
            self._url,
            receive_timeout=self._config.receive_timeout_s,
            autoping=True,
        )
        self._opened_at = datetime.now(timezone.utc)
        self._metrics.connected_at = time.monotonic()
        logger.info(f"[{self._name}] Socket open")

    def _calculate_backoff_delay(self) -> float:
        """base * 2^(attempt-1), capped at the max delay, then jittered."""
        cfg = self._config
        delay = min(
            cfg.base_reconnect_delay_s * (2 ** (self._reconnect_attempt - 1)),
            cfg.max_reconnect_delay_s,
        )
        spread = delay * cfg.reconnect_jitter
        return float(max(MIN_BACKOFF_S, delay + random.uniform(-spread, spread)))

    # --- Reading ---

    def _to_frame(self, msg: aiohttp.WSMessage) -> Optional[bytes]:
        """Frame bytes for TEXT/BINARY messages, None for control messages."""
        if msg.type == aiohttp.WSMsgType.BINARY:
            return self._decompress(msg.data)
        if msg.type == aiohttp.WSMsgType.TEXT:
            return msg.data.encode("utf-8")
        return None

    async def _deliver(self, msg: aiohttp.WSMessage) -> None:
        self._last_frame_at = datetime.now(timezone.utc)
        self._metrics.last_message_at = time.monotonic()
        self._metrics.messages_received += 1
        self._metrics.bytes_received += len(msg.data)

        try:
            frame = self._to_frame(msg)
        except (OSError, EOFError, zlib.error) as e:
            # BadGzipFile is an OSError, truncated streams raise EOFError and a
            # corrupt deflate body raises zlib.error
            self._metrics.errors += 1
            logger.warning(f"[{self._name}] Undecodable binary frame dropped: {e}")
            return

        if frame is None:
            return
        try:
            await self._on_frame(frame)
        except Exception as e:
            self._metrics.errors += 1
            logger.error(f"[{self._name}] on_frame raised: {e}")

    async def _receive_loop(self) -> None:
        ws = self._ws
        if ws is None:
            return

        try:
            async for msg in ws:
                if self._closing.is_set():
                    break
                if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    await self._deliver(msg)
                elif msg.type == aiohttp.WSMsgType.CLOSE:
                    logger.info(f"[{self._name}] Close frame from server")
                    break
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self._metrics.errors += 1
                    logger.error(f"[{self._name}] Socket error: {ws.exception()}")
                    break
        except asyncio.CancelledError:
            logger.debug(f"[{self._name}] Reader cancelled")
            raise
        except Exception as e:
            self._metrics.errors += 1
            self._last_error = str(e)
            self._last_error_at = datetime.now(timezone.utc)
            logger.error(f"[{self._name}] Reader failed: {e}")

        if self._should_reconnect and not self._closing.is_set():
            logger.info(f"[{self._name}] Socket lost, reopening")
            self._metrics.reconnections += 1
            self._reconnect_task = asyncio.create_task(
                self._reconnect(), name=f"{self._name}_reconnect"
            )

    async def _reconnect(self) -> None:
        await self._close_socket()
        self._transition(ConnectionState.RECONNECTING)
        try:
            await self._open_until_ready()
        except StreamConnectionError as e:
            logger.error(f"[{self._name}] Reconnect abandoned: {e}")

    # --- Writing and shutdown ---

    async def send(self, data: str | bytes) -> None:
        """
        Send a control frame as text.

        Raises:
            StreamConnectionError: If the socket is not open
        """
        if self._ws is None or self._ws.closed:
            raise StreamConnectionError(
                "Socket is not open",
                url=self._url,
                component="ConnectionManager",
            )
        await self._ws.send_str(data.decode("utf-8") if isinstance(data, bytes) else data)
        self._metrics.messages_sent += 1

    async def _close_socket(self) -> None:
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        self._ws = None

    async def _stop_tasks(self) -> None:
        current = asyncio.current_task()
        for task in (self._receive_task, self._reconnect_task):
            if task is None or task is current or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._receive_task = None
        self._reconnect_task = None

    async def close(self) -> None:
        """Stop reading, stop reconnecting and release the HTTP session."""
        logger.info(f"[{self._name}] Closing")
        self._should_reconnect = False
        self._closing.set()
        self._transition(ConnectionState.CLOSING)

        await self._stop_tasks()
        await self._close_socket()
        if self._http is not None and not self._http.closed:
            await self._http.close()
        self._http = None

        self._transition(ConnectionState.CLOSED)
        logger.info(f"[{self._name}] Closed")

    def get_health(self) -> ConnectionHealth:
        return ConnectionHealth(
            state=self._state,
            url=self._url,
            connected_since=self._opened_at,
            last_message_at=self._last_frame_at,
            reconnect_count=self._metrics.reconnections,
            message_count=self._metrics.messages_received,
            error_count=self._metrics.errors,
            last_error=self._last_error,
            last_error_at=self._last_error_at,
        )
