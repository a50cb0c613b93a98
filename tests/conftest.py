"""
Shared fixtures: an in-memory transport standing in for the WebSocket.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import orjson
import pytest

from huobistream.connection import ConnectedCallback, FrameCallback
from huobistream.errors import StreamConnectionError
from huobistream.types import ConnectionHealth, ConnectionState


class FakeTransport:
    """Records sent frames and lets tests push inbound frames or reconnects."""

    def __init__(
        self,
        config: Any,
        on_frame: FrameCallback,
        on_connected: Optional[ConnectedCallback] = None,
        *,
        name: str = "connection",
        fail_connect: bool = False,
        send_failures: int = 0,
        timeline: Optional[list[Any]] = None,
    ) -> None:
        self.config = config
        self.on_frame = on_frame
        self.on_connected = on_connected
        self.name = name
        self.fail_connect = fail_connect
        self.send_failures = send_failures
        self.reopens = 0
        self.timeline = timeline if timeline is not None else []
        self.sent: list[bytes] = []
        self.connect_calls = 0
        self.closed = False
        self.state = ConnectionState.DISCONNECTED

    async def connect(self) -> None:
        self.connect_calls += 1
        # Yield so concurrent callers get a chance to race
        await asyncio.sleep(0)
        if self.fail_connect:
            raise StreamConnectionError("connect refused", url="wss://fake")
        # Like ConnectionManager, a socket lost inside on_connected is reopened
        # and on_connected runs again with reconnect=False
        while True:
            try:
                if self.on_connected:
                    await self.on_connected(False)
                break
            except StreamConnectionError:
                self.reopens += 1
                self.timeline.append(("reopen", None))
        self.state = ConnectionState.CONNECTED

    async def send(self, data: str | bytes) -> None:
        if self.send_failures > 0:
            self.send_failures -= 1
            raise StreamConnectionError("socket dropped", url="wss://fake")
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.sent.append(data)
        self.timeline.append(("send", data))

    async def close(self) -> None:
        self.closed = True
        self.state = ConnectionState.CLOSED

    def get_health(self) -> ConnectionHealth:
        return ConnectionHealth(state=self.state, url="wss://fake")

    async def feed(self, frame: bytes | str | dict[str, Any]) -> None:
        if isinstance(frame, dict):
            frame = orjson.dumps(frame)
        elif isinstance(frame, str):
            frame = frame.encode("utf-8")
        self.timeline.append(("frame", frame))
        await self.on_frame(frame)

    async def simulate_reconnect(self) -> None:
        self.timeline.append(("reconnect", None))
        assert self.on_connected is not None
        await self.on_connected(True)

    def sent_json(self) -> list[Any]:
        return [orjson.loads(s) for s in self.sent]


class FakeTransportFactory:
    """Callable matching ConnectionManager's constructor; keeps every transport built."""

    def __init__(self) -> None:
        self.instances: list[FakeTransport] = []
        self.fail_connect = False
        self.send_failures = 0
        self.timeline: list[Any] = []

    def __call__(
        self,
        config: Any,
        on_frame: FrameCallback,
        on_connected: Optional[ConnectedCallback] = None,
        *,
        name: str = "connection",
    ) -> FakeTransport:
        transport = FakeTransport(
            config,
            on_frame,
            on_connected,
            name=name,
            fail_connect=self.fail_connect,
            send_failures=self.send_failures,
            timeline=self.timeline,
        )
        self.instances.append(transport)
        return transport

    @property
    def transport(self) -> FakeTransport:
        assert self.instances, "no transport was built"
        return self.instances[-1]


@pytest.fixture
def transport_factory() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture
def trade_envelope() -> dict[str, Any]:
    """Trade frame as pushed by the exchange."""
    return {
        "ch": "market.btcusdt.trade.detail",
        "ts": 1611162033214,
        "tick": {
            "data": [
                {
                    "tradeId": 102051183444,
                    "amount": 2.3227,
                    "price": 1309.43,
                    "direction": "buy",
                    "ts": 1611162033202,
                }
            ]
        },
    }
