"""
Shared types, enums, and data structures for the Huobi stream client.

This module contains the normalized domain events handed to callbacks, the
subscription model, and the connection health types.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from huobistream.periods import DEFAULT_CODEC, KlinePeriod

# Checked in order; the first matching suffix wins.
KNOWN_QUOTES: tuple[str, ...] = ("usdt", "husd", "usdc", "btc", "eth", "trx", "ht")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def ms_to_datetime(ts_ms: int) -> datetime:
    """Convert Unix milliseconds to an aware UTC datetime without float rounding."""
    return _EPOCH + timedelta(milliseconds=ts_ms)


class ConnectionState(str, Enum):
    """State machine for the WebSocket transport."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSING = "closing"
    CLOSED = "closed"


class SessionState(str, Enum):
    """One-time initialization state of a session."""

    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class EventKind(str, Enum):
    """Market data kinds carried by the stream."""

    DEPTH = "depth"
    TICKER = "ticker"
    TRADE = "trade"
    CANDLE = "candle"
    UNKNOWN = "unknown"


class TradeSide(str, Enum):
    BUY = "buy"
    SELL = "sell"

    @classmethod
    def from_direction(cls, direction: str) -> TradeSide:
        """Map Huobi's ``direction`` field; anything but "sell" is a buy."""
        if direction.lower() == "sell":
            return cls.SELL
        return cls.BUY


# --- Instruments ---


@dataclass(frozen=True, slots=True)
class CurrencyPair:
    """Base/quote currency pair, e.g. BTC/USDT."""

    base: str
    quote: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "base", self.base.lower())
        object.__setattr__(self, "quote", self.quote.lower())

    @property
    def symbol(self) -> str:
        """Wire symbol: lower-cased base and quote concatenated ("btcusdt")."""
        return f"{self.base}{self.quote}"

    @classmethod
    def from_symbol(cls, symbol: str) -> CurrencyPair:
        """Split a wire symbol on a known quote suffix; unknown quotes keep the symbol as base."""
        symbol = symbol.lower()
        for quote in KNOWN_QUOTES:
            if symbol.endswith(quote) and len(symbol) > len(quote):
                return cls(base=symbol[: -len(quote)], quote=quote)
        return cls(base=symbol, quote="")

    @classmethod
    def parse(cls, text: str) -> CurrencyPair:
        """Parse "BTC/USDT", "btc_usdt" or "BTC-USDT"; falls back to from_symbol."""
        parts = re.split(r"[/_\-]", text.strip())
        if len(parts) == 2 and all(parts):
            return cls(base=parts[0], quote=parts[1])
        return cls.from_symbol(text.strip())

    def __str__(self) -> str:
        if not self.quote:
            return self.base.upper()
        return f"{self.base.upper()}/{self.quote.upper()}"


# --- Domain events ---


@dataclass(frozen=True, slots=True)
class DepthLevel:
    """Single price level in an order book."""

    price: float
    size: float


@dataclass(frozen=True, slots=True)
class DepthEvent:
    """Order book refresh (mbp.refresh channel)."""

    pair: CurrencyPair
    ts: datetime
    bids: tuple[DepthLevel, ...]  # Best bid first
    asks: tuple[DepthLevel, ...]  # Best ask first
    seq_num: Optional[int] = None

    @property
    def best_bid(self) -> Optional[float]:
        return self.bids[0].price if self.bids else None

    @property
    def best_ask(self) -> Optional[float]:
        return self.asks[0].price if self.asks else None

    @property
    def spread(self) -> Optional[float]:
        """Absolute spread, or None if either side is empty."""
        if self.bids and self.asks:
            return self.asks[0].price - self.bids[0].price
        return None


@dataclass(frozen=True, slots=True)
class TickerEvent:
    """24h rolling market detail for a pair."""

    pair: CurrencyPair
    ts: datetime
    last: float
    open: float
    high: float
    low: float
    volume: float  # Base currency amount
    turnover: float  # Quote currency volume
    count: int


@dataclass(frozen=True, slots=True)
class TradeEvent:
    """A single trade print."""

    pair: CurrencyPair
    ts: datetime  # Envelope timestamp
    trade_id: int
    price: float
    amount: float
    side: TradeSide
    trade_ts: datetime  # Matching engine timestamp of this print


@dataclass(frozen=True, slots=True)
class CandleEvent:
    """Candlestick update; Huobi pushes the open candle repeatedly until it closes."""

    pair: CurrencyPair
    ts: datetime
    period: KlinePeriod
    open_time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float  # Base currency amount
    turnover: float  # Quote currency volume
    count: int


DomainEvent = DepthEvent | TickerEvent | TradeEvent | CandleEvent


# --- Wire ---


@dataclass(frozen=True, slots=True)
class WireEnvelope:
    """Generic inbound data frame: channel name, server timestamp, payload."""

    channel: str
    ts: int  # Server timestamp (Unix ms)
    tick: Any
    raw: bytes = field(repr=False, default=b"")

    @property
    def timestamp(self) -> datetime:
        return ms_to_datetime(self.ts)


@dataclass(frozen=True, slots=True)
class SubscriptionAck:
    """Server reply to a subscribe control frame."""

    id: Optional[str]
    status: str
    ts: int
    subbed: Optional[str] = None
    err_code: Optional[str] = None
    err_msg: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


# --- Subscriptions ---


TOPIC_IDS: dict[EventKind, str] = {
    EventKind.DEPTH: "spot.depth",
    EventKind.TICKER: "spot.ticker",
    EventKind.TRADE: "spot.trade",
    EventKind.CANDLE: "spot.candle",
}

DEFAULT_DEPTH_LEVELS = 20


@dataclass(frozen=True, slots=True)
class Subscription:
    """A channel subscription request; replayed verbatim after reconnects."""

    kind: EventKind
    pair: CurrencyPair
    period: Optional[KlinePeriod] = None  # Candles only
    depth_levels: Optional[int] = None  # Depth only

    @property
    def channel(self) -> str:
        """Generate the Huobi channel name."""
        symbol = self.pair.symbol

        if self.kind == EventKind.DEPTH:
            levels = self.depth_levels or DEFAULT_DEPTH_LEVELS
            return f"market.{symbol}.mbp.refresh.{levels}"
        elif self.kind == EventKind.TICKER:
            return f"market.{symbol}.detail"
        elif self.kind == EventKind.TRADE:
            return f"market.{symbol}.trade.detail"
        elif self.kind == EventKind.CANDLE:
            token = DEFAULT_CODEC.to_token(self.period or DEFAULT_CODEC.fallback)
            return f"market.{symbol}.kline.{token}"
        raise ValueError(f"Cannot build a channel for kind {self.kind.value}")

    @property
    def topic_id(self) -> str:
        return TOPIC_IDS[self.kind]

    def to_frame(self) -> dict[str, str]:
        """Subscribe control frame."""
        return {"id": self.topic_id, "sub": self.channel}


# --- Health ---


@dataclass
class ConnectionHealth:
    """Health snapshot for the WebSocket connection."""

    state: ConnectionState
    url: str
    connected_since: Optional[datetime] = None
    last_message_at: Optional[datetime] = None
    reconnect_count: int = 0
    message_count: int = 0
    error_count: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    @property
    def uptime_s(self) -> Optional[float]:
        """Connection uptime in seconds, or None if not connected."""
        if self.connected_since is None:
            return None
        now = datetime.now(timezone.utc)
        return (now - self.connected_since).total_seconds()

    @property
    def is_healthy(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @property
    def seconds_since_message(self) -> Optional[float]:
        """Seconds since last message, or None if no messages yet."""
        if self.last_message_at is None:
            return None
        now = datetime.now(timezone.utc)
        return (now - self.last_message_at).total_seconds()


@dataclass
class ConnectionMetrics:
    """Counters for a WebSocket connection."""

    messages_received: int = 0
    bytes_received: int = 0
    messages_sent: int = 0
    reconnections: int = 0
    errors: int = 0

    # monotonic time
    connected_at: Optional[float] = None
    last_message_at: Optional[float] = None
