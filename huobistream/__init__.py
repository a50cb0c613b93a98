"""
Huobi Spot Market Data Stream.

This package streams real-time market data from the Huobi spot WebSocket API
and delivers normalized events to per-kind async callbacks.

Components:
- HuobiSpotStream: Public client facade
- SessionManager: Lazy connect, inbound routing, subscription replay on reconnect
- ConnectionManager: WebSocket lifecycle, gzip decompression, reconnection
- HeartbeatResponder: Inline ping/pong handling
- ChannelClassifier: Channel name -> event kind
- EventDispatcher: Payload decoding and callback invocation
- SubscriptionRegistry: Subscriptions kept for replay
- PeriodCodec: KlinePeriod <-> wire token mapping

Usage:
    from huobistream import CurrencyPair, HuobiSpotStream, KlinePeriod

    client = HuobiSpotStream()
    client.on_candle(on_candle)
    await client.subscribe_candle(CurrencyPair("btc", "usdt"), KlinePeriod.MIN_5)
"""

from huobistream.classifier import ChannelClassifier, Classification, classify_channel
from huobistream.client import HuobiSpotStream
from huobistream.config import ConnectionConfig, StreamConfig, Venue, load_config
from huobistream.errors import (
    ConfigurationError,
    MessageParseError,
    MissingCallbackError,
    StreamConnectionError,
    StreamError,
)
from huobistream.handlers import EventDispatcher
from huobistream.heartbeat import HeartbeatResponder
from huobistream.periods import UNMAPPED_TOKEN_FALLBACK, KlinePeriod, PeriodCodec
from huobistream.session import SessionManager
from huobistream.subscriptions import SubscriptionRegistry
from huobistream.types import (
    CandleEvent,
    CurrencyPair,
    DepthEvent,
    DepthLevel,
    EventKind,
    Subscription,
    TickerEvent,
    TradeEvent,
    TradeSide,
)

__all__ = [
    # Main entry point
    "HuobiSpotStream",
    "StreamConfig",
    "ConnectionConfig",
    "Venue",
    "load_config",
    # Components
    "SessionManager",
    "ChannelClassifier",
    "Classification",
    "classify_channel",
    "EventDispatcher",
    "HeartbeatResponder",
    "SubscriptionRegistry",
    "PeriodCodec",
    "KlinePeriod",
    "UNMAPPED_TOKEN_FALLBACK",
    # Types
    "CurrencyPair",
    "EventKind",
    "Subscription",
    "DepthEvent",
    "DepthLevel",
    "TickerEvent",
    "TradeEvent",
    "TradeSide",
    "CandleEvent",
    # Errors
    "StreamError",
    "StreamConnectionError",
    "MessageParseError",
    "ConfigurationError",
    "MissingCallbackError",
]
