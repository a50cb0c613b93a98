"""
Unit tests for shared stream types.
"""

from datetime import datetime, timezone

import pytest

from huobistream.periods import KlinePeriod
from huobistream.types import (
    CurrencyPair,
    DepthEvent,
    DepthLevel,
    EventKind,
    Subscription,
    TradeSide,
    WireEnvelope,
    ms_to_datetime,
)

BTC = CurrencyPair("BTC", "USDT")


class TestCurrencyPair:
    """Tests for CurrencyPair."""

    def test_symbol_is_lower_concatenation(self) -> None:
        assert BTC.symbol == "btcusdt"
        assert BTC.base == "btc"
        assert BTC.quote == "usdt"

    def test_str(self) -> None:
        assert str(BTC) == "BTC/USDT"

    def test_immutable(self) -> None:
        with pytest.raises(AttributeError):
            BTC.base = "eth"  # type: ignore[misc]

    def test_equality_ignores_case(self) -> None:
        assert CurrencyPair("btc", "usdt") == CurrencyPair("BTC", "USDT")

    @pytest.mark.parametrize(
        "symbol,base,quote",
        [
            ("btcusdt", "btc", "usdt"),
            ("ETHBTC", "eth", "btc"),
            ("htusdt", "ht", "usdt"),
            ("btchusd", "btc", "husd"),
            ("xrpht", "xrp", "ht"),
            ("unknownpair", "unknownpair", ""),
            ("usdt", "usdt", ""),
        ],
    )
    def test_from_symbol(self, symbol: str, base: str, quote: str) -> None:
        pair = CurrencyPair.from_symbol(symbol)
        assert (pair.base, pair.quote) == (base, quote)

    @pytest.mark.parametrize("text", ["BTC/USDT", "btc_usdt", "BTC-USDT", "btcusdt"])
    def test_parse(self, text: str) -> None:
        assert CurrencyPair.parse(text) == BTC


class TestTimestamps:
    def test_ms_to_datetime(self) -> None:
        ts = ms_to_datetime(1611162033214)
        assert ts == datetime(2021, 1, 20, 17, 0, 33, 214000, tzinfo=timezone.utc)
        assert ts.tzinfo is timezone.utc

    def test_envelope_timestamp(self) -> None:
        envelope = WireEnvelope(channel="market.btcusdt.detail", ts=0, tick={})
        assert envelope.timestamp == datetime(1970, 1, 1, tzinfo=timezone.utc)


class TestTradeSide:
    @pytest.mark.parametrize(
        "direction,side",
        [("buy", TradeSide.BUY), ("sell", TradeSide.SELL), ("SELL", TradeSide.SELL)],
    )
    def test_from_direction(self, direction: str, side: TradeSide) -> None:
        assert TradeSide.from_direction(direction) == side


class TestDepthEvent:
    @pytest.fixture
    def book(self) -> DepthEvent:
        return DepthEvent(
            pair=BTC,
            ts=ms_to_datetime(1),
            bids=(DepthLevel(100.0, 1.0), DepthLevel(99.5, 2.0)),
            asks=(DepthLevel(100.5, 1.5), DepthLevel(101.0, 3.0)),
            seq_num=7,
        )

    def test_best_prices(self, book: DepthEvent) -> None:
        assert book.best_bid == 100.0
        assert book.best_ask == 100.5
        assert book.spread == pytest.approx(0.5)

    def test_empty_book(self) -> None:
        book = DepthEvent(pair=BTC, ts=ms_to_datetime(1), bids=(), asks=())
        assert book.best_bid is None
        assert book.best_ask is None
        assert book.spread is None


class TestSubscription:
    """Tests for Subscription channel and frame generation."""

    @pytest.mark.parametrize(
        "subscription,channel,topic_id",
        [
            (Subscription(EventKind.DEPTH, BTC), "market.btcusdt.mbp.refresh.20", "spot.depth"),
            (
                Subscription(EventKind.DEPTH, BTC, depth_levels=5),
                "market.btcusdt.mbp.refresh.5",
                "spot.depth",
            ),
            (Subscription(EventKind.TICKER, BTC), "market.btcusdt.detail", "spot.ticker"),
            (Subscription(EventKind.TRADE, BTC), "market.btcusdt.trade.detail", "spot.trade"),
            (
                Subscription(EventKind.CANDLE, BTC, period=KlinePeriod.HOUR_4),
                "market.btcusdt.kline.4hour",
                "spot.candle",
            ),
            (Subscription(EventKind.CANDLE, BTC), "market.btcusdt.kline.1min", "spot.candle"),
        ],
    )
    def test_channel_and_topic(
        self, subscription: Subscription, channel: str, topic_id: str
    ) -> None:
        assert subscription.channel == channel
        assert subscription.topic_id == topic_id
        assert subscription.to_frame() == {"id": topic_id, "sub": channel}

    def test_unknown_kind_has_no_channel(self) -> None:
        with pytest.raises(ValueError):
            _ = Subscription(EventKind.UNKNOWN, BTC).channel
