"""
Huobi spot market-data client.

Thin facade over SessionManager with one callback setter and one subscribe
method per event kind.

Usage:
    async def on_trade(trade: TradeEvent) -> None:
        print(trade.pair, trade.price, trade.amount)

    client = HuobiSpotStream()
    client.on_trade(on_trade)
    await client.subscribe_trade(CurrencyPair("btc", "usdt"))
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional

from huobistream.config import StreamConfig
from huobistream.periods import KlinePeriod
from huobistream.session import SessionManager, TransportFactory
from huobistream.types import (
    CandleEvent,
    CurrencyPair,
    DepthEvent,
    EventKind,
    Subscription,
    TickerEvent,
    TradeEvent,
)


def _as_pair(pair: CurrencyPair | str) -> CurrencyPair:
    if isinstance(pair, CurrencyPair):
        return pair
    return CurrencyPair.parse(pair)


class HuobiSpotStream:
    """Public market-data streams of the Huobi spot exchange."""

    def __init__(
        self,
        config: Optional[StreamConfig] = None,
        *,
        transport_factory: Optional[TransportFactory] = None,
        name: str = "huobi_spot",
    ) -> None:
        self._config = config or StreamConfig()
        self._session = SessionManager(
            self._config,
            transport_factory=transport_factory,
            name=name,
        )

    @property
    def session(self) -> SessionManager:
        return self._session

    # --- Callbacks ---

    def on_depth(self, callback: Callable[[DepthEvent], Awaitable[None]]) -> None:
        self._session.register_callback(EventKind.DEPTH, callback)

    def on_ticker(self, callback: Callable[[TickerEvent], Awaitable[None]]) -> None:
        self._session.register_callback(EventKind.TICKER, callback)

    def on_trade(self, callback: Callable[[TradeEvent], Awaitable[None]]) -> None:
        self._session.register_callback(EventKind.TRADE, callback)

    def on_candle(self, callback: Callable[[CandleEvent], Awaitable[None]]) -> None:
        self._session.register_callback(EventKind.CANDLE, callback)

    # --- Subscriptions ---

    async def subscribe_depth(self, pair: CurrencyPair | str) -> None:
        await self._session.subscribe(
            Subscription(
                kind=EventKind.DEPTH,
                pair=_as_pair(pair),
                depth_levels=self._config.depth_levels,
            )
        )

    async def subscribe_ticker(self, pair: CurrencyPair | str) -> None:
        await self._session.subscribe(Subscription(kind=EventKind.TICKER, pair=_as_pair(pair)))

    async def subscribe_trade(self, pair: CurrencyPair | str) -> None:
        await self._session.subscribe(Subscription(kind=EventKind.TRADE, pair=_as_pair(pair)))

    async def subscribe_candle(
        self,
        pair: CurrencyPair | str,
        period: KlinePeriod = KlinePeriod.MIN_1,
    ) -> None:
        await self._session.subscribe(
            Subscription(kind=EventKind.CANDLE, pair=_as_pair(pair), period=period)
        )

    async def close(self) -> None:
        await self._session.close()

    async def __aenter__(self) -> HuobiSpotStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
