"""
Payload decoders and event dispatch.

Decoders validate the channel-specific ``tick`` object against a pydantic
schema and build the normalized domain events:
- DepthDecoder: mbp.refresh order book levels
- TickerDecoder: market detail (last/high/low/volume)
- TradeDecoder: trade prints, one event per print
- CandleDecoder: kline OHLC + volume

EventDispatcher owns the per-kind callback registry and hands decoded events
to the caller, in payload order.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from huobistream.classifier import Classification
from huobistream.errors import ConfigurationError, MessageParseError
from huobistream.types import (
    CandleEvent,
    CurrencyPair,
    DepthEvent,
    DepthLevel,
    EventKind,
    TickerEvent,
    TradeEvent,
    TradeSide,
    WireEnvelope,
    ms_to_datetime,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
S = TypeVar("S", bound=BaseModel)

EventCallback = Callable[[Any], Awaitable[None]]


# --- Wire schemas ---


class _Tick(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class DepthTick(_Tick):
    """
    mbp.refresh tick:
    {"seqNum": 100020142010, "bids": [[618.37, 71.594]], "asks": [[618.38, 1.2]]}
    """

    seq_num: Optional[int] = Field(default=None, alias="seqNum")
    bids: list[tuple[float, float]] = Field(default_factory=list)
    asks: list[tuple[float, float]] = Field(default_factory=list)


class DetailTick(_Tick):
    """
    market detail tick:
    {"id": 1489464585407, "open": 7962.62, "close": 8000.0, "low": 7962.62,
     "high": 8000.0, "amount": 0.06, "vol": 479.61, "count": 2}
    """

    open: float
    close: float
    high: float
    low: float
    amount: float = 0.0
    vol: float = 0.0
    count: int = 0


class KlineTick(_Tick):
    """
    kline tick, ``id`` is the candle open time in Unix seconds:
    {"id": 1489464480, "open": 7962.62, "close": 7962.62, "low": 7962.62,
     "high": 7962.62, "amount": 0.0, "vol": 0.0, "count": 0}
    """

    id: int
    open: float
    close: float
    high: float
    low: float
    amount: float = 0.0
    vol: float = 0.0
    count: int = 0


class TradePrint(_Tick):
    trade_id: int = Field(alias="tradeId")
    price: float
    amount: float
    direction: str
    ts: int


class TradeTick(_Tick):
    """
    trade.detail tick:
    {"id": 116292089599, "ts": 1611162033202,
     "data": [{"tradeId": 102051183444, "amount": 2.3227, "price": 1309.43,
               "direction": "buy", "ts": 1611162033202}]}
    """

    data: list[TradePrint] = Field(default_factory=list)


# --- Decoders ---


class BaseDecoder(ABC, Generic[S, T]):
    """
    Abstract base class for payload decoders.

    Each decoder:
    1. Validates the envelope's tick against its schema
    2. Builds one or more domain events from it
    """

    kind: EventKind
    schema: type[S]

    def decode(self, classification: Classification, envelope: WireEnvelope) -> tuple[T, ...]:
        """
        Decode an envelope.

        Raises:
            MessageParseError: If the channel has no symbol, the tick fails
                validation or a timestamp is out of range
        """
        if classification.pair is None:
            raise MessageParseError(
                "Channel carries no symbol",
                expected_type=self.kind.value,
                channel=envelope.channel,
            )

        try:
            tick = self.schema.model_validate(envelope.tick)
        except ValidationError as e:
            raise MessageParseError(
                f"Invalid {self.kind.value} payload: {e.error_count()} validation error(s)",
                expected_type=self.kind.value,
                channel=envelope.channel,
                details={"errors": e.errors(include_url=False, include_input=False)},
            ) from e

        try:
            return self._build(tick, classification, classification.pair, envelope)
        except (OverflowError, ValueError) as e:
            # Timestamps outside the datetime range
            raise MessageParseError(
                f"Invalid {self.kind.value} payload: {e}",
                expected_type=self.kind.value,
                channel=envelope.channel,
            ) from e

    @abstractmethod
    def _build(
        self,
        tick: S,
        classification: Classification,
        pair: CurrencyPair,
        envelope: WireEnvelope,
    ) -> tuple[T, ...]:
        ...


class DepthDecoder(BaseDecoder[DepthTick, DepthEvent]):
    kind = EventKind.DEPTH
    schema = DepthTick

    def _build(
        self,
        tick: DepthTick,
        classification: Classification,
        pair: CurrencyPair,
        envelope: WireEnvelope,
    ) -> tuple[DepthEvent, ...]:
        return (
            DepthEvent(
                pair=pair,
                ts=envelope.timestamp,
                bids=tuple(DepthLevel(price=p, size=s) for p, s in tick.bids),
                asks=tuple(DepthLevel(price=p, size=s) for p, s in tick.asks),
                seq_num=tick.seq_num,
            ),
        )


class TickerDecoder(BaseDecoder[DetailTick, TickerEvent]):
    kind = EventKind.TICKER
    schema = DetailTick

    def _build(
        self,
        tick: DetailTick,
        classification: Classification,
        pair: CurrencyPair,
        envelope: WireEnvelope,
    ) -> tuple[TickerEvent, ...]:
        return (
            TickerEvent(
                pair=pair,
                ts=envelope.timestamp,
                last=tick.close,
                open=tick.open,
                high=tick.high,
                low=tick.low,
                volume=tick.amount,
                turnover=tick.vol,
                count=tick.count,
            ),
        )


class TradeDecoder(BaseDecoder[TradeTick, TradeEvent]):
    kind = EventKind.TRADE
    schema = TradeTick

    def _build(
        self,
        tick: TradeTick,
        classification: Classification,
        pair: CurrencyPair,
        envelope: WireEnvelope,
    ) -> tuple[TradeEvent, ...]:
        ts = envelope.timestamp
        return tuple(
            TradeEvent(
                pair=pair,
                ts=ts,
                trade_id=p.trade_id,
                price=p.price,
                amount=p.amount,
                side=TradeSide.from_direction(p.direction),
                trade_ts=ms_to_datetime(p.ts),
            )
            for p in tick.data
        )


class CandleDecoder(BaseDecoder[KlineTick, CandleEvent]):
    kind = EventKind.CANDLE
    schema = KlineTick

    def _build(
        self,
        tick: KlineTick,
        classification: Classification,
        pair: CurrencyPair,
        envelope: WireEnvelope,
    ) -> tuple[CandleEvent, ...]:
        if classification.period is None:
            raise MessageParseError(
                "Candle channel carries no period",
                expected_type=self.kind.value,
                channel=envelope.channel,
            )
        return (
            CandleEvent(
                pair=pair,
                ts=envelope.timestamp,
                period=classification.period,
                open_time=ms_to_datetime(tick.id * 1000),
                open=tick.open,
                high=tick.high,
                low=tick.low,
                close=tick.close,
                volume=tick.amount,
                turnover=tick.vol,
                count=tick.count,
            ),
        )


DECODERS: dict[EventKind, BaseDecoder[Any, Any]] = {
    EventKind.DEPTH: DepthDecoder(),
    EventKind.TICKER: TickerDecoder(),
    EventKind.TRADE: TradeDecoder(),
    EventKind.CANDLE: CandleDecoder(),
}


# --- Dispatch ---


@dataclass
class DispatchStats:
    """Statistics for event dispatch."""

    frames_dispatched: int = 0
    events_delivered: int = 0
    without_callback: int = 0
    callback_errors: int = 0
    by_kind: dict[str, int] = field(default_factory=dict)


class EventDispatcher:
    """
    Decodes classified envelopes and invokes the callback registered for
    their event kind.

    Callbacks are awaited one at a time, so events reach the caller in the
    order they were received.
    """

    def __init__(
        self,
        decoders: Optional[dict[EventKind, BaseDecoder[Any, Any]]] = None,
        name: str = "dispatcher",
    ) -> None:
        self._decoders = decoders if decoders is not None else DECODERS
        self._callbacks: dict[EventKind, EventCallback] = {}
        self._name = name
        self._stats = DispatchStats()

    @property
    def stats(self) -> DispatchStats:
        return self._stats

    def register(self, kind: EventKind, callback: EventCallback) -> None:
        """Register the callback for ``kind``, replacing any previous one."""
        if kind not in self._decoders:
            raise ConfigurationError(
                f"No decoder for event kind {kind.value}",
                field="kind",
                value=kind.value,
                component="EventDispatcher",
            )
        self._callbacks[kind] = callback
        logger.debug(f"[{self._name}] Registered callback for {kind.value}")

    def has_callback(self, kind: EventKind) -> bool:
        return kind in self._callbacks

    async def dispatch(self, classification: Classification, envelope: WireEnvelope) -> int:
        """
        Decode and deliver one envelope.

        Returns:
            Number of events handed to the callback

        Raises:
            MessageParseError: If the payload does not match the kind's schema
        """
        decoder = self._decoders.get(classification.kind)
        if decoder is None:
            raise MessageParseError(
                f"No decoder for event kind {classification.kind.value}",
                channel=envelope.channel,
            )

        events = decoder.decode(classification, envelope)
        self._stats.frames_dispatched += 1

        callback = self._callbacks.get(classification.kind)
        if callback is None:
            self._stats.without_callback += 1
            logger.debug(
                f"[{self._name}] No callback for {classification.kind.value}, "
                f"dropping {envelope.channel}"
            )
            return 0

        delivered = 0
        for event in events:
            try:
                await callback(event)
                delivered += 1
            except Exception as e:
                self._stats.callback_errors += 1
                logger.error(
                    f"[{self._name}] Callback error for {classification.kind.value}: {e}",
                    exc_info=True,
                )

        key = classification.kind.value
        self._stats.events_delivered += delivered
        self._stats.by_kind[key] = self._stats.by_kind.get(key, 0) + delivered
        return delivered

    def reset_stats(self) -> None:
        self._stats = DispatchStats()
