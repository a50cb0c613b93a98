"""
Channel classification.

Maps a Huobi channel name (``market.<symbol>.<subtype...>``) to the event kind
whose payload schema the frame carries.

Rules are evaluated top to bottom and the first match wins. The order is
load-bearing: ``market.btcusdt.trade.detail`` also ends with ``.detail``, so the
trade rule has to run before the ticker rule.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from huobistream.periods import DEFAULT_CODEC, KlinePeriod, PeriodCodec
from huobistream.types import CurrencyPair, EventKind

logger = logging.getLogger(__name__)

PAIR_SEGMENT = 1
PERIOD_SEGMENT = 3


@dataclass(frozen=True, slots=True)
class ClassificationRule:
    name: str
    matches: Callable[[str], bool]
    kind: EventKind


CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule("depth", lambda ch: "mbp.refresh" in ch, EventKind.DEPTH),
    ClassificationRule("candle", lambda ch: "kline" in ch, EventKind.CANDLE),
    ClassificationRule("trade", lambda ch: ch.endswith(".trade.detail"), EventKind.TRADE),
    ClassificationRule("ticker", lambda ch: ch.endswith(".detail"), EventKind.TICKER),
)


@dataclass(frozen=True, slots=True)
class Classification:
    """Result of classifying a channel name."""

    kind: EventKind
    channel: str
    pair: Optional[CurrencyPair] = None
    period: Optional[KlinePeriod] = None
    period_token: Optional[str] = None

    @property
    def is_known(self) -> bool:
        return self.kind != EventKind.UNKNOWN


class ChannelClassifier:
    """Ordered, first-match classifier for channel names."""

    def __init__(
        self,
        rules: tuple[ClassificationRule, ...] = CLASSIFICATION_RULES,
        codec: PeriodCodec = DEFAULT_CODEC,
    ) -> None:
        self._rules = rules
        self._codec = codec

    @property
    def rules(self) -> tuple[ClassificationRule, ...]:
        return self._rules

    def classify(self, channel: str) -> Classification:
        segments = channel.split(".")
        pair = None
        if len(segments) > PAIR_SEGMENT and segments[PAIR_SEGMENT]:
            pair = CurrencyPair.from_symbol(segments[PAIR_SEGMENT].lower())

        for rule in self._rules:
            if not rule.matches(channel):
                continue

            if rule.kind == EventKind.CANDLE:
                token = segments[PERIOD_SEGMENT] if len(segments) > PERIOD_SEGMENT else ""
                return Classification(
                    kind=rule.kind,
                    channel=channel,
                    pair=pair,
                    period=self._codec.to_period(token),
                    period_token=token,
                )
            return Classification(kind=rule.kind, channel=channel, pair=pair)

        return Classification(kind=EventKind.UNKNOWN, channel=channel, pair=pair)


def classify_channel(channel: str) -> Classification:
    """Classify with the default rule table."""
    return _DEFAULT_CLASSIFIER.classify(channel)


_DEFAULT_CLASSIFIER = ChannelClassifier()
