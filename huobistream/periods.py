"""
Candle period codec.

Maps the internal KlinePeriod enumeration to the tokens Huobi uses in kline
channel names (``market.btcusdt.kline.1min``) and back.
"""

from __future__ import annotations

import logging
from enum import Enum
from types import MappingProxyType
from typing import Mapping

logger = logging.getLogger(__name__)


class KlinePeriod(str, Enum):
    """Candle aggregation periods supported by the stream."""

    MIN_1 = "1m"
    MIN_5 = "5m"
    MIN_15 = "15m"
    MIN_30 = "30m"
    HOUR_1 = "1h"
    HOUR_4 = "4h"
    DAY_1 = "1d"
    WEEK_1 = "1w"
    MONTH_1 = "1M"
    YEAR_1 = "1y"


PERIOD_TOKENS: Mapping[KlinePeriod, str] = MappingProxyType(
    {
        KlinePeriod.MIN_1: "1min",
        KlinePeriod.MIN_5: "5min",
        KlinePeriod.MIN_15: "15min",
        KlinePeriod.MIN_30: "30min",
        KlinePeriod.HOUR_1: "60min",
        KlinePeriod.HOUR_4: "4hour",
        KlinePeriod.DAY_1: "1day",
        KlinePeriod.WEEK_1: "1week",
        KlinePeriod.MONTH_1: "1mon",
        KlinePeriod.YEAR_1: "1year",
    }
)

# Only tokens emitted by a known period are reversible.
TOKEN_PERIODS: Mapping[str, KlinePeriod] = MappingProxyType(
    {token: period for period, token in PERIOD_TOKENS.items()}
)

# Applied in both directions when a lookup misses. Kept from the exchange
# adapter this client replaces; it hides typos in channel names, so revisit
# with the protocol owner before relying on it.
UNMAPPED_TOKEN_FALLBACK: KlinePeriod = KlinePeriod.MIN_1


class PeriodCodec:
    """Bidirectional lookup between KlinePeriod and wire tokens."""

    def __init__(
        self,
        tokens: Mapping[KlinePeriod, str] = PERIOD_TOKENS,
        fallback: KlinePeriod = UNMAPPED_TOKEN_FALLBACK,
    ) -> None:
        self._tokens = MappingProxyType(dict(tokens))
        self._periods = MappingProxyType({token: period for period, token in tokens.items()})
        self._fallback = fallback

    @property
    def fallback(self) -> KlinePeriod:
        return self._fallback

    def to_token(self, period: KlinePeriod) -> str:
        """Wire token for ``period``; unknown periods use the fallback token."""
        token = self._tokens.get(period)
        if token is None:
            logger.warning(
                f"No wire token for period {period!r}, using {self._tokens[self._fallback]}"
            )
            return self._tokens[self._fallback]
        return token

    def to_period(self, token: str) -> KlinePeriod:
        """Period for ``token``; unmapped tokens resolve to the fallback period."""
        period = self._periods.get(token)
        if period is None:
            logger.debug(f"Unmapped period token {token!r}, falling back to {self._fallback.name}")
            return self._fallback
        return period

    def is_known_token(self, token: str) -> bool:
        return token in self._periods


DEFAULT_CODEC = PeriodCodec()
