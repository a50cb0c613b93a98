"""
Envelope decoding for inbound (already decompressed) frames.

Data frames look like:
{
    "ch": "market.btcusdt.trade.detail",
    "ts": 1611162033214,
    "tick": { ... channel specific ... }
}

Subscribe replies look like:
{
    "id": "spot.trade",
    "status": "ok",
    "subbed": "market.btcusdt.trade.detail",
    "ts": 1611162033100
}
"""

from __future__ import annotations

from typing import Any

import orjson

from huobistream.errors import MessageParseError
from huobistream.types import SubscriptionAck, WireEnvelope


def _preview(raw: bytes, limit: int = 200) -> str:
    return raw[:limit].decode("utf-8", errors="replace")


def decode_frame(raw: bytes) -> WireEnvelope | SubscriptionAck:
    """
    Decode a raw frame into a data envelope or a subscription ack.

    Raises:
        MessageParseError: If the frame is not JSON or matches neither shape
    """
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise MessageParseError(
            f"Frame is not valid JSON: {e}",
            raw_data=_preview(raw),
            expected_type="envelope",
        ) from e

    if not isinstance(data, dict):
        raise MessageParseError(
            f"Frame is not a JSON object: {type(data).__name__}",
            raw_data=_preview(raw),
            expected_type="envelope",
        )

    if "status" in data and "ch" not in data:
        return _decode_ack(data)

    return _decode_envelope(data, raw)


def _decode_envelope(data: dict[str, Any], raw: bytes) -> WireEnvelope:
    channel = data.get("ch")
    if not isinstance(channel, str) or not channel:
        raise MessageParseError(
            "Envelope has no channel",
            raw_data=_preview(raw),
            expected_type="envelope",
        )

    ts = data.get("ts")
    if isinstance(ts, bool) or not isinstance(ts, int):
        raise MessageParseError(
            f"Invalid envelope timestamp: {ts!r}",
            raw_data=_preview(raw),
            expected_type="envelope",
            channel=channel,
        )

    return WireEnvelope(channel=channel, ts=ts, tick=data.get("tick"), raw=raw)


def _decode_ack(data: dict[str, Any]) -> SubscriptionAck:
    try:
        ts = int(data.get("ts") or 0)
    except (TypeError, ValueError) as e:
        raise MessageParseError(
            f"Invalid ack timestamp: {data.get('ts')!r}",
            expected_type="ack",
        ) from e

    return SubscriptionAck(
        id=data.get("id"),
        status=str(data["status"]),
        ts=ts,
        subbed=data.get("subbed"),
        err_code=data.get("err-code"),
        err_msg=data.get("err-msg"),
    )
