"""
Unit tests for inbound frame decoding.
"""

import pytest

from huobistream.envelope import decode_frame
from huobistream.errors import MessageParseError
from huobistream.types import SubscriptionAck, WireEnvelope


class TestDecodeFrame:
    """Tests for decode_frame."""

    def test_data_envelope(self) -> None:
        raw = b'{"ch":"market.btcusdt.detail","ts":1611162033214,"tick":{"close":1.0}}'
        envelope = decode_frame(raw)

        assert isinstance(envelope, WireEnvelope)
        assert envelope.channel == "market.btcusdt.detail"
        assert envelope.ts == 1611162033214
        assert envelope.tick == {"close": 1.0}
        assert envelope.raw == raw

    def test_ok_ack(self) -> None:
        raw = (
            b'{"id":"spot.trade","status":"ok",'
            b'"subbed":"market.btcusdt.trade.detail","ts":1611162033100}'
        )
        ack = decode_frame(raw)

        assert isinstance(ack, SubscriptionAck)
        assert ack.ok
        assert ack.id == "spot.trade"
        assert ack.subbed == "market.btcusdt.trade.detail"
        assert ack.ts == 1611162033100

    def test_error_ack(self) -> None:
        raw = (
            b'{"status":"error","ts":1611162033100,"id":"spot.candle",'
            b'"err-code":"bad-request","err-msg":"invalid topic market.btcusdt.kline.17min"}'
        )
        ack = decode_frame(raw)

        assert isinstance(ack, SubscriptionAck)
        assert not ack.ok
        assert ack.err_code == "bad-request"
        assert "invalid topic" in (ack.err_msg or "")

    @pytest.mark.parametrize(
        "raw",
        [
            b"not json",
            b"[1, 2, 3]",
            b'{"ts": 1, "tick": {}}',
            b'{"ch": "", "ts": 1, "tick": {}}',
            b'{"ch": "market.btcusdt.detail", "tick": {}}',
            b'{"ch": "market.btcusdt.detail", "ts": "soon", "tick": {}}',
            b'{"ch": "market.btcusdt.detail", "ts": true, "tick": {}}',
            b'{"status": "ok", "ts": "later"}',
        ],
    )
    def test_malformed_frames(self, raw: bytes) -> None:
        with pytest.raises(MessageParseError):
            decode_frame(raw)

    def test_parse_error_carries_preview(self) -> None:
        with pytest.raises(MessageParseError) as exc_info:
            decode_frame(b"{broken")
        assert exc_info.value.raw_data == "{broken"
        assert exc_info.value.expected_type == "envelope"
