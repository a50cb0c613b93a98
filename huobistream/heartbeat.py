"""
Heartbeat responder.

Huobi probes idle connections with frames like ``{"ping": 1492420473027}`` and
drops the socket if the echo does not arrive. The probe is recognized by a
plain substring test and answered by swapping ``ping`` for ``pong`` in the raw
frame; nothing is parsed.
"""

from __future__ import annotations

from typing import Optional

PING = b"ping"
PONG = b"pong"


class HeartbeatResponder:
    """Detects keepalive probes inline in the frame stream."""

    def __init__(self) -> None:
        self.probes_answered = 0

    def offer(self, frame: bytes | str) -> tuple[bool, Optional[bytes]]:
        """
        Offer a raw inbound frame.

        Returns:
            (True, reply) when the frame is a probe, (False, None) otherwise.
        """
        if isinstance(frame, str):
            frame = frame.encode("utf-8")

        if PING not in frame:
            return False, None

        self.probes_answered += 1
        return True, frame.replace(PING, PONG)
