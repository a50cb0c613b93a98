"""
Subscription registry.

Keeps every subscription issued on a session, in issue order, so the session
can replay them after the transport reconnects.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterator

from huobistream.types import EventKind, Subscription

logger = logging.getLogger(__name__)


class SubscriptionRegistry:
    """Append-only, insertion-ordered set of subscriptions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: dict[str, Subscription] = {}

    def add(self, subscription: Subscription) -> bool:
        """
        Record a subscription.

        Returns False if the channel was already registered; the original entry
        keeps its position.
        """
        channel = subscription.channel
        with self._lock:
            if channel in self._subscriptions:
                logger.debug(f"Subscription already registered: {channel}")
                return False
            self._subscriptions[channel] = subscription
        logger.debug(f"Registered subscription: {channel}")
        return True

    def snapshot(self) -> tuple[Subscription, ...]:
        """All subscriptions in the order they were first issued."""
        with self._lock:
            return tuple(self._subscriptions.values())

    def by_kind(self, kind: EventKind) -> tuple[Subscription, ...]:
        return tuple(s for s in self.snapshot() if s.kind == kind)

    def __contains__(self, subscription: object) -> bool:
        if not isinstance(subscription, Subscription):
            return False
        with self._lock:
            return subscription.channel in self._subscriptions

    def __iter__(self) -> Iterator[Subscription]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)
