"""Async event bus.

The event bus connects the scanner to its observers. Components publish
events (scan progress, device discoveries, schedule changes) and
subscribers (CLI logger, WebSocket clients, persistence hooks) receive
them.

Every published event is first recorded in the EventLog, then delivered
to matching subscribers in subscription order. A failing subscriber is
logged and never affects the publisher or the other subscribers.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union
from uuid import uuid4

from netroster.events.log import EventLog

logger = logging.getLogger(__name__)

# Subscriber callbacks may be plain functions or coroutine functions
EventCallback = Callable[[dict[str, Any]], Union[Awaitable[None], None]]


@dataclass
class Subscription:
    """Represents an active event subscription."""

    id: str = field(default_factory=lambda: uuid4().hex)
    event_types: list[str] = field(default_factory=list)
    callback: EventCallback | None = None


class EventBus:
    """Async pub/sub event bus backed by an EventLog.

    Parameters
    ----------
    event_log:
        The event log used for sequencing and replay. A fresh in-memory
        log is created when omitted.
    """

    def __init__(self, event_log: EventLog | None = None) -> None:
        self._log = event_log if event_log is not None else EventLog()
        self._subscriptions: list[Subscription] = []

    async def publish(
        self,
        event_type: str,
        payload: Any = None,
        source_id: str | None = None,
    ) -> int:
        """Record an event and notify subscribers. Returns the sequence number."""
        seq = await self._log.append(event_type, payload, source_id=source_id)

        event = {
            "seq": seq,
            "event_type": event_type,
            "payload": payload,
            "source_id": source_id,
        }

        for sub in list(self._subscriptions):
            if "*" in sub.event_types or event_type in sub.event_types:
                if sub.callback is None:
                    continue
                try:
                    result = sub.callback(event)
                    if inspect.isawaitable(result):
                        await result
                except Exception:
                    logger.exception(
                        "Subscriber %s failed handling %s", sub.id, event_type
                    )

        return seq

    def subscribe(
        self,
        event_types: list[str],
        callback: EventCallback,
    ) -> Subscription:
        """Register a callback for the given event types.

        Use ``["*"]`` to subscribe to all events.

        Returns a ``Subscription`` that can be passed to ``unsubscribe()``.
        """
        sub = Subscription(event_types=list(event_types), callback=callback)
        self._subscriptions.append(sub)
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription."""
        self._subscriptions = [
            s for s in self._subscriptions if s.id != subscription.id
        ]

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def replay(self, since_seq: int) -> list[dict[str, Any]]:
        """Replay events from the log since the given sequence number."""
        return await self._log.replay(since_seq)

    async def get_latest_seq(self) -> int:
        return await self._log.get_latest_seq()
