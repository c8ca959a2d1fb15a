"""Bounded in-memory event log.

Every event published through the event bus is recorded here with a
monotonic sequence number. The WebSocket replay request reads from this
log to catch clients up after reconnection. Only the most recent
``capacity`` events are retained.
"""

from __future__ import annotations

import asyncio
from collections import deque
from datetime import datetime, timezone
from typing import Any


class EventLog:
    """Append-only event log with a fixed retention window.

    Parameters
    ----------
    capacity:
        Maximum number of events retained. Older events are discarded.
    """

    def __init__(self, capacity: int = 1000) -> None:
        self._events: deque[dict[str, Any]] = deque(maxlen=capacity)
        self._seq = 0
        self._lock = asyncio.Lock()

    async def append(
        self,
        event_type: str,
        payload: Any,
        source_id: str | None = None,
    ) -> int:
        """Append an event and return its sequence number."""
        async with self._lock:
            self._seq += 1
            self._events.append({
                "seq": self._seq,
                "event_type": event_type,
                "payload": payload,
                "source_id": source_id,
                "created_at": datetime.now(timezone.utc),
            })
            return self._seq

    async def replay(self, since_seq: int) -> list[dict[str, Any]]:
        """Return retained events with seq > since_seq, ordered by seq ascending.

        Parameters
        ----------
        since_seq:
            The last sequence number the caller has seen. Pass 0 to get
            every retained event.
        """
        return [dict(e) for e in self._events if e["seq"] > since_seq]

    async def get_latest_seq(self) -> int:
        """Return the highest sequence number, or 0 if nothing was appended."""
        return self._seq
