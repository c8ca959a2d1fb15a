"""Typed publish/subscribe helpers over the event bus.

The scanner emits five kinds of notification. ``ScannerEvents`` gives each
one a named emitter and a registration helper whose callback receives the
bare payload rather than the full event envelope.
"""

from __future__ import annotations

import inspect
from datetime import datetime
from typing import Any, Awaitable, Callable, Union

from netroster.events.bus import EventBus, Subscription
from netroster.events.types import EventType
from netroster.models import Device

PayloadCallback = Callable[[Any], Union[Awaitable[None], None]]


def _unwrap(callback: PayloadCallback) -> Callable[[dict[str, Any]], Awaitable[None]]:
    async def handler(event: dict[str, Any]) -> None:
        result = callback(event["payload"])
        if inspect.isawaitable(result):
            await result

    return handler


class ScannerEvents:
    """Scanner-facing view of an ``EventBus``.

    Parameters
    ----------
    bus:
        The underlying bus. A private bus is created when omitted.
    """

    def __init__(self, bus: EventBus | None = None) -> None:
        self.bus = bus if bus is not None else EventBus()

    # ------------------------------------------------------------------
    # Emitters
    # ------------------------------------------------------------------

    async def progress(self, message: str) -> None:
        await self.bus.publish(EventType.SCAN_PROGRESS, message)

    async def device_discovered(self, device: Device) -> None:
        await self.bus.publish(
            EventType.DEVICE_DISCOVERED, device, source_id=device.address
        )

    async def scanning_state_changed(self, is_scanning: bool) -> None:
        await self.bus.publish(EventType.SCAN_STATE_CHANGED, is_scanning)

    async def next_scan_time_changed(self, when: datetime | None) -> None:
        await self.bus.publish(EventType.SCAN_NEXT_TIME_CHANGED, when)

    async def last_scan_time_changed(self, when: datetime | None) -> None:
        await self.bus.publish(EventType.SCAN_LAST_TIME_CHANGED, when)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def on_progress(self, callback: PayloadCallback) -> Subscription:
        return self.bus.subscribe([EventType.SCAN_PROGRESS], _unwrap(callback))

    def on_device_discovered(self, callback: PayloadCallback) -> Subscription:
        return self.bus.subscribe([EventType.DEVICE_DISCOVERED], _unwrap(callback))

    def on_scanning_state_changed(self, callback: PayloadCallback) -> Subscription:
        return self.bus.subscribe([EventType.SCAN_STATE_CHANGED], _unwrap(callback))

    def on_next_scan_time_changed(self, callback: PayloadCallback) -> Subscription:
        return self.bus.subscribe([EventType.SCAN_NEXT_TIME_CHANGED], _unwrap(callback))

    def on_last_scan_time_changed(self, callback: PayloadCallback) -> Subscription:
        return self.bus.subscribe([EventType.SCAN_LAST_TIME_CHANGED], _unwrap(callback))

    def unsubscribe(self, subscription: Subscription) -> None:
        self.bus.unsubscribe(subscription)
