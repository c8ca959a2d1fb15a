"""Device registry: the canonical address -> Device roster.

The registry is the single owner of tracked devices. Every operation takes
the lock for the duration of one call and never across an ``await``, so
concurrent probe tasks see each other's updates in a consistent order.
All reads hand out deep copies; callers can never mutate registry state
through a returned object.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from datetime import timedelta

from netroster.models import Device

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """Thread-safe keyed store of tracked devices."""

    def __init__(self) -> None:
        self._devices: dict[str, Device] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)

    def __contains__(self, address: object) -> bool:
        with self._lock:
            return address in self._devices

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> list[Device]:
        """Return copies of all tracked devices in insertion order."""
        with self._lock:
            return [d.model_copy(deep=True) for d in self._devices.values()]

    def find_by_address(self, address: str) -> Device | None:
        with self._lock:
            device = self._devices.get(address)
            return device.model_copy(deep=True) if device is not None else None

    def counts(self) -> tuple[int, int]:
        """Return ``(online, offline)`` device counts."""
        with self._lock:
            online = sum(1 for d in self._devices.values() if d.is_online)
            return online, len(self._devices) - online

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, device: Device) -> Device:
        """Insert *device* or merge it into the existing record.

        On merge, name, type, online flag and response time are taken from
        the incoming record. ``last_seen`` never moves backwards, and the
        MAC address is only replaced by a resolved one.

        Returns a copy of the stored record.
        """
        with self._lock:
            existing = self._devices.get(device.address)
            if existing is None:
                stored = device.model_copy(deep=True)
                self._devices[device.address] = stored
                logger.debug("New device %s (%s)", stored.address, stored.classified_type)
                return stored.model_copy(deep=True)

            existing.name = device.name
            existing.classified_type = device.classified_type
            existing.is_online = device.is_online
            existing.response_time = device.response_time if device.is_online else timedelta(0)
            if device.last_seen > existing.last_seen:
                existing.last_seen = device.last_seen
            if device.has_mac:
                existing.mac_address = device.mac_address
            return existing.model_copy(deep=True)

    def mark_all_offline(self) -> None:
        """Flag every device offline ahead of a sweep."""
        with self._lock:
            for device in self._devices.values():
                device.mark_offline()

    def mark_offline(self, address: str) -> Device | None:
        """Flag one device offline. Returns its copy, or ``None`` if untracked."""
        with self._lock:
            device = self._devices.get(address)
            if device is None:
                return None
            device.mark_offline()
            return device.model_copy(deep=True)

    def hydrate(self, devices: Iterable[Device]) -> int:
        """Load previously persisted devices, all marked offline.

        Addresses already tracked are left untouched. Returns the number of
        devices added.
        """
        added = 0
        with self._lock:
            for device in devices:
                if device.address in self._devices:
                    continue
                stored = device.model_copy(deep=True)
                stored.mark_offline()
                self._devices[stored.address] = stored
                added += 1
        return added

    def remove(self, address: str) -> bool:
        """Delete a device. Returns ``True`` if it was tracked."""
        with self._lock:
            return self._devices.pop(address, None) is not None
