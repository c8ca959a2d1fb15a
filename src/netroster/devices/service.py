"""Known-device list: devices the user chose to keep, plus app settings.

The list is independent of the scanner's live roster. It is loaded lazily
from storage on first use and written back after every change. Changes are
announced on the event bus as status messages and added/removed events.
"""

from __future__ import annotations

import asyncio
import logging

from netroster.events.bus import EventBus
from netroster.events.types import EventType
from netroster.models import Device
from netroster.storage.base import DeviceStorage

logger = logging.getLogger(__name__)

LAST_CONNECTED_KEY = "LastConnectedDeviceIp"


class DeviceService:
    """Manages the persisted known-device list.

    Parameters
    ----------
    storage:
        Persistence backend for devices and settings.
    event_bus:
        Bus for status and added/removed notifications.
    """

    def __init__(self, storage: DeviceStorage, event_bus: EventBus | None = None) -> None:
        self._storage = storage
        self._bus = event_bus if event_bus is not None else EventBus()
        self._devices: list[Device] = []
        self._last_connected = ""
        self._loaded = False
        # Guards the lazy load and every read-modify-write of the list or settings
        self._lock = asyncio.Lock()

    @property
    def storage(self) -> DeviceStorage:
        return self._storage

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _status(self, message: str) -> None:
        await self._bus.publish(EventType.KNOWN_DEVICE_STATUS, message)

    def _find(self, address: str) -> Device | None:
        return next((d for d in self._devices if d.address == address), None)

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._devices = await self._storage.load_devices()
        settings = await self._storage.load_settings()
        self._last_connected = settings.get(LAST_CONNECTED_KEY, "")
        self._loaded = True
        logger.info("Loaded %d persisted devices", len(self._devices))

    async def _save_devices(self) -> None:
        await self._storage.save_devices(self._devices)
        logger.debug("Saved %d devices", len(self._devices))

    async def _save_settings(self) -> None:
        settings = await self._storage.load_settings()
        settings[LAST_CONNECTED_KEY] = self._last_connected
        await self._storage.save_settings(settings)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_devices(self) -> list[Device]:
        await self._status("Loading saved devices...")
        async with self._lock:
            await self._ensure_loaded()
            devices = [d.model_copy(deep=True) for d in self._devices]
        await self._status(f"Loaded {len(devices)} saved devices")
        return devices

    async def add_device(self, device: Device) -> bool:
        """Add *device*. Returns ``False`` if its address is already known."""
        async with self._lock:
            await self._ensure_loaded()
            if self._find(device.address) is not None:
                logger.warning("Device with IP %s already exists in known devices", device.address)
                return False
            stored = device.model_copy(deep=True)
            self._devices.append(stored)
            await self._save_devices()
        await self._bus.publish(
            EventType.KNOWN_DEVICE_ADDED, stored.model_copy(deep=True), source_id=stored.address
        )
        await self._status(f"Device {stored.name} added to known devices")
        return True

    async def remove_device(self, address: str) -> bool:
        """Remove the device at *address*. Returns ``False`` if it is unknown."""
        async with self._lock:
            await self._ensure_loaded()
            removed = self._find(address)
            if removed is None:
                logger.warning("Device with IP %s not found in known devices", address)
                return False
            self._devices.remove(removed)
            if self._last_connected == address:
                self._last_connected = ""
                await self._save_settings()
            await self._save_devices()
        await self._bus.publish(
            EventType.KNOWN_DEVICE_REMOVED, removed.model_copy(deep=True), source_id=address
        )
        await self._status(f"Device {removed.name} removed from known devices")
        return True

    async def update_device(self, device: Device) -> bool:
        """Overwrite the stored fields of a known device."""
        async with self._lock:
            await self._ensure_loaded()
            existing = self._find(device.address)
            if existing is None:
                logger.warning("Device with IP %s not found for update", device.address)
                return False
            existing.name = device.name
            existing.classified_type = device.classified_type
            existing.mac_address = device.mac_address
            existing.is_online = device.is_online
            existing.last_seen = device.last_seen
            existing.response_time = device.response_time
            if not existing.is_online:
                existing.mark_offline()
            logger.debug("Updated device in known devices: %s (%s)", existing.name, existing.address)
            await self._save_devices()
            name = existing.name
        await self._status(f"Device {name} updated")
        return True

    async def get_device_by_ip(self, address: str) -> Device | None:
        async with self._lock:
            await self._ensure_loaded()
            device = self._find(address)
            return device.model_copy(deep=True) if device is not None else None

    async def get_known_device_ips(self) -> list[str]:
        async with self._lock:
            await self._ensure_loaded()
            return [d.address for d in self._devices]

    async def set_last_connected_device(self, address: str) -> None:
        async with self._lock:
            await self._ensure_loaded()
            self._last_connected = address
            await self._save_settings()
        logger.debug("Set last connected device to %s", address)

    async def get_last_connected_device(self) -> str:
        async with self._lock:
            await self._ensure_loaded()
            return self._last_connected
