"""FastAPI dependency injection providers."""
from __future__ import annotations

from netroster.config import Settings
from netroster.devices.service import DeviceService
from netroster.events.bus import EventBus
from netroster.scanner.orchestrator import NetworkScanner


async def get_scanner() -> NetworkScanner:
    """Return the NetworkScanner instance.

    In production, wired by ``create_app``. In tests, overridden.
    """
    raise NotImplementedError("Must be overridden via dependency_overrides")


async def get_device_service() -> DeviceService:
    """Return the known-device service.

    In production, wired by ``create_app``. In tests, overridden.
    """
    raise NotImplementedError("Must be overridden via dependency_overrides")


async def get_event_bus() -> EventBus:
    """Return the EventBus the scanner publishes on."""
    raise NotImplementedError("Must be overridden via dependency_overrides")


async def get_settings() -> Settings:
    """Return the loaded settings."""
    raise NotImplementedError("Must be overridden via dependency_overrides")
