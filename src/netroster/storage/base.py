"""Abstract persistence interface for the known-device roster."""

from __future__ import annotations

from abc import ABC, abstractmethod

from netroster.models import Device


class DeviceStorage(ABC):
    """Async key-value style persistence for devices and app settings.

    Implementations never raise on I/O problems: loads fall back to empty
    results and failed saves are logged.
    """

    @abstractmethod
    async def load_devices(self) -> list[Device]:
        """Return all persisted devices."""

    @abstractmethod
    async def save_devices(self, devices: list[Device]) -> None:
        """Replace the persisted devices with *devices*."""

    @abstractmethod
    async def load_settings(self) -> dict[str, str]:
        """Return all persisted settings."""

    @abstractmethod
    async def save_settings(self, settings: dict[str, str]) -> None:
        """Replace the persisted settings with *settings*."""
