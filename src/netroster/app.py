"""FastAPI application factory for netroster."""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from netroster import __version__
from netroster.api import deps
from netroster.api.routes_devices import router as devices_router
from netroster.api.routes_scan import router as scan_router
from netroster.api.routes_system import router as system_router
from netroster.api.ws import router as ws_router
from netroster.config import Settings
from netroster.devices.service import DeviceService
from netroster.scanner.orchestrator import NetworkScanner


def create_app(
    settings: Settings,
    scanner: NetworkScanner | None = None,
    device_service: DeviceService | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Loaded netroster settings.
        scanner: Scanner to expose. When given, the scanner, its event bus
            and ``device_service`` are wired as dependencies; otherwise the
            caller installs ``dependency_overrides`` itself.
        device_service: Known-device service to expose.

    Returns:
        Configured FastAPI application instance.
    """
    start_time = time.time()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app.state.start_time = start_time
        app.state.settings = settings
        yield

    app = FastAPI(
        title="netroster",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.start_time = start_time
    app.state.settings = settings

    async def _get_settings() -> Settings:
        return settings

    app.dependency_overrides[deps.get_settings] = _get_settings

    if scanner is not None:
        async def _get_scanner() -> NetworkScanner:
            return scanner

        async def _get_event_bus():
            return scanner.events.bus

        app.dependency_overrides[deps.get_scanner] = _get_scanner
        app.dependency_overrides[deps.get_event_bus] = _get_event_bus

    if device_service is not None:
        async def _get_device_service() -> DeviceService:
            return device_service

        app.dependency_overrides[deps.get_device_service] = _get_device_service

    app.include_router(system_router)
    app.include_router(devices_router)
    app.include_router(scan_router)
    app.include_router(ws_router)

    return app
