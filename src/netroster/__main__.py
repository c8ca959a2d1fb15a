"""netroster -- entry point.

Usage::

    python -m netroster [--config PATH] [--once | --ip ADDRESS] [--serve] [--port PORT]

Startup sequence:
    1. Parse CLI arguments
    2. Load configuration from YAML (or defaults)
    3. Open device storage (JSON files or SQLite)
    4. Initialise the event bus and the network scanner
    5. Restore the last saved roster into the scanner registry
    6. Run a single-device scan, one sweep, or continuous scanning
    7. Optionally serve the HTTP/WebSocket API with uvicorn
    8. On shutdown: stop the scanner, save the roster, close storage
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

import uvicorn

from netroster.app import create_app  # noqa: F401 -- patched in tests
from netroster.config import Settings
from netroster.devices.service import DeviceService
from netroster.events.bus import EventBus
from netroster.events.channels import ScannerEvents
from netroster.events.log import EventLog
from netroster.models import Device
from netroster.scanner.orchestrator import NetworkScanner
from netroster.storage.base import DeviceStorage

logger = logging.getLogger("netroster")


# ---------------------------------------------------------------------------
# Integration seams -- thin wrappers around real subsystem constructors.
# These are module-level names so tests can patch them individually.
# ---------------------------------------------------------------------------


def load_config(config_path: str | None) -> Settings:
    """Load settings from a YAML file or return defaults."""
    from netroster.config import load_settings

    path = Path(config_path) if config_path else None
    return load_settings(config_path=path)


async def open_storage(settings: Settings) -> tuple[DeviceStorage, DeviceStorage, Any]:
    """Open the configured storage backend.

    Returns ``(known_storage, roster_storage, db)`` where *db* is the open
    SQLite connection, or ``None`` for the JSON backend.
    """
    data_dir = Path(settings.service.data_dir)

    if settings.storage.backend == "sqlite":
        import aiosqlite

        from netroster.storage.sqlite import KNOWN_TABLE, ROSTER_TABLE, SqliteStorage, apply_schema

        data_dir.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(data_dir / settings.storage.sqlite_file))
        await apply_schema(db)
        return SqliteStorage(db, KNOWN_TABLE), SqliteStorage(db, ROSTER_TABLE), db

    from netroster.storage.json_file import DEVICES_FILE, ROSTER_FILE, JsonFileStorage

    return JsonFileStorage(data_dir, DEVICES_FILE), JsonFileStorage(data_dir, ROSTER_FILE), None


def create_event_bus() -> EventBus:
    """Create the event bus backed by a bounded in-memory event log."""
    return EventBus(EventLog())


def create_scanner(settings: Settings, events: ScannerEvents) -> NetworkScanner:
    """Build the network scanner with platform collaborators."""
    from netroster.detection.chain import DetectionChain
    from netroster.detection.factory import detectors_from_config
    from netroster.network.mac import create_mac_resolver
    from netroster.network.subnet import create_subnet_provider

    chain = DetectionChain(detectors_from_config(settings.ports, settings.detectors))
    logger.info("Detection chain has %d detectors", len(chain))

    return NetworkScanner(
        options=settings.scan,
        subnet_provider=create_subnet_provider(settings.scan),
        mac_resolver=create_mac_resolver(),
        detection_chain=chain,
        events=events,
    )


def create_device_service(storage: DeviceStorage, event_bus: EventBus) -> DeviceService:
    """Create the known-device service."""
    return DeviceService(storage, event_bus)


# ---------------------------------------------------------------------------
# CLI argument parsing
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Parameters
    ----------
    argv:
        Argument list.  Defaults to ``sys.argv[1:]`` when ``None``.
    """
    parser = argparse.ArgumentParser(
        prog="netroster",
        description="Discover and classify devices on the local network",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        default=False,
        help="Run a single sweep and exit",
    )
    mode.add_argument(
        "--ip",
        type=str,
        default=None,
        help="Probe a single IPv4 address and exit",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        default=False,
        help="Serve the HTTP/WebSocket API while scanning continuously",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the API server (default: from config)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Main coroutine
# ---------------------------------------------------------------------------


def _log_device(device: Device) -> None:
    logger.info(
        "%-15s %-8s %-24s %-17s %s",
        device.address,
        "online" if device.is_online else "offline",
        device.name,
        device.mac_address,
        device.classified_type,
    )


async def run_netroster(
    config_path: str | None = None,
    once: bool = False,
    ip: str | None = None,
    serve: bool = False,
    port: int | None = None,
) -> list[Device]:
    """Start netroster and run until the selected mode finishes or is cancelled.

    Returns the devices produced by a ``once`` or ``ip`` run and the final
    roster for a continuous run.
    """
    settings = load_config(config_path)

    known_storage, roster_storage, db = await open_storage(settings)

    event_bus = create_event_bus()
    events = ScannerEvents(event_bus)
    scanner = create_scanner(settings, events)
    device_service = create_device_service(known_storage, event_bus)

    restored = scanner.registry.hydrate(await roster_storage.load_devices())
    if restored:
        logger.info("Restored %d devices from the last roster", restored)

    events.on_progress(lambda message: logger.info("%s", message))

    async def _save_roster(when: datetime | None) -> None:
        await roster_storage.save_devices(scanner.discovered_devices)

    events.on_last_scan_time_changed(_save_roster)

    result: list[Device] = []
    try:
        if ip is not None:
            result = await scanner.scan_single_device(ip)
            for device in result:
                _log_device(device)
            return result

        if once:
            result = await scanner.scan_network()
            for device in result:
                _log_device(device)
            return result

        await scanner.start_scanning()

        if serve:
            app = create_app(settings, scanner=scanner, device_service=device_service)
            uvicorn_config = uvicorn.Config(
                app=app,
                host=settings.api.host,
                port=port if port is not None else settings.api.port,
                log_level="info",
            )
            server = uvicorn.Server(uvicorn_config)
            await server.serve()
        else:
            await asyncio.Event().wait()
    except asyncio.CancelledError:
        logger.info("Shutdown signal received -- stopping netroster")
    finally:
        logger.info("Stopping network scanner...")
        await scanner.close()

        await roster_storage.save_devices(scanner.discovered_devices)

        if db is not None:
            logger.info("Closing database...")
            await db.close()

        logger.info("netroster shutdown complete")

    return result or scanner.discovered_devices


# ---------------------------------------------------------------------------
# Script entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Parse CLI args and run netroster."""
    args = parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        asyncio.run(
            run_netroster(
                config_path=args.config,
                once=args.once,
                ip=args.ip,
                serve=args.serve,
                port=args.port,
            )
        )
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
