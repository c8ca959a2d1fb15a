"""Integration tests for the netroster entry point (__main__.py).

The scanner is built over the fake network from ``tests/conftest.py`` and
the API server is mocked, so the tests exercise wiring, roster persistence
and startup/shutdown orchestration without touching the real network.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import aiosqlite
import pytest

import netroster.__main__ as entry
from netroster.config import ServiceConfig, Settings, StorageConfig
from netroster.devices.service import DeviceService
from netroster.storage.json_file import DEVICES_FILE, ROSTER_FILE, JsonFileStorage
from netroster.storage.sqlite import ROSTER_TABLE, SqliteStorage


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture()
def test_settings(data_dir: Path) -> Settings:
    return Settings(service=ServiceConfig(data_dir=str(data_dir)))


@pytest.fixture()
def wired(test_settings: Settings, make_scanner, make_pinger):
    """Patch config loading and scanner construction; yield the built scanners."""
    pinger = make_pinger({"192.168.1.2": 1.5, "192.168.1.5": 4.0})
    built: list[Any] = []

    def fake_create_scanner(settings: Settings, events) -> Any:
        scanner = make_scanner(
            pinger,
            events=events,
            enable_continuous_scanning=True,
            scan_interval_minutes=60,
        )
        built.append(scanner)
        return scanner

    with patch.object(entry, "load_config", return_value=test_settings), \
         patch.object(entry, "create_scanner", side_effect=fake_create_scanner):
        yield {"pinger": pinger, "scanners": built, "settings": test_settings}


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


class TestParseArgs:
    def test_defaults(self) -> None:
        args = entry.parse_args([])
        assert args.config is None
        assert args.once is False
        assert args.ip is None
        assert args.serve is False
        assert args.port is None
        assert args.debug is False

    def test_all_flags(self) -> None:
        args = entry.parse_args(
            ["--config", "/etc/netroster.yaml", "--serve", "--port", "9000", "--debug"]
        )
        assert args.config == "/etc/netroster.yaml"
        assert args.serve is True
        assert args.port == 9000
        assert args.debug is True

    def test_once_and_ip_are_exclusive(self) -> None:
        with pytest.raises(SystemExit):
            entry.parse_args(["--once", "--ip", "192.168.1.2"])


# ---------------------------------------------------------------------------
# Seams
# ---------------------------------------------------------------------------


class TestSeams:
    async def test_json_storage(self, test_settings: Settings, data_dir: Path) -> None:
        known, roster, db = await entry.open_storage(test_settings)
        assert isinstance(known, JsonFileStorage)
        assert known.devices_path == data_dir / DEVICES_FILE
        assert roster.devices_path == data_dir / ROSTER_FILE
        assert db is None

    async def test_sqlite_storage(self, data_dir: Path) -> None:
        settings = Settings(
            service=ServiceConfig(data_dir=str(data_dir)),
            storage=StorageConfig(backend="sqlite", sqlite_file="test.db"),
        )
        known, roster, db = await entry.open_storage(settings)
        try:
            assert isinstance(known, SqliteStorage)
            assert isinstance(roster, SqliteStorage)
            assert (data_dir / "test.db").is_file()
        finally:
            await db.close()

    def test_create_scanner_builds_detection_chain(self) -> None:
        settings = Settings()
        events = entry.ScannerEvents(entry.create_event_bus())
        scanner = entry.create_scanner(settings, events)
        assert len(scanner._chain) == 6
        assert scanner.events is events
        assert scanner.options == settings.scan

    def test_create_device_service(self, tmp_path: Path) -> None:
        service = entry.create_device_service(JsonFileStorage(tmp_path), entry.create_event_bus())
        assert isinstance(service, DeviceService)


# ---------------------------------------------------------------------------
# Run modes
# ---------------------------------------------------------------------------


class TestRunModes:
    async def test_single_address(self, wired) -> None:
        result = await entry.run_netroster(ip="192.168.1.2")

        assert len(result) == 1
        assert result[0].address == "192.168.1.2"
        assert result[0].is_online is True
        assert wired["pinger"].calls == ["192.168.1.2"]

    async def test_single_address_malformed(self, wired) -> None:
        assert await entry.run_netroster(ip="999.1.1.1") == []

    async def test_once_persists_roster(self, wired, data_dir: Path) -> None:
        result = await entry.run_netroster(once=True)

        assert {d.address for d in result} == {"192.168.1.2", "192.168.1.5"}
        saved = await JsonFileStorage(data_dir, ROSTER_FILE).load_devices()
        assert {d.address for d in saved} == {"192.168.1.2", "192.168.1.5"}
        assert await JsonFileStorage(data_dir, DEVICES_FILE).load_devices() == []

    async def test_roster_restored_on_startup(self, wired, data_dir: Path) -> None:
        await entry.run_netroster(once=True)
        wired["pinger"].responders = {}

        await entry.run_netroster(ip="192.168.1.9")

        restored = wired["scanners"][-1].discovered_devices
        assert {d.address for d in restored} == {"192.168.1.2", "192.168.1.5"}
        assert all(not d.is_online for d in restored)

    async def test_once_with_sqlite(self, wired, data_dir: Path) -> None:
        settings = wired["settings"].model_copy(
            update={"storage": StorageConfig(backend="sqlite", sqlite_file="netroster.db")}
        )
        with patch.object(entry, "load_config", return_value=settings):
            await entry.run_netroster(once=True)

        db = await aiosqlite.connect(str(data_dir / "netroster.db"))
        try:
            saved = await SqliteStorage(db, ROSTER_TABLE).load_devices()
        finally:
            await db.close()
        assert {d.address for d in saved} == {"192.168.1.2", "192.168.1.5"}

    async def test_serve_wires_app_and_shuts_down(self, wired) -> None:
        mock_app = MagicMock()
        mock_server = MagicMock()
        mock_server.serve = AsyncMock()

        with patch.object(entry, "create_app", return_value=mock_app) as mock_create_app, \
             patch.object(entry.uvicorn, "Server", return_value=mock_server), \
             patch.object(entry.uvicorn, "Config") as mock_config:
            await entry.run_netroster(serve=True, port=9001)

        scanner = wired["scanners"][-1]
        mock_create_app.assert_called_once()
        _, kwargs = mock_create_app.call_args
        assert kwargs["scanner"] is scanner
        assert isinstance(kwargs["device_service"], DeviceService)
        assert mock_config.call_args.kwargs["port"] == 9001
        mock_server.serve.assert_awaited_once()
        assert scanner.is_armed is False

    async def test_continuous_until_cancelled(self, wired, data_dir: Path) -> None:
        task = asyncio.create_task(entry.run_netroster())
        await asyncio.sleep(0.1)

        task.cancel()
        result = await task

        assert {d.address for d in result} == {"192.168.1.2", "192.168.1.5"}
        assert wired["scanners"][-1].is_armed is False
        saved = await JsonFileStorage(data_dir, ROSTER_FILE).load_devices()
        assert len(saved) == 2
