# tests/integration/conftest.py
import aiosqlite
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from netroster.app import create_app
from netroster.config import ScanOptions, ServiceConfig, Settings
from netroster.devices.service import DeviceService
from netroster.events.bus import EventBus
from netroster.events.log import EventLog
from netroster.storage.json_file import JsonFileStorage
from netroster.storage.sqlite import apply_schema


@pytest_asyncio.fixture
async def db():
    """Create an in-memory SQLite database with the storage schema."""
    conn = await aiosqlite.connect(":memory:")
    await apply_schema(conn)
    yield conn
    await conn.close()


@pytest.fixture
def event_bus():
    return EventBus(EventLog())


@pytest.fixture
def settings(tmp_path):
    return Settings(
        service=ServiceConfig(data_dir=str(tmp_path / "data")),
        scan=ScanOptions(
            start_octet=1,
            end_octet=10,
            network_throttle_delay_ms=0,
            enable_continuous_scanning=False,
        ),
    )


@pytest.fixture
def scanner(make_scanner, make_pinger):
    """Scanner over a fake network where .2 and .5 answer."""
    return make_scanner(make_pinger({"192.168.1.2": 1.5, "192.168.1.5": 4.0}))


@pytest.fixture
def device_service(tmp_path, scanner):
    return DeviceService(JsonFileStorage(tmp_path / "data"), scanner.events.bus)


@pytest.fixture
def app(settings, scanner, device_service):
    """Create a FastAPI app wired to the fake-network scanner."""
    return create_app(settings, scanner=scanner, device_service=device_service)


@pytest.fixture
def client(app):
    """Create a TestClient for the FastAPI app."""
    with TestClient(app) as test_client:
        yield test_client
