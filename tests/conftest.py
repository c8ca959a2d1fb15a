"""Shared test fixtures for netroster tests.

The scanner's collaborators (ping, neighbour table, reverse DNS, detectors)
are replaced with in-memory fakes so sweeps run against a scripted network
without touching real sockets or subprocesses.
"""

from __future__ import annotations

import asyncio
import pathlib
from typing import Any

import pytest

from netroster.config import ScanOptions
from netroster.detection.chain import DetectionChain
from netroster.events.channels import ScannerEvents
from netroster.network.hostname import fallback_name
from netroster.network.mac import MacAddressResolver
from netroster.network.subnet import StaticSubnetProvider
from netroster.scanner.orchestrator import NetworkScanner

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakePinger:
    """Scripted pinger. Addresses in ``responders`` answer with their RTT."""

    def __init__(
        self,
        responders: dict[str, float] | None = None,
        delay: float = 0.0,
        raise_for: set[str] | frozenset[str] = frozenset(),
    ) -> None:
        self.responders = dict(responders or {})
        self.delay = delay
        self.raise_for = set(raise_for)
        self.calls: list[str] = []
        self.active = 0
        self.max_active = 0

    async def ping(self, address: str, timeout_ms: int) -> float | None:
        self.calls.append(address)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            if address in self.raise_for:
                raise RuntimeError(f"probe failed for {address}")
            return self.responders.get(address)
        finally:
            self.active -= 1


class FakeMacResolver(MacAddressResolver):
    def __init__(self, table: dict[str, str] | None = None) -> None:
        self.table = dict(table or {})

    async def get_arp_table(self) -> dict[str, str]:
        return dict(self.table)


class FakeHostnames:
    def __init__(self, names: dict[str, str] | None = None) -> None:
        self.names = dict(names or {})

    async def resolve(self, address: str) -> str:
        return self.names.get(address, fallback_name(address))


class StaticDetector:
    """Detector returning a fixed label and recording the addresses asked."""

    def __init__(self, priority: int, label: str | None, error: bool = False) -> None:
        self.priority = priority
        self.label = label
        self.error = error
        self.calls: list[str] = []

    async def classify(self, address: str) -> str | None:
        self.calls.append(address)
        if self.error:
            raise RuntimeError("detector exploded")
        return self.label


class EventRecorder:
    """Collects every payload published on a ``ScannerEvents`` channel."""

    def __init__(self, events: ScannerEvents) -> None:
        self.progress: list[str] = []
        self.devices: list[Any] = []
        self.states: list[bool] = []
        self.next_times: list[Any] = []
        self.last_times: list[Any] = []
        events.on_progress(self.progress.append)
        events.on_device_discovered(self.devices.append)
        events.on_scanning_state_changed(self.states.append)
        events.on_next_scan_time_changed(self.next_times.append)
        events.on_last_scan_time_changed(self.last_times.append)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def repo_root() -> pathlib.Path:
    return REPO_ROOT


@pytest.fixture
def make_pinger():
    return FakePinger


@pytest.fixture
def make_detector():
    return StaticDetector


@pytest.fixture
def make_recorder():
    return EventRecorder


@pytest.fixture
def make_scanner():
    """Return a factory building a ``NetworkScanner`` over fake collaborators.

    Options default to a small, unthrottled, non-continuous sweep of
    ``192.168.1.1`` - ``192.168.1.10``; keyword arguments not consumed by the
    factory are passed to ``ScanOptions``.
    """

    def _make(
        pinger: FakePinger | None = None,
        *,
        detectors: list[Any] | None = None,
        mac_table: dict[str, str] | None = None,
        names: dict[str, str] | None = None,
        subnets: list[str] | None = None,
        subnet_provider: Any = None,
        events: ScannerEvents | None = None,
        registry: Any = None,
        tick_seconds: float = 1.0,
        **option_overrides: Any,
    ) -> NetworkScanner:
        option_values: dict[str, Any] = {
            "start_octet": 1,
            "end_octet": 10,
            "ping_timeout_ms": 100,
            "network_throttle_delay_ms": 0,
            "enable_continuous_scanning": False,
        }
        option_values.update(option_overrides)
        if subnet_provider is None:
            subnet_provider = StaticSubnetProvider(
                ["192.168.1"] if subnets is None else subnets
            )
        return NetworkScanner(
            options=ScanOptions(**option_values),
            subnet_provider=subnet_provider,
            mac_resolver=FakeMacResolver(mac_table),
            detection_chain=DetectionChain(detectors or []),
            events=events,
            registry=registry,
            pinger=pinger if pinger is not None else FakePinger(),
            hostname_resolver=FakeHostnames(names),
            tick_seconds=tick_seconds,
        )

    return _make
