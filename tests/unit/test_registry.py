"""Tests for the device registry."""

from datetime import timedelta

from netroster.devices.registry import DeviceRegistry
from netroster.models import UNKNOWN, Device, utcnow


def _device(address: str = "192.168.1.2", **kwargs) -> Device:
    kwargs.setdefault("is_online", True)
    kwargs.setdefault("response_time", timedelta(milliseconds=2))
    return Device(address=address, **kwargs)


class TestUpsert:
    def test_insert_new_device(self) -> None:
        registry = DeviceRegistry()
        stored = registry.upsert(_device(name="A"))
        assert stored.name == "A"
        assert len(registry) == 1
        assert "192.168.1.2" in registry

    def test_merge_takes_incoming_fields(self) -> None:
        registry = DeviceRegistry()
        registry.upsert(_device(name="A", classified_type="Printer"))
        merged = registry.upsert(
            _device(name="B", classified_type="Scanner", response_time=timedelta(milliseconds=9))
        )
        assert merged.name == "B"
        assert merged.classified_type == "Scanner"
        assert merged.response_time_ms == 9.0
        assert len(registry) == 1

    def test_last_seen_never_moves_backwards(self) -> None:
        registry = DeviceRegistry()
        now = utcnow()
        registry.upsert(_device(last_seen=now))
        merged = registry.upsert(_device(last_seen=now - timedelta(minutes=5)))
        assert merged.last_seen == now

    def test_unknown_mac_does_not_replace_resolved(self) -> None:
        registry = DeviceRegistry()
        registry.upsert(_device(mac_address="AA:BB:CC:DD:EE:FF"))
        merged = registry.upsert(_device(mac_address=UNKNOWN))
        assert merged.mac_address == "AA:BB:CC:DD:EE:FF"

    def test_resolved_mac_replaces_previous(self) -> None:
        registry = DeviceRegistry()
        registry.upsert(_device(mac_address="AA:BB:CC:DD:EE:FF"))
        merged = registry.upsert(_device(mac_address="11:22:33:44:55:66"))
        assert merged.mac_address == "11:22:33:44:55:66"


class TestCopies:
    """Reads hand out copies that never alias registry state."""

    def test_snapshot_is_detached(self) -> None:
        registry = DeviceRegistry()
        registry.upsert(_device(name="A"))
        snapshot = registry.snapshot()
        snapshot[0].name = "mutated"
        assert registry.find_by_address("192.168.1.2").name == "A"

    def test_upsert_result_is_detached(self) -> None:
        registry = DeviceRegistry()
        stored = registry.upsert(_device(name="A"))
        stored.name = "mutated"
        assert registry.find_by_address("192.168.1.2").name == "A"

    def test_snapshot_keeps_insertion_order(self) -> None:
        registry = DeviceRegistry()
        for last in (9, 3, 7):
            registry.upsert(_device(f"192.168.1.{last}"))
        assert [d.address for d in registry.snapshot()] == [
            "192.168.1.9", "192.168.1.3", "192.168.1.7",
        ]


class TestOfflineAndRemoval:
    def test_mark_all_offline(self) -> None:
        registry = DeviceRegistry()
        registry.upsert(_device("192.168.1.2"))
        registry.upsert(_device("192.168.1.3"))
        registry.mark_all_offline()
        assert registry.counts() == (0, 2)
        assert all(d.response_time == timedelta(0) for d in registry.snapshot())

    def test_mark_offline_unknown_address(self) -> None:
        assert DeviceRegistry().mark_offline("192.168.1.2") is None

    def test_mark_offline_returns_copy(self) -> None:
        registry = DeviceRegistry()
        registry.upsert(_device())
        device = registry.mark_offline("192.168.1.2")
        assert device.is_online is False
        assert registry.counts() == (0, 1)

    def test_remove(self) -> None:
        registry = DeviceRegistry()
        registry.upsert(_device())
        assert registry.remove("192.168.1.2") is True
        assert registry.remove("192.168.1.2") is False
        assert len(registry) == 0


class TestHydrate:
    def test_hydrated_devices_are_offline(self) -> None:
        registry = DeviceRegistry()
        added = registry.hydrate([_device("192.168.1.2"), _device("192.168.1.3")])
        assert added == 2
        assert registry.counts() == (0, 2)

    def test_hydrate_skips_tracked_addresses(self) -> None:
        registry = DeviceRegistry()
        registry.upsert(_device("192.168.1.2", name="live"))
        added = registry.hydrate([_device("192.168.1.2", name="stale")])
        assert added == 0
        assert registry.find_by_address("192.168.1.2").name == "live"
        assert registry.find_by_address("192.168.1.2").is_online is True
