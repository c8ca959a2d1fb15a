"""Tests for the configuration loader."""

import pathlib

import pytest
import yaml
from pydantic import ValidationError

from netroster.config import (
    ApiConfig,
    DetectorsConfig,
    PortDetectionOptions,
    ScanOptions,
    Settings,
    StorageConfig,
    _deep_merge,
    load_settings,
)


REPO_ROOT = pathlib.Path(__file__).resolve().parents[2]
DEFAULTS_PATH = REPO_ROOT / "config" / "defaults.yaml"


class TestSettingsModels:
    """Verify that Pydantic config models have correct defaults."""

    def test_scan_options_defaults(self) -> None:
        opts = ScanOptions()
        assert opts.scan_interval_minutes == 5
        assert opts.max_concurrent_connections == 20
        assert opts.ping_timeout_ms == 2000
        assert opts.start_octet == 1
        assert opts.end_octet == 254
        assert opts.network_throttle_delay_ms == 50
        assert opts.devices_before_throttle == 10
        assert opts.enable_continuous_scanning is True
        assert opts.subnet_base == "auto"

    def test_scan_interval_seconds(self) -> None:
        assert ScanOptions(scan_interval_minutes=2).scan_interval_seconds == 120

    def test_port_detection_defaults(self) -> None:
        opts = PortDetectionOptions()
        assert opts.custom_iot_ports == [5000, 8000, 8080, 8443]
        assert opts.standard_http_ports == [80, 443]
        assert opts.ssh_port == 22
        assert opts.service_endpoints[8975] == "IoT Service Endpoint 1"
        assert list(opts.windows_service_ports) == [3389, 5985, 5986, 445, 139, 135]
        assert opts.connection_timeout == 1.0

    def test_other_section_defaults(self) -> None:
        assert DetectorsConfig().default is True
        assert DetectorsConfig().enhanced is True
        assert StorageConfig().backend == "json"
        assert ApiConfig().port == 8765

    def test_settings_compose_sections(self) -> None:
        settings = Settings()
        assert isinstance(settings.scan, ScanOptions)
        assert isinstance(settings.ports, PortDetectionOptions)
        assert settings.service.name == "netroster"


class TestScanOptionsValidation:
    """Octet bounds and range ordering are enforced at construction."""

    @pytest.mark.parametrize("field", ["start_octet", "end_octet"])
    @pytest.mark.parametrize("value", [0, 255])
    def test_octet_out_of_range(self, field: str, value: int) -> None:
        with pytest.raises(ValidationError):
            ScanOptions(**{field: value})

    def test_start_after_end_rejected(self) -> None:
        with pytest.raises(ValidationError, match="must not exceed"):
            ScanOptions(start_octet=100, end_octet=10)

    def test_single_address_range_allowed(self) -> None:
        opts = ScanOptions(start_octet=42, end_octet=42)
        assert opts.start_octet == opts.end_octet == 42

    def test_concurrency_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ScanOptions(max_concurrent_connections=0)

    def test_options_are_immutable(self) -> None:
        opts = ScanOptions()
        with pytest.raises(ValidationError):
            opts.end_octet = 10


class TestDeepMerge:
    def test_nested_values_merge(self) -> None:
        base = {"scan": {"start_octet": 1, "end_octet": 254}, "api": {"port": 1}}
        merged = _deep_merge(base, {"scan": {"end_octet": 20}})
        assert merged == {"scan": {"start_octet": 1, "end_octet": 20}, "api": {"port": 1}}
        assert base["scan"]["end_octet"] == 254


class TestLoadSettings:
    """Layered loading: defaults < file < environment."""

    def test_builtin_defaults_file_exists(self) -> None:
        assert DEFAULTS_PATH.is_file()
        data = yaml.safe_load(DEFAULTS_PATH.read_text())
        assert data["scan"]["end_octet"] == 254

    def test_shipped_defaults_match_models(self, repo_root: pathlib.Path) -> None:
        """The documented YAML defaults agree with the model defaults."""
        data = yaml.safe_load((repo_root / "config" / "defaults.yaml").read_text())
        assert Settings(**data) == Settings()

    def test_load_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NETROSTER_SCAN__MAX_CONCURRENT_CONNECTIONS", raising=False)
        settings = load_settings()
        assert settings.scan.max_concurrent_connections == 20
        assert settings.api.host == "127.0.0.1"

    def test_load_from_file(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "netroster.yaml"
        path.write_text(yaml.dump({
            "scan": {"start_octet": 10, "end_octet": 20, "subnet_base": "10.0.0"},
            "storage": {"backend": "sqlite"},
        }))
        settings = load_settings(config_path=path)
        assert settings.scan.start_octet == 10
        assert settings.scan.end_octet == 20
        assert settings.scan.subnet_base == "10.0.0"
        assert settings.storage.backend == "sqlite"
        assert settings.scan.max_concurrent_connections == 20

    def test_missing_file_gives_model_defaults(self, tmp_path: pathlib.Path) -> None:
        settings = load_settings(config_path=tmp_path / "absent.yaml")
        assert settings == Settings()

    def test_env_overrides_file(
        self, tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        path = tmp_path / "netroster.yaml"
        path.write_text(yaml.dump({"scan": {"max_concurrent_connections": 8}}))
        monkeypatch.setenv("NETROSTER_SCAN__MAX_CONCURRENT_CONNECTIONS", "5")
        monkeypatch.setenv("NETROSTER_SCAN__ENABLE_CONTINUOUS_SCANNING", "false")
        settings = load_settings(config_path=path)
        assert settings.scan.max_concurrent_connections == 5
        assert settings.scan.enable_continuous_scanning is False

    def test_invalid_file_values_rejected(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "netroster.yaml"
        path.write_text(yaml.dump({"scan": {"start_octet": 0}}))
        with pytest.raises(ValidationError):
            load_settings(config_path=path)
