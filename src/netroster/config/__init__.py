"""Configuration loader for netroster.

Loads settings from a YAML file with built-in defaults. Supports environment
variable overrides using the NETROSTER_ prefix with double-underscore
nesting (e.g., NETROSTER_SCAN__SCAN_INTERVAL_MINUTES=2).
"""

from __future__ import annotations

import os
import pathlib
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Config sub-models
# ---------------------------------------------------------------------------

class ServiceConfig(BaseModel):
    name: str = "netroster"
    data_dir: str = "./data"


class ScanOptions(BaseModel):
    """Immutable snapshot of the sweep and scheduling parameters."""

    model_config = ConfigDict(frozen=True)

    scan_interval_minutes: float = Field(default=5, gt=0)
    max_concurrent_connections: int = Field(default=20, ge=1)
    ping_timeout_ms: int = Field(default=2000, ge=1)
    start_octet: int = Field(default=1, ge=1, le=254)
    end_octet: int = Field(default=254, ge=1, le=254)
    network_throttle_delay_ms: int = Field(default=50, ge=0)
    devices_before_throttle: int = Field(default=10, ge=1)
    enable_continuous_scanning: bool = True
    subnet_base: str = "auto"

    @model_validator(mode="after")
    def _check_octet_range(self) -> ScanOptions:
        if self.start_octet > self.end_octet:
            raise ValueError(
                f"start_octet ({self.start_octet}) must not exceed end_octet ({self.end_octet})"
            )
        return self

    @property
    def scan_interval_seconds(self) -> float:
        return self.scan_interval_minutes * 60


class PortDetectionOptions(BaseModel):
    """Ports and timeouts used by the port-probing detectors."""

    model_config = ConfigDict(frozen=True)

    custom_iot_ports: list[int] = Field(default_factory=lambda: [5000, 8000, 8080, 8443])
    standard_http_ports: list[int] = Field(default_factory=lambda: [80, 443])
    service_endpoints: dict[int, str] = Field(
        default_factory=lambda: {
            8974: "IoT Service Endpoint 3",
            8975: "IoT Service Endpoint 1",
            12050: "IoT Service Endpoint 2",
        }
    )
    windows_service_ports: dict[int, str] = Field(
        default_factory=lambda: {
            3389: "Remote Desktop Protocol",
            5985: "WinRM HTTP",
            5986: "WinRM HTTPS",
            445: "SMB",
            139: "NetBIOS",
            135: "RPC",
        }
    )
    ssh_port: int = 22
    port_connection_timeout_ms: int = Field(default=1000, ge=1)

    @property
    def connection_timeout(self) -> float:
        return self.port_connection_timeout_ms / 1000


class DetectorsConfig(BaseModel):
    default: bool = True
    enhanced: bool = True
    upnp_search_seconds: float = 2.0
    mdns_browse_seconds: float = 1.5


class StorageConfig(BaseModel):
    backend: str = "json"
    sqlite_file: str = "netroster.db"


class ApiConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8765


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseModel):
    service: ServiceConfig = Field(default_factory=ServiceConfig)
    scan: ScanOptions = Field(default_factory=ScanOptions)
    ports: PortDetectionOptions = Field(default_factory=PortDetectionOptions)
    detectors: DetectorsConfig = Field(default_factory=DetectorsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)


# ---------------------------------------------------------------------------
# Deep merge helper
# ---------------------------------------------------------------------------

def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *override* into *base*, returning a new dict."""
    merged = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "NETROSTER_"


def _collect_env_overrides() -> dict[str, Any]:
    """Collect NETROSTER_* env vars and build a nested dict.

    Double-underscore separates nesting levels.
    Example: NETROSTER_SCAN__MAX_CONCURRENT_CONNECTIONS=5
    becomes  {"scan": {"max_concurrent_connections": 5}}
    """
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(_ENV_PREFIX):
            continue
        parts = key[len(_ENV_PREFIX) :].lower().split("__")
        current = overrides
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        final_value: Any = value
        try:
            final_value = int(value)
        except ValueError:
            try:
                final_value = float(value)
            except ValueError:
                if value.lower() in ("true", "false"):
                    final_value = value.lower() == "true"
        current[parts[-1]] = final_value
    return overrides


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

_BUILTIN_DEFAULTS_PATH = pathlib.Path(__file__).resolve().parents[3] / "config" / "defaults.yaml"


def load_settings(
    config_path: pathlib.Path | None = None,
) -> Settings:
    """Load settings with layered precedence: defaults < file < env vars.

    Parameters
    ----------
    config_path:
        Path to a YAML config file. If ``None`` or the file does not exist,
        built-in defaults are used.
    """
    base: dict[str, Any] = {}

    path = config_path if config_path is not None else _BUILTIN_DEFAULTS_PATH
    if path.exists():
        with open(path) as fh:
            file_data = yaml.safe_load(fh)
        if isinstance(file_data, dict):
            base = _deep_merge(base, file_data)

    env_overrides = _collect_env_overrides()
    if env_overrides:
        base = _deep_merge(base, env_overrides)

    return Settings(**base)
