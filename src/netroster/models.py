"""Pydantic domain models for netroster.

These models define the data structures shared across the scanner: the
tracked device record, the orchestrator's lifecycle states, and the scan
status summary exposed to callers. Devices serialise to JSON for storage,
API responses and event payloads.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

UNKNOWN = "Unknown"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ScanState(str, Enum):
    STOPPED = "stopped"
    ARMED = "armed"
    SWEEPING = "sweeping"


# ---------------------------------------------------------------------------
# Device
# ---------------------------------------------------------------------------

class Device(BaseModel):
    """One row per distinct IPv4 address ever seen on the network.

    ``address`` is the identity key. An offline device always carries a
    zero ``response_time``.
    """

    model_config = ConfigDict(from_attributes=True)

    address: str
    name: str = ""
    classified_type: str = UNKNOWN
    mac_address: str = UNKNOWN
    is_online: bool = False
    last_seen: datetime = Field(default_factory=utcnow)
    response_time: timedelta = timedelta(0)

    @model_validator(mode="after")
    def _offline_has_no_response_time(self) -> Device:
        if not self.is_online:
            self.response_time = timedelta(0)
        return self

    @property
    def response_time_ms(self) -> float:
        return self.response_time.total_seconds() * 1000

    @property
    def has_mac(self) -> bool:
        return bool(self.mac_address) and self.mac_address != UNKNOWN

    def mark_offline(self) -> None:
        self.is_online = False
        self.response_time = timedelta(0)


# ---------------------------------------------------------------------------
# Scan status
# ---------------------------------------------------------------------------

class ScanStatus(BaseModel):
    """Point-in-time summary of the orchestrator, for observers and the API."""

    state: ScanState
    is_scanning: bool
    is_armed: bool
    last_scan_time: datetime | None = None
    next_scan_time: datetime | None = None
    device_count: int = 0
    online_count: int = 0
    offline_count: int = 0
