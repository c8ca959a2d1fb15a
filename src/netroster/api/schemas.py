"""Response models shared by the HTTP routes."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from netroster.models import Device


class DeviceResponse(BaseModel):
    address: str
    name: str
    classified_type: str
    mac_address: str
    is_online: bool
    last_seen: datetime
    response_time_ms: float

    @classmethod
    def from_device(cls, device: Device) -> DeviceResponse:
        return cls(
            address=device.address,
            name=device.name,
            classified_type=device.classified_type,
            mac_address=device.mac_address,
            is_online=device.is_online,
            last_seen=device.last_seen,
            response_time_ms=round(device.response_time_ms, 3),
        )
