"""Device routes: live roster, explicit removal, known-device list."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from netroster.api.deps import get_device_service, get_scanner
from netroster.api.schemas import DeviceResponse
from netroster.devices.service import DeviceService
from netroster.scanner.orchestrator import NetworkScanner

router = APIRouter(prefix="/devices", tags=["devices"])


# ---------- Known-device list ----------
# Declared before the /{address} routes so "known" is not read as an address.


@router.get("/known", response_model=list[DeviceResponse])
async def list_known_devices(
    service: DeviceService = Depends(get_device_service),
):
    """List the devices saved to the known-device list."""
    devices = await service.get_devices()
    return [DeviceResponse.from_device(d) for d in devices]


@router.post(
    "/known/{address}",
    response_model=DeviceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_known_device(
    address: str,
    scanner: NetworkScanner = Depends(get_scanner),
    service: DeviceService = Depends(get_device_service),
):
    """Save a device from the live roster to the known-device list."""
    device = scanner.registry.find_by_address(address)
    if device is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")
    if not await service.add_device(device):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Device already known")
    return DeviceResponse.from_device(device)


@router.delete("/known/{address}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_known_device(
    address: str,
    service: DeviceService = Depends(get_device_service),
):
    """Remove a device from the known-device list."""
    if not await service.remove_device(address):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------- Live roster ----------


@router.get("", response_model=list[DeviceResponse])
async def list_devices(
    online: Optional[bool] = Query(None),
    scanner: NetworkScanner = Depends(get_scanner),
):
    """List every tracked device, optionally filtered by online status."""
    devices = scanner.discovered_devices
    if online is not None:
        devices = [d for d in devices if d.is_online == online]
    return [DeviceResponse.from_device(d) for d in devices]


@router.get("/{address}", response_model=DeviceResponse)
async def get_device(
    address: str,
    scanner: NetworkScanner = Depends(get_scanner),
):
    device = scanner.registry.find_by_address(address)
    if device is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")
    return DeviceResponse.from_device(device)


@router.delete("/{address}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_device(
    address: str,
    scanner: NetworkScanner = Depends(get_scanner),
):
    """Forget a device. It reappears if a later sweep finds it again."""
    if not scanner.registry.remove(address):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
