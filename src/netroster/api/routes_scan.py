"""Scan routes: on-demand sweeps, single-address diagnostics, scheduling."""
from __future__ import annotations

import ipaddress

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel

from netroster.api.deps import get_scanner
from netroster.api.schemas import DeviceResponse
from netroster.models import ScanStatus
from netroster.scanner.orchestrator import NetworkScanner

router = APIRouter(prefix="/scan", tags=["scan"])


class ScanStartedResponse(BaseModel):
    started: bool
    status: ScanStatus


@router.post("", response_model=ScanStartedResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_scan(
    background_tasks: BackgroundTasks,
    scanner: NetworkScanner = Depends(get_scanner),
):
    """Start a sweep in the background unless one is already running."""
    started = not scanner.is_scanning
    if started:
        background_tasks.add_task(scanner.scan_network)
    return ScanStartedResponse(started=started, status=scanner.status())


@router.get("/status", response_model=ScanStatus)
async def scan_status(scanner: NetworkScanner = Depends(get_scanner)):
    return scanner.status()


@router.post("/pause", response_model=ScanStatus)
async def pause_scan(scanner: NetworkScanner = Depends(get_scanner)):
    await scanner.pause_scanning()
    return scanner.status()


@router.post("/resume", response_model=ScanStatus)
async def resume_scan(scanner: NetworkScanner = Depends(get_scanner)):
    await scanner.resume_scanning()
    return scanner.status()


@router.post("/{address}", response_model=list[DeviceResponse])
async def scan_address(
    address: str,
    scanner: NetworkScanner = Depends(get_scanner),
):
    """Probe a single address without changing the roster."""
    try:
        parsed = ipaddress.ip_address(address)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid IP address format",
        )
    if parsed.version != 4:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Only IPv4 addresses are supported",
        )
    devices = await scanner.scan_single_device(str(parsed))
    return [DeviceResponse.from_device(d) for d in devices]
