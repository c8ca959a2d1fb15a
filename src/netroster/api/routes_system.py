"""System routes: health."""
from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from netroster import __version__
from netroster.api.deps import get_settings
from netroster.config import Settings

router = APIRouter(prefix="/system", tags=["system"])


class HealthResponse(BaseModel):
    version: str
    service: str
    uptime_seconds: float


@router.get("/health", response_model=HealthResponse)
async def health(request: Request, settings: Settings = Depends(get_settings)):
    start_time = getattr(request.app.state, "start_time", time.time())
    uptime = time.time() - start_time
    return HealthResponse(
        version=__version__,
        service=settings.service.name,
        uptime_seconds=round(uptime, 2),
    )
