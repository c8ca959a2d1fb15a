"""Detector contract and the TCP probing helpers shared by detectors.

A detector answers one question for one address: "what kind of device is
this?" It returns a human-readable label, or ``None`` when it cannot tell.
The probes here are plain asyncio TCP connects with per-attempt timeouts;
no root privileges are required.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

_MAX_RESPONSE_LEN = 1024


@runtime_checkable
class Detector(Protocol):
    """Pluggable classifier consulted by the detection chain."""

    @property
    def priority(self) -> int:
        """Higher priorities are consulted first."""
        ...

    async def classify(self, address: str) -> str | None:
        """Return a device-type label for *address*, or ``None``."""
        ...


async def _close(writer: asyncio.StreamWriter) -> None:
    try:
        writer.close()
        await writer.wait_closed()
    except (ConnectionError, OSError):
        pass


async def is_port_open(address: str, port: int, timeout: float) -> bool:
    """Return ``True`` if a TCP connection to *address*:*port* succeeds."""
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(address, port),
            timeout=timeout,
        )
    except (asyncio.TimeoutError, ConnectionRefusedError, OSError):
        return False
    await _close(writer)
    return True


async def exchange(
    address: str,
    port: int,
    timeout: float,
    payload: bytes | None = None,
    max_len: int = _MAX_RESPONSE_LEN,
) -> str | None:
    """Connect, optionally send *payload*, and return the first response bytes.

    The connect and the read each get *timeout* seconds. Returns ``None``
    when the port is closed, nothing arrives in time, or the peer closes
    without sending anything.
    """
    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(address, port),
            timeout=timeout,
        )
    except (asyncio.TimeoutError, ConnectionRefusedError, OSError):
        return None

    try:
        if payload is not None:
            writer.write(payload)
            await writer.drain()
        raw = await asyncio.wait_for(reader.read(max_len), timeout=timeout)
    except (asyncio.TimeoutError, ConnectionResetError, BrokenPipeError, OSError):
        return None
    finally:
        await _close(writer)

    if not raw:
        return None
    return raw.decode("ascii", errors="replace")
