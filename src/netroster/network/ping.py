"""ICMP reachability probes.

The scanner only needs a yes/no answer plus a round-trip time, so the
default ``Pinger`` shells out to the platform ``ping`` binary (which is
setuid or capability-enabled everywhere) instead of opening raw sockets.
"""

from __future__ import annotations

import asyncio
import logging
import re
import sys
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

_RTT_RE = re.compile(r"time[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)


@runtime_checkable
class Pinger(Protocol):
    async def ping(self, address: str, timeout_ms: int) -> float | None:
        """Return the round-trip time in milliseconds, or ``None`` on a miss."""
        ...


def parse_rtt(output: str) -> float | None:
    """Extract the first ``time=X ms`` value from ping output."""
    match = _RTT_RE.search(output)
    if match is None:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def build_ping_command(address: str, timeout_ms: int, platform: str | None = None) -> list[str]:
    """Return the single-echo ping invocation for *platform*.

    Parameters
    ----------
    address:
        Target IPv4 address.
    timeout_ms:
        Reply timeout in milliseconds.
    platform:
        ``sys.platform`` value to build for. Defaults to the running one.
    """
    platform = platform or sys.platform
    if platform.startswith("win"):
        return ["ping", "-n", "1", "-w", str(timeout_ms), address]
    if platform == "darwin":
        return ["ping", "-c", "1", "-W", str(timeout_ms), address]
    # iputils takes whole seconds
    seconds = max(1, -(-timeout_ms // 1000))
    return ["ping", "-c", "1", "-W", str(seconds), address]


class SubprocessPinger:
    """Pinger backed by the system ``ping`` command."""

    async def ping(self, address: str, timeout_ms: int) -> float | None:
        cmd = build_ping_command(address, timeout_ms)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError:
            logger.warning("Unable to run ping for %s", address, exc_info=True)
            return None

        try:
            stdout, _ = await asyncio.wait_for(
                proc.communicate(), timeout=timeout_ms / 1000 + 1.0
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return None

        if proc.returncode != 0:
            return None

        output = stdout.decode(errors="replace")
        # Windows exits 0 for "Destination host unreachable" relayed by a router
        if "TTL=" not in output.upper():
            return None
        rtt = parse_rtt(output)
        return rtt if rtt is not None else 0.0
