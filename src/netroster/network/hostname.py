"""Best-effort reverse DNS naming for discovered hosts."""

from __future__ import annotations

import asyncio
import logging
import socket

logger = logging.getLogger(__name__)


def fallback_name(address: str) -> str:
    return f"DEVICE_{address.rsplit('.', 1)[-1]}"


def format_hostname(hostname: str) -> str:
    """Collapse an FQDN to ``HOST (domain)``.

    The first label is upper-cased. The second label is kept as a
    parenthesised hint only when it is longer than two characters, so
    ``nas.home.arpa`` becomes ``NAS (home)`` while ``pc.lan`` becomes
    ``PC (lan)`` and ``pc.co.uk`` becomes ``PC``.
    """
    if "." not in hostname:
        return hostname.upper()
    parts = hostname.split(".")
    host = parts[0].upper()
    domain = parts[1] if len(parts) > 1 else ""
    if len(domain) > 2:
        return f"{host} ({domain})"
    return host


class HostnameResolver:
    """Reverse-resolves addresses in the default executor.

    Parameters
    ----------
    timeout:
        Seconds to wait for the resolver before falling back.
    """

    def __init__(self, timeout: float = 2.0) -> None:
        self._timeout = timeout

    async def resolve(self, address: str) -> str:
        """Return a display name for *address*, never raising."""
        loop = asyncio.get_running_loop()
        try:
            hostname, _, _ = await asyncio.wait_for(
                loop.run_in_executor(None, socket.gethostbyaddr, address),
                timeout=self._timeout,
            )
        except (OSError, asyncio.TimeoutError):
            logger.debug("No reverse DNS for %s", address)
            return fallback_name(address)
        if not hostname or hostname == address:
            return fallback_name(address)
        return format_hostname(hostname)
