"""Subnet providers: which /24 prefixes a sweep should cover.

A prefix is the first three octets of an IPv4 network (``"192.168.1"``);
the scanner appends each octet of its configured range to it.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from typing import Protocol, runtime_checkable

from netroster.config import ScanOptions

logger = logging.getLogger(__name__)


@runtime_checkable
class SubnetProvider(Protocol):
    async def get_subnets_to_scan(self) -> list[str]:
        """Return the prefixes to sweep. An empty list aborts the sweep."""
        ...


def network_base(address: str) -> str:
    """Return the first three octets of an IPv4 address."""
    return ".".join(address.split(".")[:3])


def _is_valid_prefix(prefix: str) -> bool:
    try:
        ipaddress.IPv4Address(f"{prefix}.0")
    except ValueError:
        return False
    return prefix.count(".") == 2


class LocalSubnetProvider:
    """Detects the /24 of the interface that carries the default route.

    A UDP socket is "connected" to a public address (no packet is sent) and
    the chosen local address is read back. Failure yields an empty list.

    Parameters
    ----------
    probe_host:
        Address used to select the outbound interface.
    """

    def __init__(self, probe_host: str = "8.8.8.8") -> None:
        self._probe_host = probe_host

    def _local_ip(self) -> str:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            s.connect((self._probe_host, 80))
            return s.getsockname()[0]
        finally:
            s.close()

    async def get_subnets_to_scan(self) -> list[str]:
        loop = asyncio.get_running_loop()
        try:
            local_ip = await loop.run_in_executor(None, self._local_ip)
        except Exception:
            logger.warning("Could not determine local IP address", exc_info=True)
            return []
        if ipaddress.IPv4Address(local_ip).is_loopback:
            logger.warning("Only a loopback address is available (%s)", local_ip)
            return []
        base = network_base(local_ip)
        logger.info("Local IP: %s, Subnet: %s.x", local_ip, base)
        return [base]


class StaticSubnetProvider:
    """Returns a fixed list of prefixes.

    Parameters
    ----------
    prefixes:
        Prefixes such as ``"192.168.1"``. Invalid entries raise ``ValueError``.
    """

    def __init__(self, prefixes: list[str]) -> None:
        cleaned = [p.strip() for p in prefixes if p.strip()]
        for prefix in cleaned:
            if not _is_valid_prefix(prefix):
                raise ValueError(f"Invalid subnet prefix: {prefix!r}")
        self._prefixes = cleaned

    async def get_subnets_to_scan(self) -> list[str]:
        return list(self._prefixes)


def create_subnet_provider(options: ScanOptions) -> SubnetProvider:
    """Build the provider selected by ``options.subnet_base``.

    ``"auto"`` detects the local network; anything else is read as one or
    more comma-separated prefixes.
    """
    if options.subnet_base.strip().lower() == "auto":
        return LocalSubnetProvider()
    return StaticSubnetProvider(options.subnet_base.split(","))
