"""MAC address resolution from the operating system's neighbour table.

Provides a platform-independent interface for reading the ARP/neighbour
cache. Each implementation runs the platform tool with
asyncio.create_subprocess_exec (never through a shell) and parses its
output into an ``ip -> MAC`` mapping with MACs normalised to upper-case
colon form (``AA:BB:CC:DD:EE:FF``).
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import re
import sys
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^[0-9A-Fa-f]+$")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _is_ipv4(value: str) -> bool:
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def is_valid_mac(value: str) -> bool:
    """Loose check that *value* looks like a hardware address."""
    if len(value) < 11:
        return False
    if ":" in value or "-" in value:
        groups = re.split(r"[:-]", value)
        return len(groups) == 6 and all(
            1 <= len(g) <= 2 and _HEX_RE.match(g) for g in groups
        )
    return len(value) == 12 and bool(_HEX_RE.match(value))


def normalize_mac(value: str) -> str:
    """Return *value* as ``AA:BB:CC:DD:EE:FF``.

    Groups written without a leading zero (``0:1a:...`` as printed by BSD
    ``arp``) are padded. Values that cannot be normalised are returned
    unchanged.
    """
    if ":" in value or "-" in value:
        groups = re.split(r"[:-]", value)
        if len(groups) == 6:
            clean = "".join(g.zfill(2) for g in groups)
        else:
            clean = "".join(groups)
    else:
        clean = value
    clean = clean.upper()
    if len(clean) != 12:
        return value
    return ":".join(clean[i : i + 2] for i in range(0, 12, 2))


# ---------------------------------------------------------------------------
# Output parsers
# ---------------------------------------------------------------------------

def parse_ip_neigh(output: str) -> dict[str, str]:
    """Parse ``ip neigh show`` output.

    Lines look like ``192.168.1.1 dev eth0 lladdr aa:bb:cc:dd:ee:ff REACHABLE``.
    Entries without a link-layer address (``FAILED``, ``INCOMPLETE``) are
    skipped.
    """
    table: dict[str, str] = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 5:
            continue
        try:
            idx = parts.index("lladdr")
        except ValueError:
            continue
        if idx + 1 >= len(parts):
            continue
        ip, mac = parts[0], parts[idx + 1]
        if _is_ipv4(ip) and is_valid_mac(mac):
            table[ip] = normalize_mac(mac)
    return table


def parse_bsd_arp(output: str) -> dict[str, str]:
    """Parse BSD/macOS ``arp -a`` output.

    Lines look like ``? (192.168.1.1) at aa:bb:cc:dd:ee:ff on en0 ifscope [ethernet]``.
    """
    table: dict[str, str] = {}
    for line in output.splitlines():
        if "(" not in line or ")" not in line or " at " not in line:
            continue
        ip = line[line.index("(") + 1 : line.index(")")]
        rest = line[line.index(" at ") + 4 :].split()
        if not rest:
            continue
        mac = rest[0]
        if _is_ipv4(ip) and is_valid_mac(mac):
            table[ip] = normalize_mac(mac)
    return table


def parse_windows_arp(output: str) -> dict[str, str]:
    """Parse Windows ``arp -a`` output.

    Data rows look like ``  192.168.1.1   aa-bb-cc-dd-ee-ff   dynamic``;
    interface headers and column titles are ignored.
    """
    table: dict[str, str] = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        ip, mac = parts[0], parts[1]
        if _is_ipv4(ip) and is_valid_mac(mac):
            table[ip] = normalize_mac(mac)
    return table


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------

class MacAddressResolver(ABC):
    """Abstract interface for neighbour-table lookups.

    Implementations never raise: a failed command yields an empty table and
    an unknown address yields ``None``.
    """

    @abstractmethod
    async def get_arp_table(self) -> dict[str, str]:
        """Return the current ``ip -> MAC`` neighbour table."""

    async def resolve_mac(self, address: str) -> str | None:
        """Return the MAC for *address*, or ``None`` if the table lacks it."""
        table = await self.get_arp_table()
        return table.get(address)


class CommandArpResolver(MacAddressResolver):
    """Neighbour-table reader backed by an external command.

    Parameters
    ----------
    command:
        Program and arguments to execute.
    parser:
        Function turning the command's stdout into an ``ip -> MAC`` dict.
    timeout:
        Seconds to wait for the command to finish.
    """

    def __init__(self, command, parser, timeout: float = 5.0) -> None:
        self._command = list(command)
        self._parser = parser
        self._timeout = timeout

    async def _run(self) -> str:
        proc = await asyncio.create_subprocess_exec(
            *self._command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise
        return stdout.decode(errors="replace")

    async def get_arp_table(self) -> dict[str, str]:
        try:
            output = await self._run()
        except Exception:
            logger.warning("Failed to read neighbour table with %s", self._command[0], exc_info=True)
            return {}
        table = self._parser(output)
        logger.debug("Neighbour table has %d entries", len(table))
        return table


class LinuxArpResolver(CommandArpResolver):
    def __init__(self, timeout: float = 5.0) -> None:
        super().__init__(["ip", "neigh", "show"], parse_ip_neigh, timeout)


class MacOSArpResolver(CommandArpResolver):
    def __init__(self, timeout: float = 5.0) -> None:
        super().__init__(["arp", "-a", "-n"], parse_bsd_arp, timeout)


class WindowsArpResolver(CommandArpResolver):
    def __init__(self, timeout: float = 5.0) -> None:
        super().__init__(["arp", "-a"], parse_windows_arp, timeout)


def create_mac_resolver() -> MacAddressResolver:
    """Create the platform-appropriate neighbour-table resolver.

    Returns ``WindowsArpResolver`` on Windows, ``MacOSArpResolver`` on
    macOS and ``LinuxArpResolver`` everywhere else.
    """
    if sys.platform.startswith("win"):
        return WindowsArpResolver()
    if sys.platform == "darwin":
        return MacOSArpResolver()
    return LinuxArpResolver()
