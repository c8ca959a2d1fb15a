"""SSH banner fingerprinting."""
from __future__ import annotations

import logging

from netroster.config import PortDetectionOptions
from netroster.detection.base import exchange

logger = logging.getLogger(__name__)


def parse_ssh_banner(banner: str) -> str | None:
    """Map an SSH identification string to a distribution label."""
    lower = banner.lower()
    if "ubuntu" in lower:
        return "Ubuntu Linux (SSH)"
    if "debian" in lower:
        return "Debian Linux (SSH)"
    if "raspbian" in lower:
        return "Raspberry Pi (SSH)"
    if "openssh" in lower:
        return "Linux/Unix (SSH)"
    if "ssh" in lower:
        return "Unknown (SSH)"
    return None


class SshDetector:
    """Reads the server identification line sent on connect."""

    priority = 40

    def __init__(self, options: PortDetectionOptions | None = None) -> None:
        self._options = options or PortDetectionOptions()

    async def classify(self, address: str) -> str | None:
        banner = await exchange(
            address, self._options.ssh_port, self._options.connection_timeout, max_len=256
        )
        if banner is None:
            return None
        label = parse_ssh_banner(banner)
        if label:
            logger.info("Device type detected via SSH on %s: %s", address, label)
        return label
