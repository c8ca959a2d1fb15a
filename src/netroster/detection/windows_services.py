"""Windows host detection from well-known service ports."""
from __future__ import annotations

import logging

from netroster.config import PortDetectionOptions
from netroster.detection.base import is_port_open

logger = logging.getLogger(__name__)

# Remote management is rarely enabled on desktop editions
SERVER_PORTS = frozenset({3389, 5985, 5986})


def windows_label(port: int, service: str) -> str:
    role = "Server" if port in SERVER_PORTS else "Client"
    return f"Windows {role} ({service})"


class WindowsServicesDetector:
    """Labels a host Windows Server/Client from the first open service port."""

    priority = 30

    def __init__(self, options: PortDetectionOptions | None = None) -> None:
        self._options = options or PortDetectionOptions()

    async def classify(self, address: str) -> str | None:
        timeout = self._options.connection_timeout
        for port, service in self._options.windows_service_ports.items():
            if await is_port_open(address, port, timeout):
                label = windows_label(port, service)
                logger.info("Device type detected via Windows services on %s: %s", address, label)
                return label
        return None
