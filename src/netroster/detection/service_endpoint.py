"""Known application endpoints identified by an open TCP port."""
from __future__ import annotations

import logging

from netroster.config import PortDetectionOptions
from netroster.detection.base import is_port_open

logger = logging.getLogger(__name__)


class ServiceEndpointDetector:
    """Returns the configured description of the first open endpoint port.

    Ports are tried in the order they appear in
    ``PortDetectionOptions.service_endpoints``.
    """

    priority = 60

    def __init__(self, options: PortDetectionOptions | None = None) -> None:
        self._options = options or PortDetectionOptions()

    async def classify(self, address: str) -> str | None:
        timeout = self._options.connection_timeout
        for port, description in self._options.service_endpoints.items():
            if await is_port_open(address, port, timeout):
                logger.info(
                    "Service endpoint detected on %s:%d - %s", address, port, description
                )
                return description
        return None
