"""HTTP server-header fingerprinting.

Sends a bare ``HEAD /`` to the IoT ports first, then the standard HTTP
ports, and maps the ``Server`` header to an operating-system label. A
response without a recognisable server still yields a port-based label.
"""
from __future__ import annotations

import logging

from netroster.config import PortDetectionOptions
from netroster.detection.base import exchange

logger = logging.getLogger(__name__)

_PORT_FALLBACK_LABELS: dict[int, str] = {
    5000: "Unknown (.NET App) (HTTP)",
    8000: "Unknown (Web App) (HTTP)",
    8080: "Unknown (Web App) (HTTP)",
    8443: "Unknown (Secure Web) (HTTP)",
}


def parse_http_response(response: str, port: int) -> str | None:
    """Map a raw HTTP response head to a device-type label.

    Returns ``None`` if *response* does not look like HTTP at all.
    """
    for line in response.split("\n"):
        lower = line.strip().lower()
        if lower.startswith("server:"):
            if "microsoft-iis" in lower:
                if "iis/10.0" in lower:
                    return "Windows Server 2016/2019/2022 (HTTP)"
                if "iis/8.5" in lower:
                    return "Windows Server 2012 R2 (HTTP)"
                if "iis/8.0" in lower:
                    return "Windows Server 2012 (HTTP)"
                return "Windows Server (HTTP)"
            if "kestrel" in lower:
                return "Windows/Linux (.NET) (HTTP)"
            if "apache" in lower or "nginx" in lower or "lighttpd" in lower:
                return "Linux Server (HTTP)"
        if "asp.net" in lower:
            return "Windows Server (.NET) (HTTP)"
        if "microsoft-httpapi" in lower:
            return "Windows Server (HTTP)"

    if "HTTP/1." in response:
        return _PORT_FALLBACK_LABELS.get(port, "Unknown (HTTP)")
    return None


class HttpDetector:
    """Classifies hosts by their HTTP ``Server`` header.

    Parameters
    ----------
    options:
        Port lists and the per-connection timeout.
    """

    priority = 50

    def __init__(self, options: PortDetectionOptions | None = None) -> None:
        self._options = options or PortDetectionOptions()

    @property
    def ports(self) -> list[int]:
        return [*self._options.custom_iot_ports, *self._options.standard_http_ports]

    async def _probe(self, address: str, port: int) -> str | None:
        request = (
            f"HEAD / HTTP/1.1\r\nHost: {address}\r\nConnection: close\r\n\r\n"
        ).encode("ascii")
        response = await exchange(
            address, port, self._options.connection_timeout, payload=request
        )
        if response is None:
            return None
        return parse_http_response(response, port)

    async def classify(self, address: str) -> str | None:
        for port in self.ports:
            label = await self._probe(address, port)
            if label:
                logger.info("Device type detected via HTTP on %s:%d: %s", address, port, label)
                return label
        return None
