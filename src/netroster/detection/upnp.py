"""SSDP/UPnP device classification.

Sends an M-SEARCH multicast, collects responses, fetches the device
description XML from each LOCATION URL and builds a label from the
friendly name, manufacturer, model and device-type URN. One search window
serves every address that responded to it; results are cached per
address and a new search is only issued once the previous one is older
than ``refresh_seconds``.
"""
from __future__ import annotations

import asyncio
import logging
import socket
from urllib.parse import urlparse
from xml.etree import ElementTree

import httpx

from netroster.config import PortDetectionOptions

logger = logging.getLogger(__name__)

SSDP_ADDR = "239.255.255.250"
SSDP_PORT = 1900
UPNP_NS = "urn:schemas-upnp-org:device-1-0"

M_SEARCH_REQUEST = (
    "M-SEARCH * HTTP/1.1\r\n"
    f"HOST: {SSDP_ADDR}:{SSDP_PORT}\r\n"
    "MAN: \"ssdp:discover\"\r\n"
    "MX: 2\r\n"
    "ST: ssdp:all\r\n"
    "\r\n"
)

# Checked in order; the first keyword found in the lower-cased URN wins
_TYPE_HINTS: list[tuple[tuple[str, ...], str]] = [
    (("mediaserver",), "Media Server"),
    (("mediarenderer",), "Media Renderer"),
    (("printer",), "Printer"),
    (("scanner",), "Scanner"),
    (("router", "gateway"), "Router/Gateway"),
    (("tv", "television"), "Smart TV"),
    (("light",), "Smart Light"),
    (("thermostat",), "Thermostat"),
    (("camera",), "Camera"),
    (("storage",), "Network Storage"),
]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_ssdp_response(raw: str, source_ip: str) -> dict | None:
    """Parse an SSDP M-SEARCH response into a dict of header values.

    Returns None if the response is missing a LOCATION header (required).
    """
    if not raw.strip():
        return None

    headers: dict[str, str] = {}
    for line in raw.split("\r\n"):
        if ":" in line and not line.startswith("HTTP/"):
            key, _, value = line.partition(":")
            headers[key.strip().lower()] = value.strip()

    location = headers.get("location")
    if not location:
        return None

    return {
        "location": location,
        "server": headers.get("server"),
        "st": headers.get("st"),
        "source_ip": source_ip,
    }


def parse_upnp_xml(xml_text: str) -> dict | None:
    """Parse a UPnP device description XML and extract device metadata.

    Returns None if the XML is malformed or has no <device> element.
    """
    if not xml_text.strip():
        return None

    try:
        root = ElementTree.fromstring(xml_text)
    except ElementTree.ParseError:
        return None

    device = root.find(f"{{{UPNP_NS}}}device")
    if device is None:
        device = root.find("device")
    if device is None:
        device = next(root.iter(f"{{{UPNP_NS}}}device"), None)
    if device is None:
        return None

    def _text(tag: str) -> str | None:
        el = device.find(f"{{{UPNP_NS}}}{tag}")
        if el is None:
            el = device.find(tag)
        if el is None or not el.text:
            return None
        return el.text.strip() or None

    return {
        "friendly_name": _text("friendlyName"),
        "manufacturer": _text("manufacturer"),
        "model_name": _text("modelName"),
        "device_type": _text("deviceType"),
    }


def device_type_hint(device_type_urn: str | None) -> str | None:
    """Map a deviceType URN such as ``urn:...:device:MediaServer:1`` to a hint."""
    if not device_type_urn:
        return None
    lower = device_type_urn.lower()
    for keywords, hint in _TYPE_HINTS:
        if any(k in lower for k in keywords):
            return hint
    return None


def build_upnp_label(
    friendly_name: str | None,
    manufacturer: str | None,
    model_name: str | None,
    device_type: str | None,
) -> str:
    """Combine description fields into ``"<name> - <hint> (UPnP)"``.

    The friendly name is preferred unless it merely repeats the
    manufacturer, then ``manufacturer model``, then the manufacturer alone.
    With nothing usable the label is ``"UPnP Device"``.
    """
    parts: list[str] = []
    if friendly_name and friendly_name != manufacturer:
        parts.append(friendly_name)
    elif model_name:
        parts.append(f"{manufacturer} {model_name}" if manufacturer else model_name)
    elif manufacturer:
        parts.append(manufacturer)

    hint = device_type_hint(device_type)
    if hint:
        parts.append(hint)

    if not parts:
        return "UPnP Device"
    return " - ".join(parts) + " (UPnP)"


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------

class UpnpDetector:
    """Classifies hosts that answer SSDP discovery.

    Parameters
    ----------
    options:
        Port detection options; the connection timeout bounds each XML fetch.
    search_seconds:
        Seconds to collect M-SEARCH responses.
    refresh_seconds:
        Minimum age of the previous search before a new one is sent.
    """

    priority = 90

    def __init__(
        self,
        options: PortDetectionOptions | None = None,
        search_seconds: float = 2.0,
        refresh_seconds: float = 60.0,
    ) -> None:
        self._options = options or PortDetectionOptions()
        self._search_seconds = search_seconds
        self._refresh_seconds = refresh_seconds
        self._cache: dict[str, str] = {}
        self._lock = asyncio.Lock()
        self._last_search: float | None = None

    async def classify(self, address: str) -> str | None:
        cached = self._cache.get(address)
        if cached is not None:
            logger.debug("UPnP cache hit for %s: %s", address, cached)
            return cached

        async with self._lock:
            # Another probe may have refreshed while we waited
            cached = self._cache.get(address)
            if cached is not None:
                return cached
            loop = asyncio.get_running_loop()
            if self._last_search is None or loop.time() - self._last_search >= self._refresh_seconds:
                await self._refresh()
                self._last_search = loop.time()

        label = self._cache.get(address)
        if label:
            logger.info("UPnP device detected at %s: %s", address, label)
        return label

    async def _refresh(self) -> None:
        """Run one search window and cache a label for every responder."""
        responses = await self._send_msearch()

        parsed: list[dict] = []
        seen_locations: set[str] = set()
        for raw, source_ip in responses:
            result = parse_ssdp_response(raw, source_ip)
            if result and result["location"] not in seen_locations:
                seen_locations.add(result["location"])
                parsed.append(result)

        async with httpx.AsyncClient(
            timeout=self._options.connection_timeout, verify=False
        ) as client:
            for resp in parsed:
                # Devices are keyed by the host serving their description
                host = urlparse(resp["location"]).hostname or resp["source_ip"]
                if host in self._cache:
                    continue
                xml_data = await self._fetch_xml(client, resp["location"])
                if xml_data is None:
                    continue
                self._cache[host] = build_upnp_label(
                    xml_data["friendly_name"],
                    xml_data["manufacturer"],
                    xml_data["model_name"],
                    xml_data["device_type"],
                )

    async def _send_msearch(self) -> list[tuple[str, str]]:
        """Send M-SEARCH multicast and collect responses.

        Returns list of (raw_response, source_ip) tuples.
        """
        responses: list[tuple[str, str]] = []

        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP) as sock:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                sock.settimeout(0.5)

                sock.sendto(M_SEARCH_REQUEST.encode(), (SSDP_ADDR, SSDP_PORT))

                loop = asyncio.get_running_loop()
                deadline = loop.time() + self._search_seconds

                while loop.time() < deadline:
                    try:
                        data, addr = await loop.run_in_executor(None, sock.recvfrom, 4096)
                        responses.append((data.decode("utf-8", errors="replace"), addr[0]))
                    except OSError:
                        continue
        except OSError:
            logger.warning("Failed to send SSDP M-SEARCH", exc_info=True)

        logger.debug("SSDP collected %d responses", len(responses))
        return responses

    async def _fetch_xml(self, client: httpx.AsyncClient, url: str) -> dict | None:
        """Fetch and parse a UPnP device description XML."""
        try:
            resp = await client.get(url)
            resp.raise_for_status()
            return parse_upnp_xml(resp.text)
        except Exception:
            logger.debug("Failed to fetch UPnP XML from %s", url, exc_info=True)
            return None
