"""mDNS/DNS-SD device classification.

Uses the zeroconf library to browse common service types during a short
window and caches a label per responding IPv4 address. Like the UPnP
detector, one browse window serves every address seen in it.
"""
from __future__ import annotations

import asyncio
import logging

from zeroconf import IPVersion, ServiceStateChange, Zeroconf
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

logger = logging.getLogger(__name__)

BROWSE_SERVICE_TYPES: list[str] = [
    "_http._tcp.local.",
    "_https._tcp.local.",
    "_ssh._tcp.local.",
    "_sftp-ssh._tcp.local.",
    "_printer._tcp.local.",
    "_ipp._tcp.local.",
    "_scanner._tcp.local.",
    "_smb._tcp.local.",
    "_afpovertcp._tcp.local.",
    "_device-info._tcp.local.",
    "_workstation._tcp.local.",
    "_airplay._tcp.local.",
    "_homekit._tcp.local.",
    "_hap._tcp.local.",
    "_raop._tcp.local.",
    "_googlecast._tcp.local.",
    "_spotify-connect._tcp.local.",
    "_sonos._tcp.local.",
    "_hue._tcp.local.",
    "_homeassistant._tcp.local.",
    "_octoprint._tcp.local.",
    "_mqtt._tcp.local.",
    "_rfb._tcp.local.",
    "_daap._tcp.local.",
    "_radicale._tcp.local.",
]

# Checked in order; the first keyword found in the service type wins
_SERVICE_HINTS: list[tuple[tuple[str, ...], str]] = [
    (("_printer",), "Printer"),
    (("_scanner",), "Scanner"),
    (("_airplay",), "AirPlay Device"),
    (("_homekit", "_hap"), "HomeKit Device"),
    (("_googlecast",), "Chromecast"),
    (("_spotify",), "Spotify Connect"),
    (("_sonos",), "Sonos Speaker"),
    (("_hue",), "Philips Hue"),
    (("_homeassistant",), "Home Assistant"),
    (("_octoprint",), "OctoPrint"),
    (("_mqtt",), "MQTT Broker"),
    (("_smb", "_afp"), "File Server"),
    (("_ssh", "_sftp"), "SSH Server"),
    (("_http",), "Web Server"),
    (("_workstation",), "Workstation"),
    (("_rfb",), "VNC Server"),
    (("_raop",), "Audio Receiver"),
]


def service_type_hint(service_type: str) -> str | None:
    lower = service_type.lower()
    for keywords, hint in _SERVICE_HINTS:
        if any(k in lower for k in keywords):
            return hint
    return None


def instance_name(full_name: str, service_type: str | None = None) -> str:
    """Strip the service suffix from ``"My Printer._ipp._tcp.local."``."""
    if service_type and full_name.endswith("." + service_type):
        return full_name[: -len(service_type) - 1]
    head, _, _ = full_name.partition(".")
    return head or full_name


def build_mdns_label(
    name: str | None,
    service_type: str,
    hostname: str | None = None,
) -> str:
    """Combine instance name and service hint into ``"<name> - <hint> (mDNS)"``.

    The hostname is only used when the service type has no hint.
    """
    parts: list[str] = []
    if name:
        parts.append(name)
    hint = service_type_hint(service_type)
    if hint:
        parts.append(hint)
    elif hostname:
        parts.append(hostname.rstrip("."))
    if not parts:
        return "mDNS Device"
    return " - ".join(parts) + " (mDNS)"


def extract_result_from_info(info) -> dict | None:
    """Extract IP, hostname, and service type from a zeroconf ServiceInfo.

    Returns None if no IPv4 address is available.
    """
    addresses = info.parsed_addresses()
    ipv4_addrs = [a for a in addresses if ":" not in a]
    if not ipv4_addrs:
        return None

    return {
        "ips": ipv4_addrs,
        "hostname": info.server if info.server else None,
        "service_type": info.type,
        "name": instance_name(info.name, info.type),
    }


class MDNSLabelCollector:
    """Collects labels during a timed browse window.

    When several services announce the same address, the longest (most
    specific) label is kept.
    """

    def __init__(self) -> None:
        self.labels: dict[str, str] = {}

    def add(self, ip: str, label: str) -> None:
        current = self.labels.get(ip)
        if current is None or len(label) > len(current):
            self.labels[ip] = label


class MdnsDetector:
    """Classifies hosts that advertise DNS-SD services.

    Parameters
    ----------
    browse_seconds:
        Seconds to collect browse results.
    service_types:
        Service types to browse. Defaults to common types.
    refresh_seconds:
        Minimum age of the previous browse before a new one is started.
    """

    priority = 85

    def __init__(
        self,
        browse_seconds: float = 1.5,
        service_types: list[str] | None = None,
        refresh_seconds: float = 60.0,
    ) -> None:
        self._browse_seconds = browse_seconds
        self._service_types = service_types or BROWSE_SERVICE_TYPES
        self._refresh_seconds = refresh_seconds
        self._collector = MDNSLabelCollector()
        self._lock = asyncio.Lock()
        self._last_browse: float | None = None

    async def classify(self, address: str) -> str | None:
        cached = self._collector.labels.get(address)
        if cached is not None:
            logger.debug("mDNS cache hit for %s: %s", address, cached)
            return cached

        async with self._lock:
            cached = self._collector.labels.get(address)
            if cached is not None:
                return cached
            loop = asyncio.get_running_loop()
            if self._last_browse is None or loop.time() - self._last_browse >= self._refresh_seconds:
                await self.browse()
                self._last_browse = loop.time()

        label = self._collector.labels.get(address)
        if label:
            logger.info("mDNS device detected at %s: %s", address, label)
        return label

    async def browse(self) -> dict[str, str]:
        """Browse for services and return the accumulated ``ip -> label`` map."""
        pending: set[asyncio.Task] = set()

        async def resolve(zeroconf: Zeroconf, service_type: str, name: str) -> None:
            info = AsyncServiceInfo(service_type, name)
            await info.async_request(zeroconf, 1500)
            extracted = extract_result_from_info(info)
            if extracted is None:
                return
            label = build_mdns_label(
                extracted["name"], extracted["service_type"], extracted["hostname"]
            )
            for ip in extracted["ips"]:
                self._collector.add(ip, label)

        def on_service_state_change(
            zeroconf: Zeroconf,
            service_type: str,
            name: str,
            state_change: ServiceStateChange,
        ) -> None:
            if state_change is not ServiceStateChange.Added:
                return
            task = asyncio.ensure_future(resolve(zeroconf, service_type, name))
            pending.add(task)
            task.add_done_callback(pending.discard)

        try:
            aiozc = AsyncZeroconf(ip_version=IPVersion.V4Only)
            try:
                browser = AsyncServiceBrowser(
                    aiozc.zeroconf,
                    self._service_types,
                    handlers=[on_service_state_change],
                )

                await asyncio.sleep(self._browse_seconds)
                await browser.async_cancel()
                if pending:
                    await asyncio.gather(*pending, return_exceptions=True)
            finally:
                await aiozc.async_close()

        except OSError:
            logger.warning("mDNS browse failed", exc_info=True)

        logger.debug("mDNS browse knows %d addresses", len(self._collector.labels))
        return dict(self._collector.labels)
