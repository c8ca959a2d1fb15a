"""Detector registration groups.

``default_detectors`` covers the port-probing detectors that need nothing
but TCP. ``enhanced_detectors`` adds the multicast discovery detectors
(SSDP and mDNS), which need a LAN that passes multicast traffic.
"""
from __future__ import annotations

from netroster.config import DetectorsConfig, PortDetectionOptions
from netroster.detection.base import Detector
from netroster.detection.http import HttpDetector
from netroster.detection.mdns import MdnsDetector
from netroster.detection.service_endpoint import ServiceEndpointDetector
from netroster.detection.ssh import SshDetector
from netroster.detection.upnp import UpnpDetector
from netroster.detection.windows_services import WindowsServicesDetector


def default_detectors(options: PortDetectionOptions | None = None) -> list[Detector]:
    options = options or PortDetectionOptions()
    return [
        ServiceEndpointDetector(options),
        HttpDetector(options),
        SshDetector(options),
        WindowsServicesDetector(options),
    ]


def enhanced_detectors(
    options: PortDetectionOptions | None = None,
    config: DetectorsConfig | None = None,
) -> list[Detector]:
    options = options or PortDetectionOptions()
    config = config or DetectorsConfig()
    return [
        UpnpDetector(options, search_seconds=config.upnp_search_seconds),
        MdnsDetector(browse_seconds=config.mdns_browse_seconds),
    ]


def all_detectors(
    options: PortDetectionOptions | None = None,
    config: DetectorsConfig | None = None,
) -> list[Detector]:
    return [*default_detectors(options), *enhanced_detectors(options, config)]


def detectors_from_config(
    options: PortDetectionOptions,
    config: DetectorsConfig,
) -> list[Detector]:
    """Build the detector groups enabled in *config*."""
    detectors: list[Detector] = []
    if config.default:
        detectors.extend(default_detectors(options))
    if config.enhanced:
        detectors.extend(enhanced_detectors(options, config))
    return detectors
