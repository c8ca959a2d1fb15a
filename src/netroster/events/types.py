"""Event type constants for the netroster event bus.

These constants define the canonical event type strings used throughout
the system. The scanner publishes on the scan/device topics; the device
service publishes on the known-device topics.
"""

from __future__ import annotations


class EventType:
    """Namespace for event type string constants."""

    # Scanner events
    SCAN_PROGRESS = "scan.progress"
    SCAN_STATE_CHANGED = "scan.state_changed"
    SCAN_NEXT_TIME_CHANGED = "scan.next_time_changed"
    SCAN_LAST_TIME_CHANGED = "scan.last_time_changed"

    # Device events
    DEVICE_DISCOVERED = "device.discovered"

    # Known-device list events
    KNOWN_DEVICE_ADDED = "known_device.added"
    KNOWN_DEVICE_REMOVED = "known_device.removed"
    KNOWN_DEVICE_STATUS = "known_device.status"
