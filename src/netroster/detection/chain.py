"""Prioritized detection chain.

Detectors are consulted strictly in descending priority order. The first
non-empty label wins and no lower-priority detector is invoked after it.
A detector that raises is logged and treated as "no match".
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from netroster.detection.base import Detector
from netroster.models import UNKNOWN

logger = logging.getLogger(__name__)


class DetectionChain:
    """Ordered set of detectors producing a single classification.

    Parameters
    ----------
    detectors:
        Detectors to consult. They are sorted once, by descending priority;
        equal priorities keep their given order.
    """

    def __init__(self, detectors: Iterable[Detector] = ()) -> None:
        self._detectors: list[Detector] = sorted(
            detectors, key=lambda d: d.priority, reverse=True
        )

    @property
    def detectors(self) -> list[Detector]:
        return list(self._detectors)

    def __len__(self) -> int:
        return len(self._detectors)

    async def classify_device(self, address: str) -> str:
        """Return the first detector label for *address*, or ``"Unknown"``."""
        for detector in self._detectors:
            try:
                label = await detector.classify(address)
            except Exception:
                logger.warning(
                    "Detector %s failed for %s",
                    type(detector).__name__, address, exc_info=True,
                )
                continue
            if label:
                logger.debug(
                    "Device type detected for %s by %s: %s",
                    address, type(detector).__name__, label,
                )
                return label
        logger.debug("No device type detected for %s", address)
        return UNKNOWN
