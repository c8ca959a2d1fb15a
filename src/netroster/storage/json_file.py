"""JSON file backend for device storage.

Known devices are written to ``known_devices.json``, the scanner roster to
``roster.json`` and settings to ``app_settings.json`` inside a data
directory. Missing, empty or corrupt files load as empty results.
"""

from __future__ import annotations

import json
import logging
import pathlib

from pydantic import TypeAdapter, ValidationError

from netroster.models import Device
from netroster.storage.base import DeviceStorage

logger = logging.getLogger(__name__)

DEVICES_FILE = "known_devices.json"
ROSTER_FILE = "roster.json"
SETTINGS_FILE = "app_settings.json"

_DEVICE_LIST = TypeAdapter(list[Device])


class JsonFileStorage(DeviceStorage):
    """Stores devices and settings as indented JSON files.

    Parameters
    ----------
    data_dir:
        Directory holding the JSON files. Created on first write.
    devices_file:
        File name for the device list within *data_dir*.
    """

    def __init__(self, data_dir: pathlib.Path, devices_file: str = DEVICES_FILE) -> None:
        self._dir = pathlib.Path(data_dir)
        self.devices_path = self._dir / devices_file
        self.settings_path = self._dir / SETTINGS_FILE
        logger.debug("Device data path: %s", self.devices_path)

    def _read_text(self, path: pathlib.Path) -> str | None:
        if not path.exists():
            logger.debug("No file at %s", path)
            return None
        text = path.read_text(encoding="utf-8")
        if not text.strip():
            logger.debug("Empty file at %s", path)
            return None
        return text

    def _write_text(self, path: pathlib.Path, text: str) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(text, encoding="utf-8")
        tmp.replace(path)

    async def load_devices(self) -> list[Device]:
        try:
            text = self._read_text(self.devices_path)
            if text is None:
                return []
            devices = _DEVICE_LIST.validate_json(text)
        except (OSError, ValidationError, ValueError):
            logger.exception("Error loading persisted devices from %s", self.devices_path)
            return []
        logger.info("Loaded %d persisted devices from %s", len(devices), self.devices_path)
        return devices

    async def save_devices(self, devices: list[Device]) -> None:
        try:
            text = _DEVICE_LIST.dump_json(devices, indent=2).decode("utf-8")
            self._write_text(self.devices_path, text)
        except OSError:
            logger.exception("Error saving persisted devices to %s", self.devices_path)
            return
        logger.debug("Saved %d devices to %s", len(devices), self.devices_path)

    async def load_settings(self) -> dict[str, str]:
        try:
            text = self._read_text(self.settings_path)
            if text is None:
                return {}
            data = json.loads(text)
        except (OSError, ValueError):
            logger.exception("Error loading app settings from %s", self.settings_path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed app settings in %s", self.settings_path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    async def save_settings(self, settings: dict[str, str]) -> None:
        try:
            self._write_text(self.settings_path, json.dumps(settings, indent=2, sort_keys=True))
        except OSError:
            logger.exception("Error saving app settings to %s", self.settings_path)
            return
        logger.debug("Saved app settings to %s", self.settings_path)
