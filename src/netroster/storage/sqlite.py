"""SQLite backend for device storage (aiosqlite).

Two device tables share one schema: ``known_devices`` for the user's
known-device list and ``roster_devices`` for the scanner's last roster.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

import aiosqlite

from netroster.models import Device
from netroster.storage.base import DeviceStorage

logger = logging.getLogger(__name__)

KNOWN_TABLE = "known_devices"
ROSTER_TABLE = "roster_devices"
DEVICE_TABLES = (KNOWN_TABLE, ROSTER_TABLE)

_DEVICE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS {table} (
    address TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    classified_type TEXT NOT NULL DEFAULT 'Unknown',
    mac_address TEXT NOT NULL DEFAULT 'Unknown',
    is_online INTEGER NOT NULL DEFAULT 0,
    last_seen TEXT NOT NULL,
    response_time_ms REAL NOT NULL DEFAULT 0
);
"""

SCHEMA_SQL = "".join(_DEVICE_TABLE_SQL.format(table=t) for t in DEVICE_TABLES) + """
CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


async def apply_schema(db: aiosqlite.Connection) -> None:
    """Create the storage tables if they do not exist."""
    await db.executescript(SCHEMA_SQL)
    await db.commit()


def _row_to_device(row) -> Device:
    return Device(
        address=row[0],
        name=row[1],
        classified_type=row[2],
        mac_address=row[3],
        is_online=bool(row[4]),
        last_seen=datetime.fromisoformat(row[5]),
        response_time=timedelta(milliseconds=row[6]),
    )


class SqliteStorage(DeviceStorage):
    """Stores devices and settings in an SQLite database.

    Parameters
    ----------
    db:
        An open ``aiosqlite.Connection`` with the schema already applied.
    devices_table:
        Which device table to read and write; one of ``DEVICE_TABLES``.
    """

    def __init__(self, db: aiosqlite.Connection, devices_table: str = KNOWN_TABLE) -> None:
        if devices_table not in DEVICE_TABLES:
            raise ValueError(f"Unknown device table: {devices_table!r}")
        self._db = db
        self._table = devices_table

    async def load_devices(self) -> list[Device]:
        try:
            cursor = await self._db.execute(
                "SELECT address, name, classified_type, mac_address, is_online, "
                f"last_seen, response_time_ms FROM {self._table} ORDER BY rowid"
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error:
            logger.exception("Error loading persisted devices from %s", self._table)
            return []

        devices: list[Device] = []
        for row in rows:
            try:
                devices.append(_row_to_device(row))
            except ValueError:
                logger.warning("Skipping unreadable device row for %s", row[0])
        logger.info("Loaded %d persisted devices from %s", len(devices), self._table)
        return devices

    async def save_devices(self, devices: list[Device]) -> None:
        rows = [
            (
                d.address,
                d.name,
                d.classified_type,
                d.mac_address,
                int(d.is_online),
                d.last_seen.isoformat(),
                d.response_time_ms,
            )
            for d in devices
        ]
        try:
            await self._db.execute(f"DELETE FROM {self._table}")
            await self._db.executemany(
                f"INSERT INTO {self._table} (address, name, classified_type, mac_address, "
                "is_online, last_seen, response_time_ms) VALUES (?, ?, ?, ?, ?, ?, ?)",
                rows,
            )
            await self._db.commit()
        except aiosqlite.Error:
            logger.exception("Error saving persisted devices to %s", self._table)
            await self._db.rollback()
            return
        logger.debug("Saved %d devices to %s", len(rows), self._table)

    async def load_settings(self) -> dict[str, str]:
        try:
            cursor = await self._db.execute("SELECT key, value FROM settings")
            rows = await cursor.fetchall()
        except aiosqlite.Error:
            logger.exception("Error loading app settings")
            return {}
        return {row[0]: row[1] for row in rows}

    async def save_settings(self, settings: dict[str, str]) -> None:
        try:
            await self._db.execute("DELETE FROM settings")
            await self._db.executemany(
                "INSERT INTO settings (key, value) VALUES (?, ?)",
                list(settings.items()),
            )
            await self._db.commit()
        except aiosqlite.Error:
            logger.exception("Error saving app settings")
            await self._db.rollback()
            return
        logger.debug("Saved %d app settings", len(settings))
