"""Persistencia SQLite para configuración, dispositivo y lecturas CGM."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any

from cgm_tool.model import Device, DeviceType, Reading, Settings, Trend

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS app_config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS readings (
    id TEXT PRIMARY KEY,
    value INTEGER NOT NULL,
    timestamp TEXT NOT NULL,
    trend TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_readings_timestamp
ON readings(timestamp);
"""

_DEVICE_KEY = "device"


class SQLiteStore:
    """Repositorio SQLite del monitor."""

    def __init__(self, db_path: Path) -> None:
        """Create store and ensure schema exists."""
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()

    def load_readings(self, limit: int | None = None) -> list[Reading]:
        """Devuelve lecturas guardadas, la más reciente primero."""
        sql = "SELECT id, value, timestamp, trend FROM readings"
        sql += " ORDER BY timestamp DESC, rowid DESC"
        params: tuple[Any, ...] = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        out: list[Reading] = []
        for row in rows:
            reading = _row_to_reading(row)
            if reading is not None:
                out.append(reading)
        return out

    def add_reading(self, reading: Reading, keep: int | None = None) -> None:
        """Inserta una lectura y conserva solo las ``keep`` más recientes."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO readings(id, value, timestamp, trend)
                VALUES (?, ?, ?, ?)
                """,
                (
                    reading.id,
                    reading.value,
                    reading.timestamp.isoformat(),
                    reading.trend.value,
                ),
            )
            if keep is not None:
                conn.execute(
                    """
                    DELETE FROM readings
                    WHERE id NOT IN (
                        SELECT id FROM readings
                        ORDER BY timestamp DESC, rowid DESC
                        LIMIT ?
                    )
                    """,
                    (keep,),
                )
            conn.commit()

    def load_settings(self) -> Settings:
        """Devuelve configuración guardada mezclada sobre los defaults."""
        defaults = asdict(Settings())
        values = self._config_values(defaults.keys())
        merged: dict[str, Any] = dict(defaults)
        for key, raw in values.items():
            parsed = _parse_json(raw)
            if isinstance(parsed, type(defaults[key])):
                merged[key] = parsed
        return Settings(**merged)

    def save_settings(self, settings: Settings) -> None:
        """Guarda la configuración en tabla key/value."""
        payload = {key: json.dumps(value) for key, value in asdict(settings).items()}
        self._put_config(payload)

    def load_device(self) -> Device | None:
        """Devuelve el dispositivo guardado o None."""
        values = self._config_values([_DEVICE_KEY])
        raw = values.get(_DEVICE_KEY)
        if raw is None:
            return None
        return _device_from_payload(_parse_json(raw))

    def save_device(self, device: Device | None) -> None:
        """Guarda el dispositivo activo; None lo elimina."""
        if device is None:
            with self._connect() as conn:
                conn.execute("DELETE FROM app_config WHERE key = ?", (_DEVICE_KEY,))
                conn.commit()
            return
        payload = {
            "id": device.id,
            "name": device.name,
            "type": device.type.value,
            "last_sync": device.last_sync.isoformat() if device.last_sync else None,
        }
        self._put_config({_DEVICE_KEY: json.dumps(payload)})

    def _config_values(self, keys: Any) -> dict[str, str]:
        wanted = list(keys)
        if not wanted:
            return {}
        placeholders = ",".join("?" for _ in wanted)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT key, value FROM app_config WHERE key IN ({placeholders})",
                tuple(wanted),
            ).fetchall()
        return {row["key"]: row["value"] for row in rows}

    def _put_config(self, payload: dict[str, str]) -> None:
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO app_config(key, value) VALUES(?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                payload.items(),
            )
            conn.commit()


def _parse_json(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


def _parse_datetime(raw: Any) -> datetime | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def _row_to_reading(row: sqlite3.Row) -> Reading | None:
    """Convierte una fila en Reading; None si la fila está corrupta."""
    timestamp = _parse_datetime(row["timestamp"])
    if timestamp is None:
        return None
    try:
        trend = Trend(row["trend"])
    except ValueError:
        trend = Trend.STABLE
    return Reading(
        id=str(row["id"]),
        value=int(row["value"]),
        timestamp=timestamp,
        trend=trend,
    )


def _device_from_payload(payload: Any) -> Device | None:
    if not isinstance(payload, dict):
        return None
    try:
        device_type = DeviceType(payload.get("type"))
    except ValueError:
        return None
    return Device(
        id=str(payload.get("id") or ""),
        name=str(payload.get("name") or ""),
        type=device_type,
        last_sync=_parse_datetime(payload.get("last_sync")),
    )
