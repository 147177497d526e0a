"""Modelos tipados para lecturas CGM, dispositivo, alertas y configuración."""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from uuid import uuid4


class Trend(str, Enum):
    """Short-term direction of glucose movement."""

    RISING_FAST = "rising_fast"
    RISING = "rising"
    STABLE = "stable"
    FALLING = "falling"
    FALLING_FAST = "falling_fast"

    @property
    def arrow(self) -> str:
        return _TREND_ARROWS[self]

    @property
    def label(self) -> str:
        return _TREND_LABELS[self]


_TREND_ARROWS: dict[Trend, str] = {
    Trend.RISING_FAST: "↑↑",
    Trend.RISING: "↑",
    Trend.STABLE: "→",
    Trend.FALLING: "↓",
    Trend.FALLING_FAST: "↓↓",
}

_TREND_LABELS: dict[Trend, str] = {
    Trend.RISING_FAST: "Rising fast",
    Trend.RISING: "Rising",
    Trend.STABLE: "Stable",
    Trend.FALLING: "Falling",
    Trend.FALLING_FAST: "Falling fast",
}


class ConnectionStatus(str, Enum):
    """Estado de la conexión con el monitor."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SIGNAL_LOSS = "signal_loss"


class DeviceType(str, Enum):
    """Supported monitor families."""

    DEXCOM = "dexcom"
    LIBRE = "libre"
    MEDTRONIC = "medtronic"
    SIMULATED = "simulated"


DEVICE_NAMES: dict[DeviceType, str] = {
    DeviceType.DEXCOM: "Dexcom G7",
    DeviceType.LIBRE: "FreeStyle Libre 3",
    DeviceType.MEDTRONIC: "Medtronic Guardian",
    DeviceType.SIMULATED: "Demo CGM",
}


class AlertType(str, Enum):
    """Threshold and trend conditions that raise an alert."""

    URGENT_LOW = "urgent_low"
    LOW = "low"
    HIGH = "high"
    RISING_FAST = "rising_fast"
    FALLING_FAST = "falling_fast"
    SIGNAL_LOSS = "signal_loss"


def new_id(prefix: str) -> str:
    """Return a process-unique identifier such as ``cgm_3f2a...``."""
    return f"{prefix}_{uuid4().hex}"


@dataclass(frozen=True)
class Reading:
    """One glucose value produced by the monitor (mg/dL)."""

    id: str
    value: int
    timestamp: datetime
    trend: Trend


@dataclass(frozen=True)
class Device:
    """Monitor activo."""

    id: str
    name: str
    type: DeviceType
    last_sync: datetime | None = None


@dataclass(frozen=True)
class Alert:
    """A fired threshold or trend condition.

    ``acknowledged`` is the only field that changes over the alert's life;
    acknowledging produces a copy with the flag set.
    """

    id: str
    type: AlertType
    value: int
    timestamp: datetime
    acknowledged: bool = False


@dataclass(frozen=True)
class Settings:
    """Umbrales de alerta y rango objetivo (mg/dL)."""

    high_threshold: int = 180
    low_threshold: int = 70
    urgent_low_threshold: int = 55
    target_range_min: int = 70
    target_range_max: int = 180
    alerts_enabled: bool = True
    haptic_feedback: bool = True

    @classmethod
    def field_names(cls) -> set[str]:
        return {f.name for f in fields(cls)}

    def validate(self) -> list[str]:
        """Return the ordering problems of this configuration (empty if valid)."""
        problems: list[str] = []
        if not self.urgent_low_threshold < self.low_threshold:
            problems.append(
                f"urgent_low_threshold ({self.urgent_low_threshold}) must be below "
                f"low_threshold ({self.low_threshold})"
            )
        if not self.low_threshold < self.high_threshold:
            problems.append(
                f"low_threshold ({self.low_threshold}) must be below "
                f"high_threshold ({self.high_threshold})"
            )
        if not self.target_range_min <= self.target_range_max:
            problems.append(
                f"target_range_min ({self.target_range_min}) must not exceed "
                f"target_range_max ({self.target_range_max})"
            )
        return problems


@dataclass(frozen=True)
class TimeInRange:
    """Porcentajes redondeados de tiempo en/sobre/bajo rango."""

    in_range: int = 0
    above: int = 0
    below: int = 0
    readings: int = 0
