"""Evaluación de alertas por umbral y tendencia, y señal háptica asociada."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from enum import Enum
from typing import Protocol

from cgm_tool.model import Alert, AlertType, Reading, Settings, Trend, new_id

logger = logging.getLogger(__name__)

MAX_ALERTS = 50

_TREND_ALERTS: dict[Trend, AlertType] = {
    Trend.RISING_FAST: AlertType.RISING_FAST,
    Trend.FALLING_FAST: AlertType.FALLING_FAST,
}


class HapticPattern(Enum):
    """Physical feedback cue for an alert."""

    ERROR = "error"
    WARNING = "warning"

    @property
    def vibration_ms(self) -> tuple[int, ...]:
        """Extra vibration pattern (pause/buzz in ms) played with the cue."""
        if self is HapticPattern.ERROR:
            return (0, 500, 200, 500)
        return ()


def evaluate_alerts(reading: Reading, settings: Settings) -> list[AlertType]:
    """Decide which alert conditions a reading fires.

    The threshold check is exclusive (urgent low, then low, then high); the
    trend check is independent and may fire alongside it.

    Args:
        reading: Reading to inspect.
        settings: Thresholds and the global alert switch.

    Returns:
        Fired alert types, threshold first. Empty when alerts are disabled.
    """
    if not settings.alerts_enabled:
        return []

    fired: list[AlertType] = []
    value = reading.value
    if value <= settings.urgent_low_threshold:
        fired.append(AlertType.URGENT_LOW)
    elif value < settings.low_threshold:
        fired.append(AlertType.LOW)
    elif value > settings.high_threshold:
        fired.append(AlertType.HIGH)

    trend_alert = _TREND_ALERTS.get(reading.trend)
    if trend_alert is not None:
        fired.append(trend_alert)
    return fired


def build_alert(alert_type: AlertType, value: int, timestamp: datetime) -> Alert:
    """Create a fresh, unacknowledged alert record."""
    return Alert(id=new_id("alert"), type=alert_type, value=value, timestamp=timestamp)


def record_alerts(
    existing: Sequence[Alert], new_alerts: Iterable[Alert], cap: int = MAX_ALERTS
) -> list[Alert]:
    """Prepend alerts one by one in firing order and keep the newest ``cap``."""
    out = list(existing)
    for alert in new_alerts:
        out.insert(0, alert)
    return out[:cap]


def haptic_for(alert_type: AlertType, haptic_enabled: bool) -> HapticPattern | None:
    """Cue for an alert type, or None when no physical feedback applies."""
    if not haptic_enabled:
        return None
    if alert_type is AlertType.URGENT_LOW:
        return HapticPattern.ERROR
    if alert_type in (AlertType.HIGH, AlertType.LOW):
        return HapticPattern.WARNING
    return None


class Notifier(Protocol):
    """Receives every recorded alert together with its haptic cue."""

    def notify(self, alert: Alert, haptic: HapticPattern | None) -> None: ...


class LoggingNotifier:
    """Notifier that only writes the alert and cue to the log."""

    def notify(self, alert: Alert, haptic: HapticPattern | None) -> None:
        cue = haptic.value if haptic is not None else "none"
        logger.warning(
            "CGM alert %s at %s mg/dL (haptic: %s)", alert.type.value, alert.value, cue
        )
