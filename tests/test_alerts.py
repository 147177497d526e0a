from __future__ import annotations

from datetime import datetime

import pytest
from dateutil import tz

from cgm_tool.alerts import (
    HapticPattern,
    build_alert,
    evaluate_alerts,
    haptic_for,
    record_alerts,
)
from cgm_tool.model import AlertType, Reading, Settings, Trend

NOW = datetime(2026, 1, 10, 12, 0, tzinfo=tz.UTC)
SETTINGS = Settings(urgent_low_threshold=55, low_threshold=70, high_threshold=180)


def _reading(value: int, trend: Trend = Trend.STABLE) -> Reading:
    return Reading(id="r", value=value, timestamp=NOW, trend=trend)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (40, [AlertType.URGENT_LOW]),
        (55, [AlertType.URGENT_LOW]),
        (56, [AlertType.LOW]),
        (69, [AlertType.LOW]),
        (70, []),
        (120, []),
        (180, []),
        (181, [AlertType.HIGH]),
        (400, [AlertType.HIGH]),
    ],
)
def test_threshold_priority(value: int, expected: list[AlertType]) -> None:
    assert evaluate_alerts(_reading(value), SETTINGS) == expected


def test_trend_alerts_fire_alongside_thresholds() -> None:
    assert evaluate_alerts(_reading(120, Trend.RISING_FAST), SETTINGS) == [
        AlertType.RISING_FAST
    ]
    assert evaluate_alerts(_reading(50, Trend.FALLING_FAST), SETTINGS) == [
        AlertType.URGENT_LOW,
        AlertType.FALLING_FAST,
    ]
    assert evaluate_alerts(_reading(250, Trend.RISING_FAST), SETTINGS) == [
        AlertType.HIGH,
        AlertType.RISING_FAST,
    ]


def test_plain_rising_or_falling_does_not_alert() -> None:
    assert evaluate_alerts(_reading(120, Trend.RISING), SETTINGS) == []
    assert evaluate_alerts(_reading(120, Trend.FALLING), SETTINGS) == []


@pytest.mark.parametrize("value", [40, 55, 69, 120, 181, 400])
@pytest.mark.parametrize("trend", list(Trend))
def test_disabled_alerts_never_fire(value: int, trend: Trend) -> None:
    disabled = Settings(alerts_enabled=False)
    assert evaluate_alerts(_reading(value, trend), disabled) == []


def test_evaluation_follows_given_settings_only() -> None:
    reading = _reading(150)
    assert evaluate_alerts(reading, SETTINGS) == []
    assert evaluate_alerts(reading, Settings(high_threshold=140)) == [AlertType.HIGH]
    assert evaluate_alerts(reading, SETTINGS) == []


def test_record_alerts_prepends_in_firing_order_and_trims() -> None:
    old = build_alert(AlertType.HIGH, 200, NOW)
    first = build_alert(AlertType.URGENT_LOW, 50, NOW)
    second = build_alert(AlertType.FALLING_FAST, 50, NOW)

    out = record_alerts([old], [first, second])
    assert [a.id for a in out] == [second.id, first.id, old.id]

    trimmed = record_alerts(out, [build_alert(AlertType.LOW, 60, NOW)], cap=2)
    assert len(trimmed) == 2
    assert trimmed[1].id == second.id


def test_build_alert_is_unacknowledged() -> None:
    alert = build_alert(AlertType.LOW, 65, NOW)
    assert alert.acknowledged is False
    assert alert.id.startswith("alert_")
    assert alert.value == 65
    assert alert.timestamp == NOW


def test_haptic_patterns() -> None:
    assert haptic_for(AlertType.URGENT_LOW, True) is HapticPattern.ERROR
    assert haptic_for(AlertType.LOW, True) is HapticPattern.WARNING
    assert haptic_for(AlertType.HIGH, True) is HapticPattern.WARNING
    for other in (AlertType.RISING_FAST, AlertType.FALLING_FAST, AlertType.SIGNAL_LOSS):
        assert haptic_for(other, True) is None
    for any_type in AlertType:
        assert haptic_for(any_type, False) is None


def test_error_pattern_vibrates() -> None:
    assert HapticPattern.ERROR.vibration_ms == (0, 500, 200, 500)
    assert HapticPattern.WARNING.vibration_ms == ()
