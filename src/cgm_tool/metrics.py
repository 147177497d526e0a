"""Métricas sobre una ventana temporal de lecturas (TIR, promedio, GMI)."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta

from cgm_tool.model import Reading, TimeInRange
from cgm_tool.simulation import round_half_up

DEFAULT_WINDOW_HOURS = 24
GMI_WINDOW_HOURS = 24 * 14


def readings_for_period(
    readings: Sequence[Reading], now: datetime, hours: float
) -> list[Reading]:
    """Return readings no older than ``hours`` before ``now`` (boundary included).

    Order of ``readings`` is preserved.
    """
    cutoff = now - timedelta(hours=hours)
    return [r for r in readings if r.timestamp >= cutoff]


def time_in_range(
    readings: Sequence[Reading],
    now: datetime,
    *,
    target_min: int,
    target_max: int,
    hours: float = DEFAULT_WINDOW_HOURS,
) -> TimeInRange:
    """Compute in/above/below target percentages for the window.

    Each percentage is rounded on its own, so the three may not add up to 100.

    Args:
        readings: Reading history.
        now: End of the window.
        target_min: Lower bound of the target band (inclusive).
        target_max: Upper bound of the target band (inclusive).
        hours: Window length.

    Returns:
        All-zero result when the window is empty.
    """
    period = readings_for_period(readings, now, hours)
    total = len(period)
    if total == 0:
        return TimeInRange()

    in_range = sum(1 for r in period if target_min <= r.value <= target_max)
    above = sum(1 for r in period if r.value > target_max)
    below = sum(1 for r in period if r.value < target_min)

    return TimeInRange(
        in_range=round_half_up(in_range / total * 100),
        above=round_half_up(above / total * 100),
        below=round_half_up(below / total * 100),
        readings=total,
    )


def average_glucose(
    readings: Sequence[Reading], now: datetime, hours: float = DEFAULT_WINDOW_HOURS
) -> int | None:
    """Mean glucose of the window rounded to an integer; None without data."""
    period = readings_for_period(readings, now, hours)
    if not period:
        return None
    return round_half_up(sum(r.value for r in period) / len(period))


def gmi_from_average(average: float) -> float:
    """Glucose Management Indicator (%) for an average glucose, one decimal."""
    return round_half_up((3.31 + 0.02392 * average) * 10) / 10


def gmi(readings: Sequence[Reading], now: datetime) -> float | None:
    """GMI over the last 14 days; None when there are no readings."""
    average = average_glucose(readings, now, GMI_WINDOW_HOURS)
    if average is None:
        return None
    return gmi_from_average(average)
