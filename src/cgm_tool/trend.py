"""Clasificación de tendencia a partir de las lecturas más recientes."""

from __future__ import annotations

from collections.abc import Sequence

from cgm_tool.model import Reading, Trend

_FAST_RATE = 3
_RATE = 1


def classify_trend(readings: Sequence[Reading]) -> Trend:
    """Classify the rate of change of a newest-first window.

    Only ``readings[0]`` and ``readings[2]`` are compared; the middle value is
    skipped to damp sensor noise.

    Args:
        readings: Readings ordered newest first.

    Returns:
        ``Trend.STABLE`` when fewer than three readings are available,
        otherwise the bucket for ``(newest - third) / 10``.
    """
    if len(readings) < 3:
        return Trend.STABLE

    rate_of_change = (readings[0].value - readings[2].value) / 10

    if rate_of_change > _FAST_RATE:
        return Trend.RISING_FAST
    if rate_of_change > _RATE:
        return Trend.RISING
    if rate_of_change < -_FAST_RATE:
        return Trend.FALLING_FAST
    if rate_of_change < -_RATE:
        return Trend.FALLING
    return Trend.STABLE
