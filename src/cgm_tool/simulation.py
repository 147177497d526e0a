"""Generador de lecturas sintéticas de glucosa."""

from __future__ import annotations

import math
import random
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Protocol

from dateutil import tz

from cgm_tool.model import Reading, Trend, new_id
from cgm_tool.trend import classify_trend

MIN_GLUCOSE = 40
MAX_GLUCOSE = 400
BASELINE_GLUCOSE = 100

_NOISE_SPAN = 15
_SHOCK_GATE = 0.95
_MEAL_MAX = 40
_INSULIN_MAX = 30
_REVERSION = 0.02


class RandomSource(Protocol):
    """Anything with a uniform ``random()`` in ``[0, 1)``; ``random.Random`` fits."""

    def random(self) -> float: ...


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware current time in UTC."""
    return datetime.now(tz=tz.UTC)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)


def next_value(last_value: float, rng: RandomSource) -> int:
    """Compute the next synthetic glucose value.

    Draws are consumed in a fixed order (noise, meal gate, meal size,
    insulin gate, insulin size) so a scripted source replays exactly.
    """
    noise = (rng.random() - 0.5) * _NOISE_SPAN
    meal = rng.random() * _MEAL_MAX if rng.random() > _SHOCK_GATE else 0.0
    insulin = -rng.random() * _INSULIN_MAX if rng.random() > _SHOCK_GATE else 0.0
    reversion = (BASELINE_GLUCOSE - last_value) * _REVERSION

    value = last_value + noise + meal + insulin + reversion
    value = max(MIN_GLUCOSE, min(MAX_GLUCOSE, value))
    return round_half_up(value)


def generate_next_reading(
    last_value: float,
    history: Sequence[Reading],
    *,
    rng: RandomSource | None = None,
    clock: Clock = utc_now,
) -> Reading:
    """Produce the next reading of a simulated monitor.

    Args:
        last_value: Value of the current reading (baseline when there is none).
        history: Existing readings, newest first. Not modified.
        rng: Uniform random source; a fresh ``random.Random`` when omitted.
        clock: Source of the reading timestamp.

    Returns:
        A new reading whose trend is classified over the new value plus the
        two most recent existing readings.
    """
    source = rng if rng is not None else random.Random()
    value = next_value(last_value, source)
    timestamp = clock()

    candidate = Reading(
        id="candidate", value=value, timestamp=timestamp, trend=Trend.STABLE
    )
    trend = classify_trend([candidate, *history[:2]])

    return Reading(id=new_id("cgm"), value=value, timestamp=timestamp, trend=trend)
