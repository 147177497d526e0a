from __future__ import annotations

import random
from datetime import datetime, timedelta
from itertools import cycle

import pytest
from dateutil import tz

from cgm_tool.model import Reading, Trend
from cgm_tool.simulation import (
    MAX_GLUCOSE,
    MIN_GLUCOSE,
    generate_next_reading,
    next_value,
    round_half_up,
)

NOW = datetime(2026, 1, 10, 12, 0, tzinfo=tz.UTC)


class _ScriptedRandom:
    """Replays the given draws in order, then repeats them."""

    def __init__(self, *draws: float) -> None:
        self._draws = cycle(draws)

    def random(self) -> float:
        return next(self._draws)


def _reading(value: int, minutes_ago: int, rid: str) -> Reading:
    return Reading(
        id=rid,
        value=value,
        timestamp=NOW - timedelta(minutes=minutes_ago),
        trend=Trend.STABLE,
    )


def test_round_half_up() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert round_half_up(69.5) == 70
    assert round_half_up(-2.5) == -2
    assert round_half_up(2.49) == 2


def test_no_shock_at_baseline_keeps_value() -> None:
    assert next_value(100, _ScriptedRandom(0.5, 0.0, 0.0)) == 100


def test_mean_reversion_pulls_toward_baseline() -> None:
    assert next_value(200, _ScriptedRandom(0.5, 0.1, 0.1)) == 198
    assert next_value(50, _ScriptedRandom(0.5, 0.1, 0.1)) == 51


def test_meal_shock_adds_glucose() -> None:
    # noise 0, meal gate open, meal size 0.5 * 40, insulin gate closed
    assert next_value(100, _ScriptedRandom(0.5, 0.99, 0.5, 0.0)) == 120


def test_insulin_shock_lowers_glucose() -> None:
    # noise 0, meal gate closed, insulin gate open, insulin size 0.5 * 30
    assert next_value(100, _ScriptedRandom(0.5, 0.0, 0.96, 0.5)) == 85


def test_gate_needs_strictly_more_than_095() -> None:
    assert next_value(100, _ScriptedRandom(0.5, 0.95, 0.95)) == 100


def test_clamped_to_floor_and_ceiling() -> None:
    assert next_value(40, _ScriptedRandom(0.0, 0.0, 0.99, 0.99)) == MIN_GLUCOSE
    assert next_value(400, _ScriptedRandom(0.999, 0.99, 0.999, 0.0)) == MAX_GLUCOSE


@pytest.mark.parametrize("seed", range(20))
def test_values_always_integer_within_bounds(seed: int) -> None:
    rng = random.Random(seed)
    value = 100
    history: list[Reading] = []
    for _ in range(200):
        reading = generate_next_reading(value, history, rng=rng, clock=lambda: NOW)
        assert isinstance(reading.value, int)
        assert MIN_GLUCOSE <= reading.value <= MAX_GLUCOSE
        history.insert(0, reading)
        value = reading.value


def test_trend_uses_new_value_and_two_latest_readings() -> None:
    history = [_reading(100, 5, "a"), _reading(80, 10, "b"), _reading(400, 15, "c")]
    reading = generate_next_reading(
        100, history, rng=_ScriptedRandom(0.5, 0.99, 0.5, 0.0), clock=lambda: NOW
    )
    assert reading.value == 120
    # (120 - 80) / 10 = 4
    assert reading.trend is Trend.RISING_FAST


def test_short_history_gives_stable_trend() -> None:
    reading = generate_next_reading(
        100, [_reading(50, 5, "a")], rng=_ScriptedRandom(0.5, 0.0, 0.0), clock=lambda: NOW
    )
    assert reading.trend is Trend.STABLE


def test_reading_gets_fresh_id_and_clock_time() -> None:
    history = [_reading(100, 5, "a")]
    first = generate_next_reading(100, history, rng=random.Random(1), clock=lambda: NOW)
    second = generate_next_reading(100, history, rng=random.Random(1), clock=lambda: NOW)
    assert first.id != second.id
    assert first.id.startswith("cgm_")
    assert first.timestamp == NOW
    assert len(history) == 1
