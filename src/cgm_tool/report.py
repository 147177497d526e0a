"""Tablas pandas para el informe médico: lecturas, resumen diario y métricas."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, tzinfo

import pandas as pd
from dateutil import tz

from cgm_tool.metrics import GMI_WINDOW_HOURS, average_glucose, gmi, time_in_range
from cgm_tool.model import Reading, Settings

READING_COLUMNS = ["datetime", "date", "glucose_mg_dl", "trend", "trend_arrow"]
DAILY_COLUMNS = [
    "date",
    "glucose_count",
    "glucose_min",
    "glucose_max",
    "glucose_avg",
]


def readings_to_frame(
    readings: Sequence[Reading], local_tz: tzinfo | None = None
) -> pd.DataFrame:
    """Convert readings to a chronological DataFrame in local time.

    Args:
        readings: Readings in any order.
        local_tz: Zone used for ``datetime``/``date``; the machine's zone by
            default.

    Returns:
        One row per reading with the columns in ``READING_COLUMNS``.
    """
    zone = local_tz or tz.tzlocal()
    rows = [
        {
            "datetime": r.timestamp.astimezone(zone),
            "date": r.timestamp.astimezone(zone).date(),
            "glucose_mg_dl": r.value,
            "trend": r.trend.label,
            "trend_arrow": r.trend.arrow,
        }
        for r in readings
    ]
    df = pd.DataFrame(rows, columns=READING_COLUMNS)
    if df.empty:
        return df
    return df.sort_values("datetime").reset_index(drop=True)


def daily_glucose_summary(readings_frame: pd.DataFrame) -> pd.DataFrame:
    """Aggregate glucose by day (count/min/max/avg)."""
    if readings_frame.empty:
        return pd.DataFrame(columns=DAILY_COLUMNS)
    g = readings_frame.groupby("date", as_index=False).agg(
        glucose_count=("glucose_mg_dl", "count"),
        glucose_min=("glucose_mg_dl", "min"),
        glucose_max=("glucose_mg_dl", "max"),
        glucose_avg=("glucose_mg_dl", "mean"),
    )
    g["glucose_avg"] = g["glucose_avg"].round(1)
    return g.sort_values("date").reset_index(drop=True)


def summary_frame(
    readings: Sequence[Reading],
    settings: Settings,
    now: datetime,
    hours: float,
) -> pd.DataFrame:
    """Two-column table (metric, value) with TIR, average and GMI of a period."""
    tir = time_in_range(
        readings,
        now,
        target_min=settings.target_range_min,
        target_max=settings.target_range_max,
        hours=hours,
    )
    average = average_glucose(readings, now, hours)
    gmi_value = gmi(readings, now)
    target = f"{settings.target_range_min}-{settings.target_range_max} mg/dL"
    rows = [
        ("Período (horas)", hours),
        ("Lecturas", tir.readings),
        (f"Tiempo en rango {target} (%)", tir.in_range),
        ("Sobre rango (%)", tir.above),
        ("Bajo rango (%)", tir.below),
        ("Glucosa promedio (mg/dL)", average if average is not None else "-"),
        (
            f"GMI {GMI_WINDOW_HOURS // 24} días (%)",
            gmi_value if gmi_value is not None else "-",
        ),
    ]
    return pd.DataFrame(rows, columns=["Métrica", "Valor"])
