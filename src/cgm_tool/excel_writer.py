"""Generación de Excel formateado con lecturas CGM para entrega médica."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, Side

_DIA_SEMANA: tuple[str, ...] = ("lun", "mar", "mie", "jue", "vie", "sab", "dom")

_THIN = Side(style="thin")
_BORDER = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)
_CENTER = Alignment(horizontal="center", vertical="center", wrap_text=True)
_ROW_HEIGHT = 15


@dataclass(frozen=True)
class _SheetStyle:
    """Cabeceras, anchos y formatos numéricos de una hoja."""

    headers: Mapping[str, str] = field(default_factory=dict)
    widths: Mapping[str, int] = field(default_factory=dict)
    formats: Mapping[str, str] = field(default_factory=dict)


_READINGS_STYLE = _SheetStyle(
    headers={
        "weekday": "Día",
        "datetime": "Fecha / Hora",
        "glucose_mg_dl": "Glucosa (mg/dL)",
        "trend": "Tendencia",
        "trend_arrow": "↕",
    },
    widths={
        "Día": 6,
        "Fecha / Hora": 18,
        "Glucosa (mg/dL)": 14,
        "Tendencia": 14,
        "↕": 5,
    },
    formats={"Fecha / Hora": "dd/mm/yyyy hh:mm", "Glucosa (mg/dL)": "0"},
)

_DAILY_STYLE = _SheetStyle(
    headers={
        "date": "Fecha",
        "glucose_count": "Lecturas",
        "glucose_min": "Mínimo",
        "glucose_max": "Máximo",
        "glucose_avg": "Promedio",
    },
    widths={"Fecha": 12, "Lecturas": 10, "Mínimo": 10, "Máximo": 10, "Promedio": 10},
    formats={
        "Fecha": "dd/mm/yyyy",
        "Lecturas": "0",
        "Mínimo": "0",
        "Máximo": "0",
        "Promedio": "0.0",
    },
)

# las etiquetas ya vienen en castellano desde report.summary_frame
_SUMMARY_STYLE = _SheetStyle(widths={"Métrica": 34, "Valor": 12})


@dataclass(frozen=True)
class ExcelLayout:
    """Layout/formatting configuration for the doctor workbook."""

    readings_sheet: str = "Lecturas CGM"
    daily_sheet: str = "Resumen diario"
    summary_sheet: str = "Métricas"


def _weekday_label(i: object) -> str:
    """Convierte índice 0-6 (lunes-domingo) a etiqueta de 3 letras."""
    try:
        if i is None or (isinstance(i, float) and pd.isna(i)):
            return ""
        if isinstance(i, int | float):
            idx = int(i)
            return _DIA_SEMANA[idx] if 0 <= idx < 7 else ""
        return ""
    except (ValueError, TypeError):
        return ""


def _naive(value: object) -> object:
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value


def _prepare_readings(readings_df: pd.DataFrame) -> pd.DataFrame:
    """Añade Día, quita timezone de datetime y elimina la columna date."""
    export_df = readings_df.copy()
    if export_df.empty:
        return export_df.drop(columns=["date"], errors="ignore")
    # Excel no admite timezone: se conserva la hora local de cada lectura
    stamps = pd.to_datetime(export_df["datetime"].map(_naive), errors="coerce")
    export_df["datetime"] = stamps
    export_df.insert(0, "weekday", stamps.dt.weekday.map(_weekday_label))
    return export_df.drop(columns=["date"], errors="ignore")


def write_doctor_xlsx(
    readings_df: pd.DataFrame,
    daily_df: pd.DataFrame,
    summary_df: pd.DataFrame,
    out_path: Path,
    layout: ExcelLayout,
) -> None:
    """Write a formatted workbook suitable for printing.

    Args:
        readings_df: Output of ``report.readings_to_frame``.
        daily_df: Output of ``report.daily_glucose_summary``.
        summary_df: Output of ``report.summary_frame``.
        out_path: Output path for the XLSX file.
        layout: Sheet names.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)

    sheets = [
        (layout.summary_sheet, summary_df, _SUMMARY_STYLE),
        (layout.readings_sheet, _prepare_readings(readings_df), _READINGS_STYLE),
        (layout.daily_sheet, daily_df, _DAILY_STYLE),
    ]
    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        for name, frame, style in sheets:
            frame.rename(columns=dict(style.headers)).to_excel(
                writer, index=False, sheet_name=name
            )
            _format_sheet(writer.book[name], style)


def _format_sheet(ws: Any, style: _SheetStyle | None = None) -> None:
    """Apply borders, widths and number formats to a worksheet.

    Args:
        ws: openpyxl worksheet whose first row holds the headers.
        style: Widths and number formats keyed by header text.
    """
    style = style or _SheetStyle()
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in ws.iter_rows():
        for cell in row:
            cell.alignment = _CENTER
            cell.border = _BORDER
    for row_idx in range(2, ws.max_row + 1):
        ws.row_dimensions[row_idx].height = _ROW_HEIGHT

    letters = {str(cell.value): cell.column_letter for cell in ws[1]}
    for header, width in style.widths.items():
        if header in letters:
            ws.column_dimensions[letters[header]].width = width
    for header, fmt in style.formats.items():
        if header not in letters:
            continue
        for cell in ws[letters[header]][1:]:
            cell.number_format = fmt
