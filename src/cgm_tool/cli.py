"""CLI: simula un monitor CGM y exporta lecturas a Excel para el médico."""

from __future__ import annotations

import argparse
import asyncio
import random
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from dateutil import tz

from cgm_tool.errors import CGMError
from cgm_tool.excel_writer import ExcelLayout, write_doctor_xlsx
from cgm_tool.log import setup_logging
from cgm_tool.metrics import readings_for_period
from cgm_tool.model import DeviceType, Reading
from cgm_tool.report import daily_glucose_summary, readings_to_frame, summary_frame
from cgm_tool.session import CGMSession, SessionConfig
from cgm_tool.simulation import utc_now
from cgm_tool.storage import SQLiteStore

_DEFAULT_DB = Path.home() / ".cgm_tool" / "cgm.sqlite3"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argparse namespace.
    """
    parser = argparse.ArgumentParser(
        prog="cgm-tool",
        description="Monitor CGM simulado: alertas, métricas y exportación.",
    )
    parser.add_argument("--db", default=str(_DEFAULT_DB), help="Base SQLite.")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    parser.add_argument("-q", "--quiet", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    sim = sub.add_parser("simulate", help="Genera lecturas con un monitor simulado.")
    sim.add_argument("--ticks", type=int, default=12, help="Lecturas a generar.")
    sim.add_argument(
        "--interval",
        type=float,
        default=0.0,
        help="Segundos entre lecturas (default: 0, sin espera).",
    )
    sim.add_argument("--seed", type=int, default=None, help="Semilla aleatoria.")

    exp = sub.add_parser("export", help="Exporta lecturas guardadas a Excel.")
    exp.add_argument(
        "--hours", type=float, default=24 * 14, help="Ventana en horas (default 336)."
    )
    exp.add_argument("--out", default=None, help="Archivo .xlsx de salida.")
    return parser.parse_args(argv)


async def _simulate(ns: argparse.Namespace) -> CGMSession:
    store = SQLiteStore(Path(ns.db).expanduser())
    session = CGMSession(
        config=SessionConfig(interval_seconds=ns.interval, pairing_delay=0),
        store=store,
        rng=random.Random(ns.seed),
    )
    done = asyncio.Event()
    produced: list[Reading] = []

    def _on_reading(reading: Reading) -> None:
        produced.append(reading)
        if len(produced) >= ns.ticks:
            session.stop_simulation()
            done.set()

    session.add_listener(_on_reading)
    await session.hydrate()
    if ns.ticks <= 0:
        session.close()
        return session
    await session.connect_device(DeviceType.SIMULATED)
    try:
        await done.wait()
    finally:
        session.close()
    return session


def _print_summary(session: CGMSession) -> None:
    current = session.current_reading
    tir = session.get_time_in_range()
    average = session.get_average_glucose()
    gmi = session.get_gmi()
    if current is not None:
        local = current.timestamp.astimezone(tz.tzlocal()).strftime("%H:%M")
        print(f"Actual: {current.value} mg/dL {current.trend.arrow} ({local})")
    print(
        f"TIR 24h: {tir.in_range}% en rango, {tir.above}% sobre, "
        f"{tir.below}% bajo ({tir.readings} lecturas)"
    )
    print(f"Promedio 24h: {average if average is not None else '-'} mg/dL")
    print(f"GMI 14d: {gmi if gmi is not None else '-'}%")
    for alert in session.alerts[:5]:
        print(f"Alerta: {alert.type.value} ({alert.value} mg/dL)")


def _export(ns: argparse.Namespace) -> Path:
    store = SQLiteStore(Path(ns.db).expanduser())
    settings = store.load_settings()
    now = utc_now()
    readings = readings_for_period(store.load_readings(), now, ns.hours)
    frame = readings_to_frame(readings)
    if ns.out:
        out_path = Path(ns.out).expanduser()
    else:
        ts = datetime.now(tz=tz.tzlocal()).strftime("%Y-%m-%d_%H-%M-%S")
        out_path = Path.cwd() / "salidas" / f"cgm_informe_{ts}.xlsx"
    write_doctor_xlsx(
        frame,
        daily_glucose_summary(frame),
        summary_frame(readings, settings, now, ns.hours),
        out_path,
        ExcelLayout(),
    )
    return out_path


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI.

    Returns:
        Exit code (0 on success, 1 on a cgm_tool error).
    """
    ns = parse_args(argv)
    setup_logging(ns.verbose, ns.quiet)
    try:
        if ns.command == "simulate":
            session = asyncio.run(_simulate(ns))
            _print_summary(session)
        else:
            out_path = _export(ns)
            print(f"OK: Output: {out_path}")
    except CGMError as exc:
        print(f"Error: {exc}")
        return 1
    return 0
