"""Punto de entrada ``python -m cgm_tool``."""

from __future__ import annotations

from cgm_tool.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
