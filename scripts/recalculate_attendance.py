"""Recompute stored attendance statuses, e.g. after the grace period setting changed.

Usage: python scripts/recalculate_attendance.py 2026-10-01 2026-10-31
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from src.attendance_engine.attendance_engine.common.civil_clock import parse_date
from src.attendance_engine.attendance_engine.main import create_container


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("start_date")
    parser.add_argument("end_date")
    args = parser.parse_args()

    container = create_container()
    changed = container.attendance_service.recalculate_range(parse_date(args.start_date), parse_date(args.end_date))
    print(f"OK: Recalculated {args.start_date}..{args.end_date} (changed={changed})")


if __name__ == "__main__":
    main()
