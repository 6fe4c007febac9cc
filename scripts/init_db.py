#!/usr/bin/env python3
"""
Create the SQLite schema and print a day's statistics row.

Creates data/govverify.db (or DATABASE_PATH) if missing, ensures every table
exists, and prints the daily_statistics row for today or --date.

Run from project root:

    python scripts/init_db.py
    python scripts/init_db.py --date 2025-01-15
"""

import argparse
import sys
from datetime import date
from pathlib import Path

# Project root on path so "govverify" resolves
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from govverify.core.database import Database
from govverify.services.statistics import get_daily_statistics


def main() -> None:
    parser = argparse.ArgumentParser(description="Initialize the database and show daily statistics.")
    parser.add_argument("--db", default=None, help="Database path (defaults to DATABASE_PATH).")
    parser.add_argument("--date", default=None, help="Day to show, YYYY-MM-DD (defaults to today).")
    args = parser.parse_args()

    db = Database(args.db) if args.db else Database()
    db.init_db()
    print(f"Database ready: {db.path}")

    day = date.fromisoformat(args.date) if args.date else None
    stats = get_daily_statistics(db, day)
    if stats is None:
        print("No statistics recorded for this day yet.")
        return
    for key, value in stats.items():
        print(f"  {key}: {value}")


if __name__ == "__main__":
    main()
