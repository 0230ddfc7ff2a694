#!/usr/bin/env python3
"""Create or upgrade the price-scout database."""

import argparse
import logging
from pathlib import Path

from datasette_price_scout.migrations import applied_versions, run_migrations
from price_scout.models import ScoutDatabase


def init_db(db_path: Path) -> None:
    """Apply every pending migration and print the resulting schema state."""
    print(f"Initializing database: {db_path}")

    applied = run_migrations(db_path)
    print(f"Applied {len(applied)} migration(s).")

    db = ScoutDatabase(db_path)
    print("\nSchema versions:")
    for version, applied_ts in applied_versions(db).items():
        print(f"  v{version} applied at {applied_ts}")

    conn = db.connect()
    try:
        cursor = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        )
        tables = [row["name"] for row in cursor if not row["name"].startswith("sqlite_")]
        print(f"\nTables: {', '.join(tables)}")
    finally:
        conn.close()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="  %(message)s")

    parser = argparse.ArgumentParser(description="Initialize price-scout database")
    parser.add_argument(
        "--db",
        type=Path,
        default=Path("price_scout.db"),
        help="Path to the SQLite database file (default: price_scout.db)",
    )
    args = parser.parse_args()

    init_db(args.db)


if __name__ == "__main__":
    main()
