#!/usr/bin/env python3
"""Purge finished enrichment jobs past the retention window."""

import argparse
from pathlib import Path

from price_scout.config import ScoutConfig
from price_scout.run import purge_expired
from price_scout.service import ScoutApp


def main() -> None:
    parser = argparse.ArgumentParser(description="Purge old enrichment jobs")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("datasette.yaml"),
        help="Path to config file (default: datasette.yaml)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        help="Override database path from config",
    )
    parser.add_argument(
        "--days",
        type=int,
        help="Delete finished jobs older than this many days (default: jobs.retention_days)",
    )
    args = parser.parse_args()

    config = ScoutConfig.from_yaml(args.config)
    if args.db:
        config.db_path = args.db

    days = args.days if args.days is not None else config.jobs.retention_days
    deleted = purge_expired(ScoutApp(config), days)
    print(f"Deleted {deleted} job(s) older than {days} days")


if __name__ == "__main__":
    main()
