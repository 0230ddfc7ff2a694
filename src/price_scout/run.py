"""
CLI runner for price-scout.

Usage:
    python -m price_scout.run [OPTIONS]

    # Run enrichment jobs left pending (e.g. after a restart), then exit
    python -m price_scout.run --once

    # Keep picking up pending jobs on an interval
    python -m price_scout.run --daemon

    # Run a specific job
    python -m price_scout.run --job-id abc123

    # Search, and wait for any enrichment it triggers
    python -m price_scout.run --search "Dolo 650"
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import timedelta
from pathlib import Path

from datasette_price_scout.migrations import run_migrations

from .config import ScoutConfig
from .models import utc_now
from .service import ScoutApp

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("price-scout")


async def run_once(app: ScoutApp) -> tuple[int, int]:
    """
    Run every pending job once.

    Returns (completed_count, failed_count).
    """
    jobs = app.ledger.get_pending(limit=app.config.jobs.max_jobs_per_run)
    logger.info(f"Found {len(jobs)} pending job(s)")

    completed = 0
    failed = 0
    for job in jobs:
        summary = await app.worker.run(job.job_id, job.query)
        if summary is None:
            failed += 1
        else:
            completed += 1

    return completed, failed


async def run_job(app: ScoutApp, job_id: str) -> bool:
    """Run a single pending job by ID."""
    job = app.ledger.get(job_id)
    if not job:
        logger.error(f"Job not found: {job_id}")
        return False

    logger.info(f"Running job {job_id} ({job.status}): {job.query!r}")
    return await app.worker.run(job.job_id, job.query) is not None


async def run_search(app: ScoutApp, query: str) -> dict:
    """Search, wait for any triggered enrichment, and report both."""
    response = await app.search(query)
    result = {"search": response.to_dict()}

    if response.job_id:
        await app.executor.drain()
        report = app.reader.read(response.job_id)
        result["job"] = report.to_dict() if report else None
        result["matches_after"] = [m.to_dict() for m in app.matcher.match(query)]

    return result


def purge_expired(app: ScoutApp, days: int | None = None) -> int:
    """Delete finished jobs older than the retention window (config default)."""
    if days is None:
        days = app.config.jobs.retention_days
    deleted = app.ledger.purge_before(utc_now() - timedelta(days=days))
    logger.info(f"Purged {deleted} finished job(s) older than {days} days")
    return deleted


async def run_daemon(app: ScoutApp) -> None:
    """Pick up pending jobs forever, sleeping between passes."""
    interval = app.config.poll_interval_seconds
    logger.info("Starting price-scout daemon")
    logger.info(f"Database: {app.config.db_path}")
    logger.info(f"Polling every {interval:g} seconds")

    while True:
        try:
            completed, failed = await run_once(app)
            logger.info(f"Cycle complete: {completed} completed, {failed} failed")
        except Exception as e:
            logger.exception(f"Cycle failed: {e}")

        await asyncio.sleep(interval)


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="price-scout: catalog search with background price enrichment",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run pending enrichment jobs once
    python -m price_scout.run --once

    # Run as daemon
    python -m price_scout.run --daemon

    # Run one job
    python -m price_scout.run --job-id 3f2a...

    # Search from the command line
    python -m price_scout.run --config datasette.yaml --search "Paracetamol"
        """,
    )

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
        "--once",
        action="store_true",
        help="Run pending jobs once and exit",
    )
    parser.add_argument(
        "--daemon",
        action="store_true",
        help="Run pending jobs on an interval",
    )
    parser.add_argument(
        "--job-id",
        type=str,
        help="Run a specific job by ID",
    )
    parser.add_argument(
        "--search",
        type=str,
        help="Search for a query and wait for any enrichment it starts",
    )
    parser.add_argument(
        "--purge",
        action="store_true",
        help="Delete finished jobs past jobs.retention_days and exit",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List pending jobs without running them",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = ScoutConfig.from_yaml(args.config)
    if args.db:
        config.db_path = args.db

    logger.info(f"Config loaded from {args.config}")
    logger.debug(f"Config: {json.dumps(config.to_dict())}")

    run_migrations(config.db_path)
    app = ScoutApp(config)

    if args.dry_run:
        jobs = app.ledger.get_pending(limit=config.jobs.max_jobs_per_run)
        logger.info(f"Dry run: would run {len(jobs)} job(s)")
        for job in jobs:
            logger.info(f"  - {job.job_id}: {job.query[:50]}")
        return 0

    if args.purge:
        purge_expired(app)
        return 0

    if args.search:
        result = asyncio.run(run_search(app, args.search))
        print(json.dumps(result, indent=2))
        return 0

    if args.job_id:
        success = asyncio.run(run_job(app, args.job_id))
        return 0 if success else 1

    if args.daemon:
        try:
            asyncio.run(run_daemon(app))
        except KeyboardInterrupt:
            logger.info("Daemon stopped by user")
        return 0

    if args.once:
        completed, failed = asyncio.run(run_once(app))
        return 0 if failed == 0 else 1

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
