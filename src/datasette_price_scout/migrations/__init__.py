"""
Schema migrations for the price-scout database.

Numbered SQL files in this directory (0001_catalog.sql, ...) are applied
once each, in version order, over the same ScoutDatabase connections the
stores use. Each file runs in its own transaction together with its
schema_migrations row, so a broken file leaves no partial schema behind.
"""

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path

from price_scout.models import ScoutDatabase, format_ts, utc_now

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent

SCHEMA_MIGRATIONS = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    applied_ts TEXT NOT NULL
)
"""


@dataclass(frozen=True)
class Migration:
    """One numbered SQL file."""

    version: int
    path: Path

    @property
    def name(self) -> str:
        return self.path.stem

    @classmethod
    def from_path(cls, path: Path) -> "Migration | None":
        """Parse NNNN_description.sql; anything else is not a migration."""
        prefix, sep, _ = path.stem.partition("_")
        if not sep or not prefix.isdigit():
            return None
        return cls(version=int(prefix), path=path)


def discover(directory: Path = MIGRATIONS_DIR) -> list[Migration]:
    found = (Migration.from_path(path) for path in directory.glob("*.sql"))
    return sorted((m for m in found if m), key=lambda m: m.version)


def applied_versions(db: ScoutDatabase) -> dict[int, str]:
    """version -> applied_ts for every migration already run."""
    conn = db.connect()
    try:
        conn.execute(SCHEMA_MIGRATIONS)
        rows = conn.execute(
            "SELECT version, applied_ts FROM schema_migrations ORDER BY version"
        ).fetchall()
        return {row["version"]: row["applied_ts"] for row in rows}
    finally:
        conn.close()


def _apply(conn: sqlite3.Connection, migration: Migration) -> None:
    try:
        conn.executescript(f"BEGIN;\n{migration.path.read_text()}\n")
        conn.execute(
            "INSERT INTO schema_migrations (version, name, applied_ts) VALUES (?, ?, ?)",
            (migration.version, migration.name, format_ts(utc_now())),
        )
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise


def run_migrations(db_path: Path, directory: Path = MIGRATIONS_DIR) -> list[int]:
    """
    Bring the database at db_path up to the latest schema.

    Creates the file if needed and is safe to call on every startup.
    Returns the versions applied by this call.
    """
    db = ScoutDatabase(db_path)
    done = applied_versions(db)
    pending = [m for m in discover(directory) if m.version not in done]
    if not pending:
        logger.debug(f"Schema at {db.db_path} is current")
        return []

    conn = db.connect()
    try:
        for migration in pending:
            logger.info(f"Applying migration {migration.version}: {migration.name}")
            _apply(conn, migration)
    finally:
        conn.close()

    return [m.version for m in pending]
