"""Tests for the schema migration runner."""

import sqlite3
from pathlib import Path

import pytest

from datasette_price_scout.migrations import (
    Migration,
    applied_versions,
    discover,
    run_migrations,
)
from price_scout.models import ScoutDatabase


def table_names(db_path):
    conn = sqlite3.connect(db_path)
    try:
        return {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    finally:
        conn.close()


class TestDiscover:
    def test_bundled_files_in_order(self):
        versions = [m.version for m in discover()]
        assert versions == sorted(versions)
        assert versions[:2] == [1, 2]

    def test_from_path(self):
        migration = Migration.from_path(Path("0003_add_index.sql"))
        assert migration.version == 3
        assert migration.name == "0003_add_index"

    @pytest.mark.parametrize("name", ["notes.sql", "draft_catalog.sql", "0004.sql"])
    def test_ignores_unnumbered_files(self, name):
        assert Migration.from_path(Path(name)) is None


class TestRunMigrations:
    def test_fresh_database(self, tmp_path):
        db_file = tmp_path / "fresh.db"

        assert run_migrations(db_file) == [1, 2]
        assert list(applied_versions(ScoutDatabase(db_file))) == [1, 2]
        assert {"catalog_entries", "price_quotes", "enrichment_jobs", "schema_migrations"} <= table_names(db_file)

    def test_idempotent(self, db_path):
        """Second run applies nothing."""
        assert run_migrations(db_path) == []

    def test_only_new_files_applied(self, tmp_path):
        migrations = tmp_path / "migrations"
        migrations.mkdir()
        (migrations / "0001_first.sql").write_text("CREATE TABLE first (x TEXT);")
        db_file = tmp_path / "grow.db"
        assert run_migrations(db_file, directory=migrations) == [1]

        (migrations / "0002_second.sql").write_text("CREATE TABLE second (y TEXT);")

        assert run_migrations(db_file, directory=migrations) == [2]
        assert {"first", "second"} <= table_names(db_file)

    def test_broken_migration_leaves_no_partial_schema(self, tmp_path):
        migrations = tmp_path / "migrations"
        migrations.mkdir()
        (migrations / "0001_ok.sql").write_text("CREATE TABLE ok (x TEXT);")
        (migrations / "0002_broken.sql").write_text(
            "CREATE TABLE half_done (y TEXT);\nINSERT INTO missing_table VALUES (1);"
        )
        db_file = tmp_path / "broken.db"

        with pytest.raises(sqlite3.OperationalError):
            run_migrations(db_file, directory=migrations)

        assert list(applied_versions(ScoutDatabase(db_file))) == [1]
        assert "half_done" not in table_names(db_file)


class TestSchema:
    def test_entry_natural_key_is_unique(self, db_path):
        conn = sqlite3.connect(db_path)
        try:
            conn.execute(
                "INSERT INTO catalog_entries (entry_id, name, manufacturer, created_ts, updated_ts) "
                "VALUES ('a', 'Dolo 650', '', 'x', 'x')"
            )
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute(
                    "INSERT INTO catalog_entries (entry_id, name, manufacturer, created_ts, updated_ts) "
                    "VALUES ('b', 'Dolo 650', '', 'x', 'x')"
                )
        finally:
            conn.close()

    def test_job_status_is_checked(self, db_path):
        conn = sqlite3.connect(db_path)
        try:
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute(
                    "INSERT INTO enrichment_jobs (job_id, query, status, created_ts, updated_ts) "
                    "VALUES ('j', 'q', 'running', 'x', 'x')"
                )
        finally:
            conn.close()
