"""Shared pytest fixtures for price-scout tests."""

from datetime import timedelta

import pytest
from datasette.app import Datasette

from datasette_price_scout.migrations import run_migrations
from price_scout.catalog import CatalogStore, EntryCandidate
from price_scout.jobs import JobLedger
from price_scout.models import ScoutDatabase, format_ts, utc_now


@pytest.fixture
def db_path(tmp_path):
    """Create a temporary database with full schema via migrations.

    Same migration system as production.
    """
    db_file = tmp_path / "test_price_scout.db"
    run_migrations(db_file)
    return db_file


@pytest.fixture
def db(db_path):
    return ScoutDatabase(db_path)


@pytest.fixture
def store(db):
    return CatalogStore(db)


@pytest.fixture
def ledger(db):
    return JobLedger(db)


@pytest.fixture
def add_entry(store):
    """Insert an entry with one quote; returns the entry_id."""

    def _add(
        name,
        composition=None,
        manufacturer=None,
        price=30.0,
        vendor="1mg",
        pack_size=None,
    ):
        entry_id = store.upsert_entry(
            EntryCandidate(
                name=name,
                composition=composition,
                manufacturer=manufacturer,
                pack_size=pack_size,
            )
        )
        if price is not None:
            store.upsert_quote(entry_id, vendor=vendor, price=price, url=f"https://example.com/{name}")
        return entry_id

    return _add


@pytest.fixture
def age_entry(db):
    """Backdate an entry's updated_ts by the given number of hours."""

    def _age(entry_id, hours):
        conn = db.connect()
        try:
            conn.execute(
                "UPDATE catalog_entries SET updated_ts = ? WHERE entry_id = ?",
                (format_ts(utc_now() - timedelta(hours=hours)), entry_id),
            )
            conn.commit()
        finally:
            conn.close()

    return _age


@pytest.fixture
def age_job(db):
    """Backdate a job's created_ts by the given number of minutes."""

    def _age(job_id, minutes):
        conn = db.connect()
        try:
            conn.execute(
                "UPDATE enrichment_jobs SET created_ts = ? WHERE job_id = ?",
                (format_ts(utc_now() - timedelta(minutes=minutes)), job_id),
            )
            conn.commit()
        finally:
            conn.close()

    return _age


@pytest.fixture
def datasette(db_path):
    """Create a Datasette instance with the plugin configured.

    Uses config= (not metadata=) for Datasette v1 compatibility.
    """
    return Datasette(
        [str(db_path)],
        config={
            "plugins": {
                "datasette-price-scout": {
                    "scout": {
                        "db_path": str(db_path),
                        "firecrawl": {
                            "api_key": "test_key",
                            "api_base": "http://fake-firecrawl/v2",
                        },
                    }
                }
            },
        },
    )
