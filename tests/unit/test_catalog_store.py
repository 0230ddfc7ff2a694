"""Tests for the catalog store."""

import sqlite3

import pytest

from price_scout.catalog import EntryCandidate


def count_rows(db, table):
    conn = db.connect()
    try:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    finally:
        conn.close()


class TestUpsertEntry:
    def test_same_identity_same_entry(self, store, db):
        """Re-upserting (name, manufacturer) keeps one row and one id."""
        candidate = EntryCandidate(name="Dolo 650", composition="Paracetamol (650mg)", manufacturer="Micro Labs")
        first = store.upsert_entry(candidate)
        second = store.upsert_entry(candidate)

        assert first == second
        assert count_rows(db, "catalog_entries") == 1

    def test_unknown_manufacturer_is_still_one_identity(self, store, db):
        first = store.upsert_entry(EntryCandidate(name="Calpol 500"))
        second = store.upsert_entry(EntryCandidate(name="Calpol 500", manufacturer="  "))

        assert first == second
        assert count_rows(db, "catalog_entries") == 1
        assert store.get_entry(first).manufacturer is None

    def test_different_manufacturers_are_different_entries(self, store):
        a = store.upsert_entry(EntryCandidate(name="Paracetamol 500", manufacturer="Cipla"))
        b = store.upsert_entry(EntryCandidate(name="Paracetamol 500", manufacturer="Sun Pharma"))
        assert a != b

    def test_missing_fields_do_not_erase_known_ones(self, store):
        entry_id = store.upsert_entry(
            EntryCandidate(name="Dolo 650", composition="Paracetamol (650mg)", pack_size="strip of 15 tablets")
        )
        store.upsert_entry(EntryCandidate(name="Dolo 650"))

        entry = store.get_entry(entry_id)
        assert entry.composition == "Paracetamol (650mg)"
        assert entry.metadata == {"pack_size": "strip of 15 tablets"}

    def test_refresh_bumps_updated_ts(self, store, age_entry):
        entry_id = store.upsert_entry(EntryCandidate(name="Dolo 650"))
        age_entry(entry_id, hours=48)
        old = store.get_entry(entry_id).updated_ts

        store.upsert_entry(EntryCandidate(name="Dolo 650"))

        assert store.get_entry(entry_id).updated_ts > old


class TestUpsertQuote:
    def test_last_write_wins_per_vendor(self, store, db):
        entry_id = store.upsert_entry(EntryCandidate(name="Dolo 650"))
        store.upsert_quote(entry_id, vendor="1mg", price=30.0, url="https://www.1mg.com/a")
        store.upsert_quote(entry_id, vendor="1mg", price=28.5, url="https://www.1mg.com/b", in_stock=False)

        entry = store.get_entry(entry_id)
        assert count_rows(db, "price_quotes") == 1
        assert entry.quotes[0].price == 28.5
        assert entry.quotes[0].url == "https://www.1mg.com/b"
        assert entry.quotes[0].in_stock is False

    def test_one_quote_per_vendor_sorted_by_price(self, store):
        entry_id = store.upsert_entry(EntryCandidate(name="Dolo 650"))
        store.upsert_quote(entry_id, vendor="1mg", price=30.0, url=None)
        store.upsert_quote(entry_id, vendor="PharmEasy", price=27.0, url=None)

        quotes = store.get_entry(entry_id).quotes
        assert [q.vendor for q in quotes] == ["PharmEasy", "1mg"]

    def test_quote_needs_an_entry(self, store):
        with pytest.raises(sqlite3.IntegrityError):
            store.upsert_quote("missing", vendor="1mg", price=10.0, url=None)


class TestQuery:
    def test_matches_name_substring(self, store, add_entry):
        add_entry("Dolo 650 Tablet", composition="Paracetamol (650mg)")
        results = store.query("dolo")
        assert [e.name for e in results] == ["Dolo 650 Tablet"]

    def test_matches_composition(self, store, add_entry):
        add_entry("Calpol 500", composition="Paracetamol (500mg)")
        results = store.query("paracetamol")
        assert len(results) == 1
        assert results[0].quotes[0].price == 30.0

    def test_entry_without_quotes_is_returned(self, store, add_entry):
        add_entry("Crocin Advance", price=None)
        results = store.query("crocin")
        assert len(results) == 1
        assert results[0].quotes == []

    def test_unrelated_query(self, store, add_entry):
        add_entry("Crocin Advance")
        assert store.query("azithromycin") == []

    def test_best_match_first(self, store, add_entry):
        add_entry("Dolo 650 Tablet Strip Of 15")
        add_entry("Dolo 650")
        results = store.query("Dolo 650")
        assert results[0].name == "Dolo 650"
        assert results[0].score == 1.0

    def test_limit(self, store, add_entry):
        for i in range(5):
            add_entry(f"Paracetamol {i}00")
        assert len(store.query("paracetamol", limit=2)) == 2


class TestLookups:
    def test_get_entry_missing(self, store):
        assert store.get_entry("nope") is None

    def test_find_by_composition_excludes_self(self, store, add_entry):
        dolo = add_entry("Dolo 650", composition="Paracetamol (650mg)")
        calpol = add_entry("Calpol 650", composition="Paracetamol 650mg")
        add_entry("Azee 500", composition="Azithromycin (500mg)")

        results = store.find_by_composition("paracetamol", exclude_entry_id=dolo)
        assert [e.entry_id for e in results] == [calpol]
