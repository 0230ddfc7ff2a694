"""Tests for the query matcher."""

from unittest.mock import MagicMock

from price_scout.matcher import QueryMatcher


class TestQueryMatcher:
    def test_blank_query_matches_nothing(self):
        store = MagicMock()
        matcher = QueryMatcher(store)

        assert matcher.match("   ") == []
        store.query.assert_not_called()

    def test_normalizes_and_delegates(self):
        store = MagicMock()
        store.query.return_value = []
        matcher = QueryMatcher(store, threshold=0.4, default_limit=7)

        matcher.match("  Dolo   650 ")

        store.query.assert_called_once_with("Dolo 650", limit=7, threshold=0.4)

    def test_explicit_limit(self, store, add_entry):
        for name in ("Paracetamol 500", "Paracetamol 650", "Paracetamol 125"):
            add_entry(name)
        matcher = QueryMatcher(store)

        assert len(matcher.match("paracetamol", limit=2)) == 2
        assert len(matcher.match("paracetamol")) == 3

    def test_fuzzy_match_with_typo(self, store, add_entry):
        add_entry("Paracetamol")
        matcher = QueryMatcher(store)

        results = matcher.match("paracetmol")
        assert [e.name for e in results] == ["Paracetamol"]
