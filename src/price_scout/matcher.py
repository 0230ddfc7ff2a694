"""
Query matcher: resolve free text to ranked catalog entries with quotes.
"""

import logging

from .catalog import CatalogStore
from .models import CatalogEntry
from .similarity import DEFAULT_THRESHOLD, normalize_query

logger = logging.getLogger(__name__)


class QueryMatcher:
    """Fuzzy catalog lookup for a single query string."""

    def __init__(
        self,
        store: CatalogStore,
        threshold: float = DEFAULT_THRESHOLD,
        default_limit: int = 10,
    ):
        self.store = store
        self.threshold = threshold
        self.default_limit = default_limit

    def match(self, query: str, limit: int | None = None) -> list[CatalogEntry]:
        """
        Return up to limit entries matching query, best first.

        Blank queries match nothing.
        """
        text = normalize_query(query)
        if not text:
            return []

        matches = self.store.query(
            text,
            limit=limit if limit is not None else self.default_limit,
            threshold=self.threshold,
        )
        logger.info(f"Matched {len(matches)} catalog entries for {text!r}")
        return matches
