"""
Staleness policy: decide whether catalog matches can answer a query
without triggering enrichment.
"""

from datetime import datetime, timedelta

from .models import CatalogEntry, utc_now

MIN_MATCHES = 3
MAX_AGE = timedelta(hours=24)


def stale_entries(
    matches: list[CatalogEntry],
    now: datetime | None = None,
    max_age: timedelta = MAX_AGE,
) -> list[CatalogEntry]:
    """Entries last updated longer than max_age ago (or with no usable timestamp)."""
    now = now or utc_now()
    stale = []
    for entry in matches:
        updated = entry.updated_at
        if updated is None or now - updated > max_age:
            stale.append(entry)
    return stale


def is_sufficient(
    matches: list[CatalogEntry],
    now: datetime | None = None,
    min_matches: int = MIN_MATCHES,
    max_age: timedelta = MAX_AGE,
) -> bool:
    """
    True when the matches can be served as-is.

    Either too few matches or a single stale match forces enrichment.
    """
    if len(matches) < min_matches:
        return False
    return not stale_entries(matches, now=now, max_age=max_age)
