"""Datasette plugin exposing price-scout search and job status as JSON."""

from datasette_price_scout.plugin import register_routes, startup

__all__ = [
    "register_routes",
    "startup",
]
