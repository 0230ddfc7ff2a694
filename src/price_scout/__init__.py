"""
price-scout: catalog price search with background enrichment.

Answers product queries from a local catalog of per-vendor price quotes
and, when the catalog is thin or stale, enriches it in the background
from web search results.
"""

__version__ = "0.1.0"
