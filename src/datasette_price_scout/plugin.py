"""
Datasette plugin for price-scout.

JSON routes:
- Search the catalog (starts background enrichment when matches are thin or stale)
- Poll an enrichment job
- Entry detail with cheaper alternatives
"""

import asyncio
import logging
import weakref
from pathlib import Path
from typing import Any

from datasette import Response, hookimpl
from datasette.utils.asgi import Request

from price_scout.config import PLUGIN_NAME, ScoutConfig
from price_scout.pricing import build_entry_detail
from price_scout.service import ScoutApp

logger = logging.getLogger(__name__)

# One ScoutApp per Datasette instance, so background jobs share an executor
_apps: "weakref.WeakKeyDictionary[Any, ScoutApp]" = weakref.WeakKeyDictionary()

# -----------------------------------------------------------------------------
# Plugin Configuration
# -----------------------------------------------------------------------------


def get_plugin_config(datasette) -> ScoutConfig:
    """Get plugin configuration from datasette.yaml."""
    return ScoutConfig.from_plugin_config(datasette.plugin_config(PLUGIN_NAME))


def ensure_db_exists(db_path: Path) -> None:
    """Ensure the database exists with the correct schema.

    Idempotent - safe to call multiple times.
    """
    from datasette_price_scout.migrations import run_migrations

    run_migrations(db_path)


def get_scout(datasette) -> ScoutApp:
    """Get (or build) the ScoutApp for this Datasette instance."""
    app = _apps.get(datasette)
    if app is None:
        config = get_plugin_config(datasette)
        ensure_db_exists(config.db_path)
        app = ScoutApp(config)
        _apps[datasette] = app
    return app


# -----------------------------------------------------------------------------
# Route Handlers
# -----------------------------------------------------------------------------


async def price_scout_search(request: Request, datasette) -> Response:
    """Search the catalog: GET /price-scout/search?q=..."""
    query = (request.args.get("q") or "").strip()
    if not query:
        return Response.json({"error": "Query parameter 'q' is required"}, status=400)

    try:
        response = await get_scout(datasette).search(query)
    except Exception:
        logger.exception(f"Search failed for {query!r}")
        return Response.json({"error": "Internal server error"}, status=500)

    return Response.json(response.to_dict())


async def price_scout_job_status(request: Request, datasette) -> Response:
    """Poll an enrichment job: GET /price-scout/jobs/<job_id>"""
    job_id = request.url_vars.get("job_id")
    report = await asyncio.to_thread(get_scout(datasette).reader.read, job_id)
    if report is None:
        return Response.json({"error": "Job not found"}, status=404)
    return Response.json(report.to_dict())


async def price_scout_entry_detail(request: Request, datasette) -> Response:
    """Entry detail with alternatives: GET /price-scout/entries/<entry_id>"""
    entry_id = request.url_vars.get("entry_id")
    detail = await asyncio.to_thread(build_entry_detail, get_scout(datasette).store, entry_id)
    if detail is None:
        return Response.json({"error": "Entry not found"}, status=404)
    return Response.json(detail)


# -----------------------------------------------------------------------------
# Datasette Hooks
# -----------------------------------------------------------------------------


@hookimpl
def register_routes():
    """Register plugin routes with Datasette."""
    return [
        (r"^/price-scout/search$", price_scout_search),
        (r"^/price-scout/jobs/(?P<job_id>[^/]+)$", price_scout_job_status),
        (r"^/price-scout/entries/(?P<entry_id>[^/]+)$", price_scout_entry_detail),
    ]


@hookimpl
def startup(datasette):
    """
    Run on Datasette startup.

    Applies migrations and wires the ScoutApp for this instance.
    """
    app = get_scout(datasette)
    logger.info(f"price-scout ready, database: {app.config.db_path}")
