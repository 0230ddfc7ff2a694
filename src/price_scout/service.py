"""
Search entry point: answer from the catalog when it is good enough,
otherwise hand the query to a background enrichment job.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .catalog import CatalogStore
from .config import ScoutConfig
from .firecrawl import FirecrawlClient
from .jobs import JobLedger, JobStatusReader
from .matcher import QueryMatcher
from .models import CatalogEntry, ScoutDatabase
from .similarity import normalize_query
from .staleness import is_sufficient, stale_entries
from .worker import EnrichmentWorker

logger = logging.getLogger(__name__)

SOURCE_CATALOG = "catalog"
SOURCE_ENRICHMENT = "enrichment"


class BackgroundExecutor:
    """
    Runs detached coroutines on the current event loop.

    Holds a reference to every in-flight task so none is garbage collected
    mid-run. Task exceptions go to the log, never back to the submitter.
    There is no cancellation: submitted work runs until it finishes.
    """

    def __init__(self, name: str = "price-scout"):
        self.name = name
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def submit(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        label: str | None = None,
    ) -> asyncio.Task:
        """Schedule func(*args) and return immediately."""
        task = asyncio.get_running_loop().create_task(
            func(*args),
            name=f"{self.name}:{label or getattr(func, '__name__', 'task')}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Background task {task.get_name()} was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Background task {task.get_name()} failed",
                exc_info=(type(error), error, error.__traceback__),
            )

    async def drain(self) -> None:
        """Wait for everything currently in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


@dataclass
class SearchResponse:
    """Answer to a search: catalog matches plus an optional job to poll."""

    source: str
    matches: list[CatalogEntry] = field(default_factory=list)
    job_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "source": self.source,
            "matches": [m.to_dict() for m in self.matches],
        }
        if self.job_id:
            result["job_id"] = self.job_id
        return result


class SearchService:
    """The synchronous request path."""

    def __init__(
        self,
        config: ScoutConfig,
        matcher: QueryMatcher,
        ledger: JobLedger,
        worker: EnrichmentWorker,
        executor: BackgroundExecutor,
    ):
        self.config = config
        self.matcher = matcher
        self.ledger = ledger
        self.worker = worker
        self.executor = executor

    async def search(self, query: str) -> SearchResponse:
        """
        Match query against the catalog; start or reuse an enrichment job
        when the matches are too few or too old.

        Raises ValueError for a blank query. Catalog read errors propagate.
        SQLite work runs in a worker thread so a busy database does not
        stall the event loop.
        """
        text = normalize_query(query)
        if not text:
            raise ValueError("query must not be blank")

        matches = await asyncio.to_thread(self.matcher.match, text, self.config.matching.limit)

        freshness = self.config.freshness
        if is_sufficient(
            matches,
            min_matches=freshness.min_matches,
            max_age=freshness.max_age,
        ):
            return SearchResponse(source=SOURCE_CATALOG, matches=matches)

        stale = stale_entries(matches, max_age=freshness.max_age)
        logger.info(
            f"Catalog insufficient for {text!r}: {len(matches)} match(es), {len(stale)} stale"
        )

        job_id, created = await asyncio.to_thread(
            self.ledger.find_or_create, text, self.config.jobs.cooldown
        )
        if created:
            self.executor.submit(self.worker.run, job_id, text, label=f"enrich:{job_id}")

        return SearchResponse(source=SOURCE_ENRICHMENT, matches=matches, job_id=job_id)


class ScoutApp:
    """All price-scout components, wired once and shared."""

    def __init__(
        self,
        config: ScoutConfig,
        provider: FirecrawlClient | None = None,
    ):
        self.config = config
        self.db = ScoutDatabase(config.db_path)
        self.store = CatalogStore(self.db)
        self.matcher = QueryMatcher(
            self.store,
            threshold=config.matching.similarity_threshold,
            default_limit=config.matching.limit,
        )
        self.ledger = JobLedger(self.db)
        self.reader = JobStatusReader(self.db)
        self.provider = provider or FirecrawlClient(
            api_key=config.firecrawl.get_api_key(),
            api_base=config.firecrawl.api_base,
            timeout_seconds=config.firecrawl.timeout_seconds,
            prompt=config.firecrawl.prompt,
        )
        self.worker = EnrichmentWorker(
            self.store,
            self.ledger,
            self.provider,
            max_results=config.firecrawl.max_results,
            search_suffix=config.firecrawl.search_suffix,
        )
        self.executor = BackgroundExecutor()
        self.search_service = SearchService(
            config,
            self.matcher,
            self.ledger,
            self.worker,
            self.executor,
        )

    async def search(self, query: str) -> SearchResponse:
        return await self.search_service.search(query)
