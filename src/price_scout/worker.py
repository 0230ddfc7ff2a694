"""
Enrichment worker for price-scout.

Runs one enrichment job: a single external search, per-candidate
extraction with a scrape fallback, idempotent catalog writes, and the
final job transition. One bad candidate never sinks the batch; only a
failure of the search itself fails the job.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .catalog import CatalogStore, EntryCandidate
from .firecrawl import PRODUCT_SCHEMA, CandidateDocument, ExtractedProduct, FirecrawlClient
from .jobs import JobLedger
from .vendors import classify_vendor

logger = logging.getLogger(__name__)


class OutcomeStatus(str, Enum):
    """What happened to one candidate document."""

    OK = "ok"
    SKIPPED = "skipped"
    ERRORED = "errored"


class RecordSource(str, Enum):
    """Which extraction path produced the record."""

    INLINE = "inline"
    FALLBACK = "fallback"


@dataclass
class CandidateOutcome:
    """Result of processing one candidate."""

    status: OutcomeStatus
    url: str | None = None
    source: RecordSource | None = None
    reason: str | None = None
    entry_id: str | None = None
    vendor: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"status": self.status.value, "url": self.url}
        if self.source:
            result["source"] = self.source.value
        if self.reason:
            result["reason"] = self.reason
        if self.entry_id:
            result["entry_id"] = self.entry_id
        if self.vendor:
            result["vendor"] = self.vendor
        return result


@dataclass
class EnrichmentSummary:
    """All candidate outcomes for one job."""

    job_id: str
    query: str
    outcomes: list[CandidateOutcome] = field(default_factory=list)

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def ok_count(self) -> int:
        return self._count(OutcomeStatus.OK)

    @property
    def skipped_count(self) -> int:
        return self._count(OutcomeStatus.SKIPPED)

    @property
    def errored_count(self) -> int:
        return self._count(OutcomeStatus.ERRORED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "query": self.query,
            "ok": self.ok_count,
            "skipped": self.skipped_count,
            "errored": self.errored_count,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


class EnrichmentWorker:
    """
    Executes enrichment jobs against a search/extraction provider.
    """

    def __init__(
        self,
        store: CatalogStore,
        ledger: JobLedger,
        provider: FirecrawlClient,
        max_results: int = 5,
        search_suffix: str = "medicine price India",
    ):
        """
        Initialize the worker.

        Args:
            store: Catalog store that receives extracted records
            ledger: Job ledger holding the job being run
            provider: Search/extraction client (FirecrawlClient or a test double)
            max_results: Candidate documents requested per search
            search_suffix: Appended to the user query to steer the search
        """
        self.store = store
        self.ledger = ledger
        self.provider = provider
        self.max_results = max_results
        self.search_suffix = search_suffix

    def _search_query(self, query: str) -> str:
        if self.search_suffix:
            return f"{query} {self.search_suffix}"
        return query

    async def run(self, job_id: str, query: str) -> EnrichmentSummary | None:
        """
        Run the job to completion or failure.

        Returns the summary on completion, None if the job failed or could
        not be started. Failures are recorded on the job, not raised.
        """
        logger.info(f"Enrichment job {job_id} starting for {query!r}")

        try:
            if not self.ledger.mark_processing(job_id):
                logger.warning(f"Job {job_id} is not pending, not running it")
                return None

            documents = await self.provider.search(
                self._search_query(query),
                PRODUCT_SCHEMA,
                limit=self.max_results,
            )
            logger.info(f"Job {job_id}: {len(documents)} candidate document(s)")

            summary = EnrichmentSummary(job_id=job_id, query=query)
            for document in documents:
                outcome = await self.process_candidate(document)
                summary.outcomes.append(outcome)
                if outcome.status == OutcomeStatus.ERRORED:
                    logger.warning(f"Job {job_id}: candidate {outcome.url} errored: {outcome.reason}")
                else:
                    logger.debug(f"Job {job_id}: candidate {outcome.url} {outcome.status.value}")

            self.ledger.mark_completed(job_id, summary.ok_count)
            logger.info(
                f"Enrichment job {job_id} completed: {summary.ok_count} stored, "
                f"{summary.skipped_count} skipped, {summary.errored_count} errors"
            )
            return summary

        except Exception as e:
            logger.exception(f"Enrichment job {job_id} failed")
            self.ledger.mark_failed(job_id, f"{type(e).__name__}: {e}")
            return None

    async def process_candidate(self, document: CandidateDocument) -> CandidateOutcome:
        """Extract, validate and store one candidate. Never raises."""
        url = document.url
        if not url:
            return CandidateOutcome(OutcomeStatus.SKIPPED, reason="no_url")

        record = ExtractedProduct.from_payload(document.extracted)
        source = RecordSource.INLINE

        if record is None:
            source = RecordSource.FALLBACK
            try:
                payload = await self.provider.scrape(url, PRODUCT_SCHEMA)
            except Exception as e:
                return CandidateOutcome(
                    OutcomeStatus.ERRORED,
                    url=url,
                    source=source,
                    reason=f"fallback scrape failed: {e}",
                )
            record = ExtractedProduct.from_payload(payload)

        if record is None:
            return CandidateOutcome(OutcomeStatus.SKIPPED, url=url, reason="missing_required_fields")

        return await asyncio.to_thread(self.store_record, record, url, source)

    def store_record(
        self,
        record: ExtractedProduct,
        url: str,
        source: RecordSource = RecordSource.INLINE,
    ) -> CandidateOutcome:
        """Write one validated record through the catalog store."""
        vendor = classify_vendor(url)
        try:
            entry_id = self.store.upsert_entry(
                EntryCandidate(
                    name=record.name,
                    composition=record.composition,
                    manufacturer=record.manufacturer,
                    pack_size=record.pack_size,
                )
            )
            self.store.upsert_quote(
                entry_id,
                vendor=vendor.value,
                price=record.price,
                url=url,
                in_stock=record.in_stock,
            )
        except Exception as e:
            logger.exception(f"Failed to store {record.name!r} from {url}")
            return CandidateOutcome(
                OutcomeStatus.ERRORED,
                url=url,
                source=source,
                reason=f"catalog write failed: {e}",
            )

        logger.info(f"Stored {record.name!r} @ {record.price} from {vendor.value}")
        return CandidateOutcome(
            OutcomeStatus.OK,
            url=url,
            source=source,
            entry_id=entry_id,
            vendor=vendor.value,
        )
