"""
Enrichment job ledger and the read-only status view used by pollers.

Jobs move pending -> processing -> completed | failed and never back.
Every transition is a guarded UPDATE, so a late or repeated call cannot
rewind a job.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from .models import EnrichmentJob, JobStatus, ScoutDatabase, format_ts, utc_now
from .similarity import normalize_query

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN = timedelta(hours=1)


@dataclass
class JobStatusReport:
    """What a poller sees for one job."""

    job_id: str
    status: str
    result_count: int
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return JobStatus(self.status).is_terminal

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "job_id": self.job_id,
            "status": self.status,
            "result_count": self.result_count,
        }
        if self.error:
            result["error"] = self.error
        return result


class JobLedger:
    """Owns the enrichment_jobs table."""

    def __init__(self, db: ScoutDatabase):
        self.db = db

    def find_reusable(
        self,
        query: str,
        cooldown: timedelta = DEFAULT_COOLDOWN,
    ) -> str | None:
        """
        Find a job that already covers query.

        A job covers query when its own query contains it (case-insensitive),
        so "dolo" rides on a "Dolo 650" job but "Dolo 500" does not. It is
        reusable while pending/processing, or once completed if it was
        created within the cooldown. Failed jobs are never reused. Newest
        job wins.
        """
        text = normalize_query(query)
        if not text:
            return None

        cutoff = format_ts(utc_now() - cooldown)
        conn = self.db.connect()
        try:
            row = conn.execute(
                """
                SELECT job_id, status FROM enrichment_jobs
                WHERE (
                        status IN ('pending', 'processing')
                        OR (status = 'completed' AND created_ts >= :cutoff)
                      )
                  AND instr(lower(query), lower(:q)) > 0
                ORDER BY created_ts DESC
                LIMIT 1
                """,
                {"q": text, "cutoff": cutoff},
            ).fetchone()
        finally:
            conn.close()

        if row:
            logger.info(f"Reusing {row['status']} job {row['job_id']} for {text!r}")
            return row["job_id"]
        return None

    def create(self, query: str) -> str:
        """Insert a new pending job and return its ID."""
        job_id = secrets.token_hex(16)
        now = format_ts(utc_now())

        conn = self.db.connect()
        try:
            conn.execute(
                """
                INSERT INTO enrichment_jobs
                    (job_id, query, status, result_count, created_ts, updated_ts)
                VALUES (?, ?, ?, 0, ?, ?)
                """,
                (job_id, normalize_query(query), JobStatus.PENDING.value, now, now),
            )
            conn.commit()
        finally:
            conn.close()

        logger.info(f"Created enrichment job {job_id} for {query!r}")
        return job_id

    def find_or_create(
        self,
        query: str,
        cooldown: timedelta = DEFAULT_COOLDOWN,
    ) -> tuple[str, bool]:
        """
        Reuse a covering job or create one. Returns (job_id, created).

        Read-then-write without a lock: two simultaneous callers can both
        create a job. Catalog writes are idempotent, so the cost is one
        redundant external search.
        """
        job_id = self.find_reusable(query, cooldown)
        if job_id:
            return job_id, False
        return self.create(query), True

    def get(self, job_id: str) -> EnrichmentJob | None:
        """Get a single job by ID."""
        conn = self.db.connect()
        try:
            row = conn.execute(
                "SELECT * FROM enrichment_jobs WHERE job_id = ?",
                (job_id,),
            ).fetchone()
            return EnrichmentJob(**dict(row)) if row else None
        finally:
            conn.close()

    def get_pending(self, limit: int = 50) -> list[EnrichmentJob]:
        """Pending jobs, oldest first."""
        conn = self.db.connect()
        try:
            cursor = conn.execute(
                """
                SELECT * FROM enrichment_jobs
                WHERE status = 'pending'
                ORDER BY created_ts ASC
                LIMIT ?
                """,
                (limit,),
            )
            return [EnrichmentJob(**dict(row)) for row in cursor.fetchall()]
        finally:
            conn.close()

    def mark_processing(self, job_id: str) -> bool:
        """pending -> processing."""
        return self._transition(
            job_id,
            JobStatus.PROCESSING,
            allowed_from=(JobStatus.PENDING,),
        )

    def mark_completed(self, job_id: str, result_count: int) -> bool:
        """processing -> completed, recording how many records were stored."""
        return self._transition(
            job_id,
            JobStatus.COMPLETED,
            allowed_from=(JobStatus.PROCESSING,),
            result_count=result_count,
        )

    def mark_failed(self, job_id: str, error: str) -> bool:
        """pending | processing -> failed."""
        return self._transition(
            job_id,
            JobStatus.FAILED,
            allowed_from=(JobStatus.PENDING, JobStatus.PROCESSING),
            error=error,
        )

    def purge_before(self, cutoff: datetime) -> int:
        """Delete terminal jobs created before cutoff. Returns rows deleted."""
        conn = self.db.connect()
        try:
            cursor = conn.execute(
                """
                DELETE FROM enrichment_jobs
                WHERE status IN ('completed', 'failed') AND created_ts < ?
                """,
                (format_ts(cutoff),),
            )
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()

    def _transition(
        self,
        job_id: str,
        to_status: JobStatus,
        allowed_from: tuple[JobStatus, ...],
        **fields,
    ) -> bool:
        fields["status"] = to_status.value
        fields["updated_ts"] = format_ts(utc_now())
        set_clause = ", ".join(f"{k} = ?" for k in fields)
        from_clause = ", ".join("?" * len(allowed_from))
        values = list(fields.values()) + [job_id] + [s.value for s in allowed_from]

        conn = self.db.connect()
        try:
            cursor = conn.execute(
                f"""
                UPDATE enrichment_jobs SET {set_clause}
                WHERE job_id = ? AND status IN ({from_clause})
                """,
                values,
            )
            conn.commit()
            applied = cursor.rowcount == 1
        finally:
            conn.close()

        if not applied:
            logger.warning(f"Rejected transition of job {job_id} to {to_status.value}")
        return applied


class JobStatusReader:
    """Read-only job status lookups; safe to call at any rate."""

    def __init__(self, db: ScoutDatabase):
        self.db = db

    def read(self, job_id: str) -> JobStatusReport | None:
        """Status of job_id, or None when no such job exists."""
        conn = self.db.connect()
        try:
            row = conn.execute(
                """
                SELECT job_id, status, result_count, error
                FROM enrichment_jobs WHERE job_id = ?
                """,
                (job_id,),
            ).fetchone()
        finally:
            conn.close()

        if not row:
            return None
        return JobStatusReport(
            job_id=row["job_id"],
            status=row["status"],
            result_count=row["result_count"],
            error=row["error"],
        )
