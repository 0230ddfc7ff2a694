"""
Data models and database handle for price-scout.
"""

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from .similarity import similarity


class JobStatus(str, Enum):
    """Lifecycle of an enrichment job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


def utc_now() -> datetime:
    return datetime.now(UTC)


def format_ts(value: datetime) -> str:
    """Storage form for timestamps; fixed width so they sort as text."""
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def parse_ts(value: str | None) -> datetime | None:
    """Parse a stored ISO timestamp; naive values are taken as UTC."""
    if not value:
        return None
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


@dataclass
class PriceQuote:
    """The latest observed price for one entry at one vendor."""

    quote_id: str
    entry_id: str
    vendor: str
    price: float
    observed_ts: str
    url: str | None = None
    in_stock: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "vendor": self.vendor,
            "price": self.price,
            "url": self.url,
            "in_stock": self.in_stock,
            "observed_ts": self.observed_ts,
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "PriceQuote":
        return cls(
            quote_id=row["quote_id"],
            entry_id=row["entry_id"],
            vendor=row["vendor"],
            price=row["price"],
            observed_ts=row["observed_ts"],
            url=row["url"],
            in_stock=bool(row["in_stock"]),
        )


@dataclass
class CatalogEntry:
    """A product in the catalog, identified by (name, manufacturer)."""

    entry_id: str
    name: str
    created_ts: str
    updated_ts: str
    composition: str | None = None
    manufacturer: str | None = None
    metadata_json: str | None = None
    quotes: list[PriceQuote] = field(default_factory=list)
    score: float = 0.0

    @property
    def metadata(self) -> dict:
        """Parse metadata_json."""
        if self.metadata_json:
            return json.loads(self.metadata_json)
        return {}

    @property
    def updated_at(self) -> datetime | None:
        return parse_ts(self.updated_ts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "name": self.name,
            "composition": self.composition,
            "manufacturer": self.manufacturer,
            "metadata": self.metadata,
            "updated_ts": self.updated_ts,
            "quotes": [q.to_dict() for q in self.quotes],
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "CatalogEntry":
        keys = row.keys()
        return cls(
            entry_id=row["entry_id"],
            name=row["name"],
            created_ts=row["created_ts"],
            updated_ts=row["updated_ts"],
            composition=row["composition"],
            # '' is the storage form of "unknown manufacturer"
            manufacturer=row["manufacturer"] or None,
            metadata_json=row["metadata_json"],
            score=row["score"] if "score" in keys and row["score"] is not None else 0.0,
        )


@dataclass
class EnrichmentJob:
    """A tracked unit of background enrichment work."""

    job_id: str
    query: str
    status: str
    created_ts: str
    updated_ts: str
    result_count: int = 0
    error: str | None = None

    @property
    def created_at(self) -> datetime | None:
        return parse_ts(self.created_ts)


class ScoutDatabase:
    """
    Connection factory for the price-scout SQLite database.

    Constructed once and handed to each store. Every connection it opens has
    Row access, foreign keys on, and the similarity() SQL function.
    """

    def __init__(self, db_path: Path, busy_timeout_seconds: float = 5.0):
        self.db_path = Path(db_path)
        self.busy_timeout_seconds = busy_timeout_seconds

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout_seconds)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.create_function("similarity", 2, similarity, deterministic=True)
        return conn
