"""
Catalog store: products and their per-vendor price quotes.

Writes are single-statement upserts keyed on natural keys, so repeating
one with the same arguments (even from two workers at once) converges to
the same stored state.
"""

import json
import logging
import secrets
from dataclasses import dataclass

from .models import CatalogEntry, PriceQuote, ScoutDatabase, format_ts, utc_now
from .similarity import DEFAULT_THRESHOLD

logger = logging.getLogger(__name__)


@dataclass
class EntryCandidate:
    """Fields needed to insert or refresh a catalog entry."""

    name: str
    composition: str | None = None
    manufacturer: str | None = None
    pack_size: str | None = None

    def metadata_json(self) -> str | None:
        if self.pack_size:
            return json.dumps({"pack_size": self.pack_size})
        return None


class CatalogStore:
    """Owns the catalog_entries and price_quotes tables."""

    def __init__(self, db: ScoutDatabase):
        self.db = db

    def upsert_entry(self, candidate: EntryCandidate) -> str:
        """
        Insert an entry, or refresh the existing one with the same
        (name, manufacturer). Returns the stable entry_id.

        On conflict the composition and metadata are replaced only when the
        new values are present; updated_ts is always bumped.
        """
        name = candidate.name.strip()
        manufacturer = (candidate.manufacturer or "").strip()
        now = format_ts(utc_now())

        conn = self.db.connect()
        try:
            conn.execute(
                """
                INSERT INTO catalog_entries
                    (entry_id, name, composition, manufacturer, metadata_json,
                     created_ts, updated_ts)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (name, manufacturer) DO UPDATE SET
                    composition = COALESCE(excluded.composition, composition),
                    metadata_json = COALESCE(excluded.metadata_json, metadata_json),
                    updated_ts = excluded.updated_ts
                """,
                (
                    secrets.token_hex(16),
                    name,
                    candidate.composition,
                    manufacturer,
                    candidate.metadata_json(),
                    now,
                    now,
                ),
            )
            row = conn.execute(
                "SELECT entry_id FROM catalog_entries WHERE name = ? AND manufacturer = ?",
                (name, manufacturer),
            ).fetchone()
            conn.commit()
        finally:
            conn.close()

        return row["entry_id"]

    def upsert_quote(
        self,
        entry_id: str,
        vendor: str,
        price: float,
        url: str | None,
        in_stock: bool = True,
    ) -> None:
        """Record the latest price for (entry_id, vendor); last write wins."""
        now = format_ts(utc_now())
        conn = self.db.connect()
        try:
            conn.execute(
                """
                INSERT INTO price_quotes
                    (quote_id, entry_id, vendor, price, url, in_stock, observed_ts)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (entry_id, vendor) DO UPDATE SET
                    price = excluded.price,
                    url = excluded.url,
                    in_stock = excluded.in_stock,
                    observed_ts = excluded.observed_ts
                """,
                (
                    secrets.token_hex(16),
                    entry_id,
                    vendor,
                    float(price),
                    url,
                    1 if in_stock else 0,
                    now,
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def query(
        self,
        text: str,
        limit: int = 10,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> list[CatalogEntry]:
        """
        Fuzzy lookup on name and composition, best similarity first.

        An entry qualifies when the text is a case-insensitive substring of
        either field or the trigram similarity of either field exceeds the
        threshold. Every returned entry carries its quotes (possibly none).
        """
        conn = self.db.connect()
        try:
            cursor = conn.execute(
                """
                SELECT e.*,
                       max(similarity(e.name, :q),
                           similarity(e.composition, :q)) AS score
                FROM catalog_entries e
                WHERE instr(lower(e.name), lower(:q)) > 0
                   OR instr(lower(COALESCE(e.composition, '')), lower(:q)) > 0
                   OR similarity(e.name, :q) > :threshold
                   OR similarity(e.composition, :q) > :threshold
                ORDER BY score DESC, e.updated_ts DESC
                LIMIT :limit
                """,
                {"q": text, "threshold": threshold, "limit": limit},
            )
            entries = [CatalogEntry.from_row(row) for row in cursor.fetchall()]
            self._attach_quotes(conn, entries)
        finally:
            conn.close()

        logger.debug(f"Catalog query {text!r} matched {len(entries)} entries")
        return entries

    def get_entry(self, entry_id: str) -> CatalogEntry | None:
        """Get a single entry, with quotes, by ID."""
        conn = self.db.connect()
        try:
            row = conn.execute(
                "SELECT * FROM catalog_entries WHERE entry_id = ?",
                (entry_id,),
            ).fetchone()
            if not row:
                return None
            entry = CatalogEntry.from_row(row)
            self._attach_quotes(conn, [entry])
            return entry
        finally:
            conn.close()

    def find_by_composition(
        self,
        base_composition: str,
        exclude_entry_id: str | None = None,
        limit: int = 10,
    ) -> list[CatalogEntry]:
        """Entries whose composition contains base_composition (case-insensitive)."""
        conn = self.db.connect()
        try:
            cursor = conn.execute(
                """
                SELECT * FROM catalog_entries
                WHERE instr(lower(COALESCE(composition, '')), lower(?)) > 0
                  AND entry_id != ?
                ORDER BY updated_ts DESC
                LIMIT ?
                """,
                (base_composition, exclude_entry_id or "", limit),
            )
            entries = [CatalogEntry.from_row(row) for row in cursor.fetchall()]
            self._attach_quotes(conn, entries)
        finally:
            conn.close()
        return entries

    def _attach_quotes(self, conn, entries: list[CatalogEntry]) -> None:
        if not entries:
            return
        by_id = {e.entry_id: e for e in entries}
        placeholders = ",".join("?" * len(by_id))
        cursor = conn.execute(
            f"""
            SELECT * FROM price_quotes
            WHERE entry_id IN ({placeholders})
            ORDER BY price ASC
            """,
            list(by_id),
        )
        for row in cursor.fetchall():
            by_id[row["entry_id"]].quotes.append(PriceQuote.from_row(row))
