"""
Entry detail view: best price, per-unit price, and cheaper alternatives
with the same base composition.
"""

import re
from typing import Any

from .catalog import CatalogStore
from .models import CatalogEntry

DEFAULT_PACK_SIZE = 10

PACK_SIZE = re.compile(r"(\d+)")
STRENGTH = re.compile(r"(\d+(?:\.\d+)?\s*(?:mg|mcg|g|ml|iu))", re.IGNORECASE)
PARENTHESES = re.compile(r"\(.*?\)")
DOSAGE = re.compile(r"\d+(?:\.\d+)?\s*(?:mg|mcg|g|ml|iu)", re.IGNORECASE)
SEPARATORS = re.compile(r"[/,+]")
WHITESPACE = re.compile(r"\s+")


def parse_pack_size(raw: str | None) -> int:
    """First integer in a pack description ("strip of 15 tablets" -> 15)."""
    if not raw:
        return DEFAULT_PACK_SIZE
    match = PACK_SIZE.search(str(raw))
    size = int(match.group(1)) if match else DEFAULT_PACK_SIZE
    return size if size > 0 else DEFAULT_PACK_SIZE


def parse_strength(composition: str | None) -> str:
    if not composition:
        return "N/A"
    match = STRENGTH.search(composition)
    return WHITESPACE.sub("", match.group(1)) if match else "N/A"


def extract_base_composition(composition: str | None) -> str | None:
    """
    Leading ingredient with dosages and parentheticals removed:
    "Paracetamol (650mg)" -> "Paracetamol".
    """
    if not composition:
        return None
    cleaned = PARENTHESES.sub("", composition)
    cleaned = DOSAGE.sub("", cleaned)
    cleaned = SEPARATORS.sub(" ", cleaned)
    cleaned = WHITESPACE.sub(" ", cleaned).strip()
    return cleaned.split(" ")[0] if cleaned else None


def lowest_price(entry: CatalogEntry) -> float | None:
    if not entry.quotes:
        return None
    return min(q.price for q in entry.quotes)


def _per_unit(price: float | None, pack_size: int) -> float | None:
    if price is None:
        return None
    return round(price / pack_size, 4)


def build_entry_detail(
    store: CatalogStore,
    entry_id: str,
    max_alternatives: int = 10,
) -> dict[str, Any] | None:
    """Detail payload for one entry, or None when it does not exist."""
    entry = store.get_entry(entry_id)
    if entry is None:
        return None

    pack_size = parse_pack_size(entry.metadata.get("pack_size"))
    main_price = lowest_price(entry)

    alternatives = []
    base = extract_base_composition(entry.composition)
    if base:
        for alt in store.find_by_composition(base, exclude_entry_id=entry.entry_id, limit=max_alternatives):
            alt_price = lowest_price(alt)
            if alt_price is None:
                continue
            alt_pack = parse_pack_size(alt.metadata.get("pack_size"))
            savings = (main_price - alt_price) if main_price is not None else 0.0
            savings_percent = (savings / main_price * 100) if main_price else 0.0
            alternatives.append(
                {
                    "entry_id": alt.entry_id,
                    "name": alt.name,
                    "composition": alt.composition,
                    "manufacturer": alt.manufacturer,
                    "strength": parse_strength(alt.composition),
                    "pack_size": alt_pack,
                    "price": alt_price,
                    "price_per_unit": _per_unit(alt_price, alt_pack),
                    "savings": round(max(savings, 0.0), 2),
                    "savings_percent": round(max(savings_percent, 0.0), 2),
                    "quotes": [q.to_dict() for q in alt.quotes],
                }
            )
        alternatives.sort(key=lambda a: a["price_per_unit"])

    return {
        "entry": entry.to_dict(),
        "strength": parse_strength(entry.composition),
        "pack_size": pack_size,
        "price": main_price,
        "price_per_unit": _per_unit(main_price, pack_size),
        "alternatives": alternatives,
    }
