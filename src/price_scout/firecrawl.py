"""
Firecrawl client for price-scout.

Wraps the two Firecrawl calls enrichment needs: web search with inline
JSON extraction, and single-page scrape with the same extraction. Records
come back in whatever shape the extraction model produced, so parsing is
tolerant and rejects anything without a name and a positive price.

API Documentation: https://docs.firecrawl.dev/api-reference/introduction
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)

FIRECRAWL_API_BASE = "https://api.firecrawl.dev/v2"

EXTRACTION_PROMPT = (
    "Extract medicine details: brand name, salt/generic composition, price "
    "(numeric only, in INR), manufacturer, pack size (e.g. 'strip of 15 "
    "tablets'), and stock availability."
)


class FirecrawlError(Exception):
    """Firecrawl answered, but reported failure."""


@dataclass
class ExtractionSchema:
    """Named, typed fields for structured extraction; some are required."""

    properties: dict[str, str]
    required: tuple[str, ...] = ()

    def to_json_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {name: {"type": t} for name, t in self.properties.items()},
            "required": list(self.required),
        }


PRODUCT_SCHEMA = ExtractionSchema(
    properties={
        "name": "string",
        "composition": "string",
        "manufacturer": "string",
        "price": "number",
        "pack_size": "string",
        "in_stock": "boolean",
    },
    required=("name", "price"),
)

# Keys some extraction responses use instead of ours
FIELD_ALIASES = {
    "name": ("name", "brand_name", "product_name"),
    "composition": ("composition", "salt_composition", "ingredients", "generic_name"),
    "manufacturer": ("manufacturer", "company", "marketer"),
    "price": ("price", "mrp", "selling_price"),
    "pack_size": ("pack_size", "pack", "quantity"),
    "in_stock": ("in_stock", "availability", "available"),
}

_PRICE_NUMBER = re.compile(r"\d[\d,]*(?:\.\d+)?|\.\d+")

_IN_STOCK_WORDS = {"true", "yes", "in stock", "available", "instock"}
_OUT_OF_STOCK_WORDS = {"false", "no", "out of stock", "unavailable", "sold out", "outofstock"}


def _first(data: dict[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        value = data.get(name)
        if value not in (None, ""):
            return value
    return None


def parse_price(value: Any) -> float | None:
    """Parse 30.5, "30.5", "₹1,230.50", "Rs. 99" into a positive float."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        price = float(value)
    elif isinstance(value, str):
        match = _PRICE_NUMBER.search(value)
        if not match:
            return None
        try:
            price = float(match.group(0).replace(",", ""))
        except ValueError:
            return None
    else:
        return None
    return price if price > 0 else None


def parse_in_stock(value: Any) -> bool:
    """Stock flag from a bool or common phrasing; unknown means in stock."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _OUT_OF_STOCK_WORDS:
            return False
        if text in _IN_STOCK_WORDS:
            return True
    return True


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = " ".join(str(value).split())
    return text or None


@dataclass
class ExtractedProduct:
    """A validated structured record from one candidate page."""

    name: str
    price: float
    composition: str | None = None
    manufacturer: str | None = None
    pack_size: str | None = None
    in_stock: bool = True

    @classmethod
    def from_payload(cls, data: Any) -> "ExtractedProduct | None":
        """
        Build a record from an extraction payload, or None when the payload
        is missing a name or a usable price.
        """
        if isinstance(data, list):
            # Some pages extract to a list of products; take the first usable one
            for item in data:
                record = cls.from_payload(item)
                if record:
                    return record
            return None
        if not isinstance(data, dict):
            return None

        name = _clean_text(_first(data, FIELD_ALIASES["name"]))
        price = parse_price(_first(data, FIELD_ALIASES["price"]))
        if not name or price is None:
            return None

        pack_size = _first(data, FIELD_ALIASES["pack_size"])
        return cls(
            name=name,
            price=price,
            composition=_clean_text(_first(data, FIELD_ALIASES["composition"])),
            manufacturer=_clean_text(_first(data, FIELD_ALIASES["manufacturer"])),
            pack_size=_clean_text(pack_size),
            in_stock=parse_in_stock(_first(data, FIELD_ALIASES["in_stock"])),
        )


@dataclass
class CandidateDocument:
    """One search hit, with the inline extraction payload when there was one."""

    url: str | None
    title: str | None = None
    extracted: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)


class FirecrawlClient:
    """
    Client for the Firecrawl search and scrape endpoints.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str = FIRECRAWL_API_BASE,
        timeout_seconds: float = 60.0,
        prompt: str = EXTRACTION_PROMPT,
    ):
        """
        Initialize the Firecrawl client.

        Args:
            api_key: Firecrawl API key (sent as a bearer token)
            api_base: API root, without trailing slash
            timeout_seconds: Per-request timeout
            prompt: Extraction instructions sent with the schema
        """
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout_seconds
        self.prompt = prompt

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _json_format(self, schema: ExtractionSchema) -> dict[str, Any]:
        return {
            "type": "json",
            "schema": schema.to_json_schema(),
            "prompt": self.prompt,
        }

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.api_base}{path}",
                headers=self._headers(),
                json=payload,
            )
            response.raise_for_status()
            data = response.json()

        if isinstance(data, dict) and data.get("success") is False:
            raise FirecrawlError(data.get("error") or f"Firecrawl {path} failed")
        return data

    async def search(
        self,
        query: str,
        schema: ExtractionSchema = PRODUCT_SCHEMA,
        limit: int = 5,
    ) -> list[CandidateDocument]:
        """
        Search the web and extract structured data from each hit.

        Raises httpx.HTTPError or FirecrawlError when the search fails;
        the caller decides what a failed search means.
        """
        logger.debug(f"Firecrawl search: {query!r} (limit={limit})")
        data = await self._post(
            "/search",
            {
                "query": query,
                "limit": limit,
                "scrapeOptions": {"formats": [self._json_format(schema)]},
            },
        )
        return self._parse_search_results(data)[:limit]

    async def scrape(
        self,
        url: str,
        schema: ExtractionSchema = PRODUCT_SCHEMA,
    ) -> Any:
        """
        Scrape one page and return its extraction payload (None when the
        page produced none).
        """
        logger.debug(f"Firecrawl scrape: {url}")
        data = await self._post(
            "/scrape",
            {"url": url, "formats": [self._json_format(schema)]},
        )
        document = data.get("data") if isinstance(data, dict) else None
        if not isinstance(document, dict):
            return None
        return self._extraction_payload(document)

    def _extraction_payload(self, document: dict[str, Any]) -> Any:
        for key in ("json", "extract", "llm_extraction"):
            if document.get(key) is not None:
                return document[key]
        return None

    def _parse_search_results(self, data: Any) -> list[CandidateDocument]:
        """Accept both {"data": {"web": [...]}} and the older {"data": [...]}."""
        if not isinstance(data, dict):
            return []
        results = data.get("data")
        if isinstance(results, dict):
            results = results.get("web")
        if not isinstance(results, list):
            return []

        documents = []
        for item in results:
            if not isinstance(item, dict):
                continue
            metadata = item.get("metadata") or {}
            documents.append(
                CandidateDocument(
                    url=item.get("url") or metadata.get("sourceURL"),
                    title=item.get("title") or metadata.get("title"),
                    extracted=self._extraction_payload(item),
                    metadata=metadata,
                )
            )
        return documents
