"""Tests for the Firecrawl client and extraction parsing."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from price_scout.firecrawl import (
    PRODUCT_SCHEMA,
    ExtractedProduct,
    FirecrawlClient,
    FirecrawlError,
    parse_in_stock,
    parse_price,
)


class TestParsePrice:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (30.5, 30.5),
            (30, 30.0),
            ("30.5", 30.5),
            ("₹1,230.50", 1230.5),
            ("Rs. 99", 99.0),
            ("MRP ₹ 33.60 per strip", 33.6),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_price(value) == expected

    @pytest.mark.parametrize("value", [None, "", "free", 0, -5, True, [30]])
    def test_invalid(self, value):
        assert parse_price(value) is None


class TestParseInStock:
    def test_values(self):
        assert parse_in_stock(False) is False
        assert parse_in_stock("Out of stock") is False
        assert parse_in_stock("In Stock") is True
        assert parse_in_stock(None) is True
        assert parse_in_stock("call store") is True


class TestExtractedProduct:
    def test_full_payload(self):
        record = ExtractedProduct.from_payload(
            {
                "name": "Dolo 650 Tablet",
                "composition": "Paracetamol (650mg)",
                "manufacturer": "Micro Labs Ltd",
                "price": "₹30.91",
                "pack_size": "strip of 15 tablets",
                "in_stock": True,
            }
        )
        assert record.name == "Dolo 650 Tablet"
        assert record.price == 30.91
        assert record.manufacturer == "Micro Labs Ltd"
        assert record.pack_size == "strip of 15 tablets"
        assert record.in_stock is True

    def test_aliases(self):
        record = ExtractedProduct.from_payload(
            {
                "brand_name": "Calpol 500",
                "salt_composition": "Paracetamol 500mg",
                "company": "GSK",
                "mrp": 15,
                "availability": "out of stock",
            }
        )
        assert record.name == "Calpol 500"
        assert record.composition == "Paracetamol 500mg"
        assert record.manufacturer == "GSK"
        assert record.price == 15.0
        assert record.in_stock is False

    def test_list_payload_takes_first_usable(self):
        record = ExtractedProduct.from_payload(
            [{"name": "No price"}, {"name": "Crocin", "price": 25}]
        )
        assert record.name == "Crocin"

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            "Dolo 650",
            {},
            {"name": "Dolo 650"},
            {"price": 30},
            {"name": "   ", "price": 30},
            {"name": "Dolo 650", "price": "call for price"},
        ],
    )
    def test_rejects_incomplete(self, payload):
        assert ExtractedProduct.from_payload(payload) is None


class TestFirecrawlClient:
    @pytest.fixture
    def mock_response(self):
        """Create a mock httpx response."""

        def _make_response(json_data, status_code=200):
            response = MagicMock()
            response.status_code = status_code
            response.json.return_value = json_data
            response.raise_for_status = MagicMock()
            if status_code >= 400:
                response.raise_for_status.side_effect = httpx.HTTPStatusError(
                    "Error", request=MagicMock(), response=response
                )
            return response

        return _make_response

    @pytest.fixture
    def mock_http(self):
        """Patch httpx.AsyncClient; yields the client double."""
        with patch("httpx.AsyncClient") as MockClient:
            mock_client = AsyncMock()
            mock_client.__aenter__.return_value = mock_client
            mock_client.__aexit__.return_value = None
            MockClient.return_value = mock_client
            yield mock_client

    @pytest.mark.asyncio
    async def test_search_v2_shape(self, mock_response, mock_http):
        mock_http.post.return_value = mock_response(
            {
                "success": True,
                "data": {
                    "web": [
                        {
                            "url": "https://www.1mg.com/drugs/dolo-650",
                            "title": "Dolo 650",
                            "json": {"name": "Dolo 650", "price": 30},
                        },
                        {
                            "metadata": {"sourceURL": "https://pharmeasy.in/dolo"},
                        },
                    ]
                },
            }
        )
        client = FirecrawlClient(api_key="fc-test", api_base="http://fake/v2/")

        docs = await client.search("Dolo 650 medicine price India", PRODUCT_SCHEMA, limit=5)

        assert len(docs) == 2
        assert docs[0].url == "https://www.1mg.com/drugs/dolo-650"
        assert docs[0].extracted == {"name": "Dolo 650", "price": 30}
        assert docs[1].url == "https://pharmeasy.in/dolo"
        assert docs[1].extracted is None

        call = mock_http.post.call_args
        assert call.args[0] == "http://fake/v2/search"
        assert call.kwargs["headers"]["Authorization"] == "Bearer fc-test"
        body = call.kwargs["json"]
        assert body["query"] == "Dolo 650 medicine price India"
        assert body["limit"] == 5
        json_format = body["scrapeOptions"]["formats"][0]
        assert json_format["type"] == "json"
        assert json_format["schema"]["required"] == ["name", "price"]

    @pytest.mark.asyncio
    async def test_search_older_list_shape(self, mock_response, mock_http):
        mock_http.post.return_value = mock_response(
            {"success": True, "data": [{"url": "https://x.test", "extract": {"name": "A", "price": 1}}]}
        )
        docs = await FirecrawlClient().search("a")
        assert docs[0].extracted == {"name": "A", "price": 1}

    @pytest.mark.asyncio
    async def test_search_truncates_to_limit(self, mock_response, mock_http):
        mock_http.post.return_value = mock_response(
            {"data": {"web": [{"url": f"https://x.test/{i}"} for i in range(8)]}}
        )
        docs = await FirecrawlClient().search("a", limit=3)
        assert len(docs) == 3

    @pytest.mark.asyncio
    async def test_search_reported_failure(self, mock_response, mock_http):
        mock_http.post.return_value = mock_response({"success": False, "error": "Insufficient credits"})
        with pytest.raises(FirecrawlError, match="Insufficient credits"):
            await FirecrawlClient().search("a")

    @pytest.mark.asyncio
    async def test_search_http_error(self, mock_response, mock_http):
        mock_http.post.return_value = mock_response({}, status_code=502)
        with pytest.raises(httpx.HTTPStatusError):
            await FirecrawlClient().search("a")

    @pytest.mark.asyncio
    async def test_no_key_no_auth_header(self, mock_response, mock_http):
        mock_http.post.return_value = mock_response({"data": []})
        await FirecrawlClient().search("a")
        assert "Authorization" not in mock_http.post.call_args.kwargs["headers"]

    @pytest.mark.asyncio
    async def test_scrape_returns_payload(self, mock_response, mock_http):
        mock_http.post.return_value = mock_response(
            {"success": True, "data": {"json": {"name": "Dolo 650", "price": 31}}}
        )
        payload = await FirecrawlClient().scrape("https://www.1mg.com/drugs/dolo-650")

        assert payload == {"name": "Dolo 650", "price": 31}
        body = mock_http.post.call_args.kwargs["json"]
        assert body["url"] == "https://www.1mg.com/drugs/dolo-650"
        assert body["formats"][0]["type"] == "json"

    @pytest.mark.asyncio
    async def test_scrape_without_extraction(self, mock_response, mock_http):
        mock_http.post.return_value = mock_response({"success": True, "data": {"markdown": "# Dolo"}})
        assert await FirecrawlClient().scrape("https://x.test") is None
