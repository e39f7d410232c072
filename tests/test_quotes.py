"""Tests for the price oracle and bounded-timeout quote fetching."""

import asyncio
from decimal import Decimal

import httpx
import pytest

from stocksim.errors import PriceUnavailable
from stocksim.quotes import AlphaVantageOracle, fetch_price


def _oracle(handler) -> AlphaVantageOracle:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AlphaVantageOracle(api_key="test-key", base_url="https://quotes.test/query", client=client)


class TestAlphaVantageOracle:
    """HTTP client against a mocked provider."""

    @pytest.mark.asyncio
    async def test_parses_global_quote(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(200, json={"Global Quote": {"05. price": "187.4400"}})

        oracle = _oracle(handler)
        price = await oracle.get_price("AAPL")
        await oracle.aclose()

        assert price == Decimal("187.44")
        assert seen == {"function": "GLOBAL_QUOTE", "symbol": "AAPL", "apikey": "test-key"}

    @pytest.mark.asyncio
    async def test_unknown_symbol(self):
        oracle = _oracle(lambda request: httpx.Response(200, json={"Global Quote": {}}))

        with pytest.raises(PriceUnavailable, match="No data found"):
            await oracle.get_price("NOPE")

    @pytest.mark.asyncio
    async def test_missing_price_field(self):
        oracle = _oracle(
            lambda request: httpx.Response(200, json={"Global Quote": {"01. symbol": "AAPL"}})
        )

        with pytest.raises(PriceUnavailable, match="No price information"):
            await oracle.get_price("AAPL")

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        oracle = _oracle(lambda request: httpx.Response(503))

        with pytest.raises(PriceUnavailable, match="HTTP 503"):
            await oracle.get_price("AAPL")

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PriceUnavailable):
            await _oracle(handler).get_price("AAPL")


class _StaticOracle:
    def __init__(self, result):
        self.result = result

    async def get_price(self, symbol):
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class _SlowOracle:
    async def get_price(self, symbol):
        await asyncio.sleep(5)
        return Decimal("1")


class TestFetchPrice:
    """Normalization and failure mapping."""

    @pytest.mark.asyncio
    async def test_rounds_to_four_places(self):
        price = await fetch_price(_StaticOracle(Decimal("10.123456")), "X")
        assert price == Decimal("10.1235")

    @pytest.mark.asyncio
    async def test_accepts_float_prices(self):
        assert await fetch_price(_StaticOracle(99.5), "X") == Decimal("99.5")

    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(PriceUnavailable, match="timed out"):
            await fetch_price(_SlowOracle(), "X", timeout=0.01)

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_price_unavailable(self):
        with pytest.raises(PriceUnavailable):
            await fetch_price(_StaticOracle(RuntimeError("bad payload")), "X")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [Decimal("0"), Decimal("-3")])
    async def test_non_positive_price(self, value):
        with pytest.raises(PriceUnavailable):
            await fetch_price(_StaticOracle(value), "X")
