"""Live price quotes.

The ledger only sees the narrow ``PriceOracle`` interface, so tests and
alternative providers can be swapped in through ``get_price_oracle``.
"""

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Protocol

import httpx

from stocksim import telemetry
from stocksim.config import ALPHA_VANTAGE_API_KEY, QUOTE_API_URL, QUOTE_TIMEOUT
from stocksim.errors import PriceUnavailable

logger = logging.getLogger(__name__)

PRICE_PRECISION = Decimal("0.0001")


class PriceOracle(Protocol):
    """Anything that can quote a current price for a ticker symbol."""

    async def get_price(self, symbol: str) -> Decimal:
        """Return the current price or raise PriceUnavailable."""
        ...


class AlphaVantageOracle:
    """Price oracle backed by the Alpha Vantage GLOBAL_QUOTE endpoint."""

    def __init__(
        self,
        api_key: str = ALPHA_VANTAGE_API_KEY,
        base_url: str = QUOTE_API_URL,
        timeout: float = QUOTE_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the oracle.

        Args:
            api_key: Alpha Vantage API key
            base_url: Query endpoint URL
            timeout: Per-request timeout in seconds
            client: Optional pre-built HTTP client (used by tests)
        """
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating one if needed."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_price(self, symbol: str) -> Decimal:
        """Fetch the latest traded price for a symbol.

        Raises:
            PriceUnavailable: On HTTP errors or a response without a price
        """
        try:
            response = await self.client.get(
                self.base_url,
                params={
                    "function": "GLOBAL_QUOTE",
                    "symbol": symbol,
                    "apikey": self.api_key,
                },
            )
        except httpx.HTTPError as e:
            raise PriceUnavailable(f"Quote request for {symbol} failed: {e}") from e

        if response.status_code != 200:
            raise PriceUnavailable(
                f"Quote provider returned HTTP {response.status_code} for {symbol}"
            )

        quote = response.json().get("Global Quote")
        if not quote:
            raise PriceUnavailable(f"No data found for symbol {symbol}")
        if "05. price" not in quote:
            raise PriceUnavailable(f"No price information available for symbol {symbol}")

        try:
            return Decimal(quote["05. price"])
        except InvalidOperation as e:
            raise PriceUnavailable(f"Malformed price for symbol {symbol}") from e


async def fetch_price(
    oracle: PriceOracle, symbol: str, timeout: float = QUOTE_TIMEOUT
) -> Decimal:
    """Quote a symbol with a bounded wait.

    Any provider failure, a timeout or a non-positive price becomes
    PriceUnavailable; a trade must never go through on a stale or zero price.

    Returns:
        Price rounded to 4 decimal places
    """
    try:
        price = await asyncio.wait_for(oracle.get_price(symbol), timeout=timeout)
    except PriceUnavailable:
        telemetry.record_price_failure(symbol)
        raise
    except asyncio.TimeoutError as e:
        telemetry.record_price_failure(symbol)
        raise PriceUnavailable(f"Price lookup for {symbol} timed out") from e
    except Exception as e:
        telemetry.record_price_failure(symbol)
        raise PriceUnavailable(f"Price lookup for {symbol} failed: {e}") from e

    price = Decimal(str(price)).quantize(PRICE_PRECISION)
    if price <= 0:
        telemetry.record_price_failure(symbol)
        raise PriceUnavailable(f"No usable price for symbol {symbol}")
    return price


_oracle: AlphaVantageOracle | None = None


def get_price_oracle() -> PriceOracle:
    """Dependency that provides the process-wide price oracle."""
    global _oracle
    if _oracle is None:
        _oracle = AlphaVantageOracle()
    return _oracle


async def close_price_oracle() -> None:
    """Release the process-wide oracle's HTTP client."""
    global _oracle
    if _oracle is not None:
        await _oracle.aclose()
        _oracle = None
