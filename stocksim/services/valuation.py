"""Valuation service - mark-to-market value and P/L of a ledger."""

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from stocksim.errors import PriceUnavailable
from stocksim.quotes import PriceOracle, fetch_price
from stocksim.services.ledger import AccountRef, Ledger, resolve_ledger

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class HoldingValuation:
    """A holding priced at the current market."""

    symbol: str
    quantity: int
    buy_price: Decimal
    current_price: Decimal
    value: Decimal
    pnl: Decimal
    price_available: bool = True


@dataclass
class Valuation:
    """Cash plus holdings of one ledger at current prices."""

    cash: Decimal
    holdings: list[HoldingValuation] = field(default_factory=list)
    total_value: Decimal = ZERO
    pnl: Decimal = ZERO


async def valuate_ledger(
    session: AsyncSession, oracle: PriceOracle, ledger: Ledger
) -> Valuation:
    """Value a ledger at current prices.

    A holding whose price cannot be fetched is valued at 0 and flagged;
    the rest of the ledger is still valued.

    Args:
        session: Database session
        oracle: Price source
        ledger: Resolved ledger

    Returns:
        Valuation with per-holding value and P/L
    """
    holdings = await ledger.holdings(session)
    cash = ledger.cash_balance

    prices = await asyncio.gather(
        *(fetch_price(oracle, h.symbol) for h in holdings),
        return_exceptions=True,
    )

    valued = []
    for holding, price in zip(holdings, prices):
        available = True
        if isinstance(price, PriceUnavailable):
            logger.warning(
                "Valuing holding at zero, price unavailable",
                extra={"symbol": holding.symbol, "reason": price.message},
            )
            price = ZERO
            available = False
        elif isinstance(price, BaseException):
            raise price

        valued.append(
            HoldingValuation(
                symbol=holding.symbol,
                quantity=holding.quantity,
                buy_price=holding.buy_price,
                current_price=price,
                value=price * holding.quantity,
                pnl=(price - holding.buy_price) * holding.quantity,
                price_available=available,
            )
        )

    return Valuation(
        cash=cash,
        holdings=valued,
        total_value=cash + sum((h.value for h in valued), ZERO),
        pnl=sum((h.pnl for h in valued), ZERO),
    )


async def valuate(
    session: AsyncSession, oracle: PriceOracle, ref: AccountRef
) -> Valuation:
    """Resolve a ledger reference and value it.

    Valuation is allowed outside a competition's trading window.

    Raises:
        NotFound / Unauthorized: As for resolve_ledger
    """
    ledger = await resolve_ledger(session, ref)
    return await valuate_ledger(session, oracle, ledger)
