"""
Shared column sets for ledgers and holdings.

Four kinds of rows own a ledger: users (global account), competition
members, teams and competition teams. Each one carries a cash balance
and a version counter; each has a matching holdings table with the
same shape.
"""

from decimal import Decimal

from sqlalchemy import BigInteger, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from stocksim.config import STARTING_CASH

# Cash and prices are kept to 4 decimal places so that
# price * quantity is exact and buy/sell round trips are lossless.
MONEY = Numeric(18, 4)


class LedgerMixin:
    """Cash side of a ledger.

    Subclasses also declare a ``version_id`` column and map it as their
    ``version_id_col`` so that two concurrent writers of the same ledger
    cannot both commit.
    """

    cash_balance: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=STARTING_CASH
    )


class HoldingMixin:
    """Position side of a ledger: one row per (owner, symbol)."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    symbol: Mapped[str] = mapped_column(String(16), nullable=False)

    # Rows are deleted when quantity reaches 0
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Price of the first purchase; later buys only add quantity
    buy_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
