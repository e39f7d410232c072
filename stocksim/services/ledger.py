"""Account ledger - atomic buys and sells against any ledger kind.

There are four kinds of ledger (global, competition member, team,
competition team). They share one shape: an owner row with a cash balance
and a version counter, plus a holdings table keyed by (owner, symbol).
``Ledger`` wraps an owner row and knows which holdings table belongs to
it, so the trading rules below are written once.

A trade runs in three steps:
1. Resolve the ledger and check membership and the competition window
   (read only, nothing locked).
2. Quote the symbol with a bounded timeout. A failed quote ends the trade
   before any state is touched.
3. Re-resolve with the owner row locked, apply cash and holding changes
   and commit. A concurrent writer of the same ledger makes the flush
   fail on the version counter; the mutation step is then retried.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from stocksim import telemetry
from stocksim.config import TRADE_MAX_ATTEMPTS
from stocksim.database import utcnow
from stocksim.errors import (
    CompetitionEnded,
    CompetitionNotStarted,
    InsufficientFunds,
    InsufficientShares,
    InvalidRequest,
    LedgerError,
    NoSuchHolding,
    NotFound,
    TradeConflict,
    Unauthorized,
)
from stocksim.models import (
    Competition,
    CompetitionHolding,
    CompetitionMember,
    CompetitionState,
    CompetitionTeam,
    CompetitionTeamHolding,
    Holding,
    Team,
    TeamHolding,
    TeamMember,
    User,
)
from stocksim.quotes import PriceOracle, fetch_price

logger = logging.getLogger(__name__)


class AccountKind(str, enum.Enum):
    """The four ledger kinds."""

    GLOBAL = "global"
    COMPETITION = "competition"
    TEAM = "team"
    COMPETITION_TEAM = "competition_team"


class TradeSide(str, enum.Enum):
    """Buy or sell."""

    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class AccountRef:
    """Identifies a ledger together with the user acting on it.

    For team ledgers ``username`` is the acting team member, not the owner.
    """

    kind: AccountKind
    username: str
    competition_code: str | None = None
    team_id: int | None = None

    @classmethod
    def global_account(cls, username: str) -> "AccountRef":
        return cls(AccountKind.GLOBAL, username)

    @classmethod
    def competition(cls, username: str, competition_code: str) -> "AccountRef":
        return cls(AccountKind.COMPETITION, username, competition_code=competition_code)

    @classmethod
    def team(cls, username: str, team_id: int) -> "AccountRef":
        return cls(AccountKind.TEAM, username, team_id=team_id)

    @classmethod
    def competition_team(cls, username: str, competition_code: str, team_id: int) -> "AccountRef":
        return cls(
            AccountKind.COMPETITION_TEAM,
            username,
            competition_code=competition_code,
            team_id=team_id,
        )


LedgerOwner = User | CompetitionMember | Team | CompetitionTeam

# Owner model -> (holding model, name of the holding's owner foreign key)
_HOLDING_TABLES = {
    User: (Holding, "user_id"),
    CompetitionMember: (CompetitionHolding, "competition_member_id"),
    Team: (TeamHolding, "team_id"),
    CompetitionTeam: (CompetitionTeamHolding, "competition_team_id"),
}


@dataclass
class Ledger:
    """Cash plus holdings of one owner row."""

    owner: LedgerOwner
    competition: Competition | None = None

    @property
    def holding_model(self):
        return _HOLDING_TABLES[type(self.owner)][0]

    @property
    def _owner_column(self):
        model, column = _HOLDING_TABLES[type(self.owner)]
        return getattr(model, column)

    @property
    def cash_balance(self) -> Decimal:
        return self.owner.cash_balance

    async def holdings(self, session: AsyncSession) -> list:
        """All holdings of this ledger, oldest first."""
        model = self.holding_model
        result = await session.execute(
            select(model).where(self._owner_column == self.owner.id).order_by(model.id)
        )
        return list(result.scalars().all())

    async def get_holding(self, session: AsyncSession, symbol: str):
        """The holding for ``symbol`` or None."""
        model = self.holding_model
        result = await session.execute(
            select(model).where(self._owner_column == self.owner.id, model.symbol == symbol)
        )
        return result.scalar_one_or_none()

    def new_holding(self, symbol: str, quantity: int, price: Decimal):
        """Build (but do not add) a holding row for this ledger."""
        model, column = _HOLDING_TABLES[type(self.owner)]
        return model(**{column: self.owner.id}, symbol=symbol, quantity=quantity, buy_price=price)


@dataclass
class TradeResult:
    """Outcome of an applied trade."""

    side: TradeSide
    symbol: str
    quantity: int
    price: Decimal
    cash_balance: Decimal

    @property
    def amount(self) -> Decimal:
        """Cash paid (buy) or received (sell)."""
        return self.price * self.quantity


# ============================================================================
# Lookups shared by the other services
# ============================================================================


def _locked(stmt: Select, lock: bool) -> Select:
    """Lock the selected owner row and refresh it from the database."""
    if lock:
        return stmt.with_for_update().execution_options(populate_existing=True)
    return stmt


async def require_user(session: AsyncSession, username: str, lock: bool = False) -> User:
    """Get a user by username.

    Raises:
        NotFound: If no such user exists
    """
    result = await session.execute(_locked(select(User).where(User.username == username), lock))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound(f"User '{username}' not found")
    return user


async def require_competition(session: AsyncSession, code: str | None) -> Competition:
    """Get a competition by code.

    Raises:
        NotFound: If no competition has this code
    """
    result = await session.execute(select(Competition).where(Competition.code == code))
    competition = result.scalar_one_or_none()
    if competition is None:
        raise NotFound(f"Competition '{code}' not found")
    return competition


async def require_team(session: AsyncSession, team_id: int | None, lock: bool = False) -> Team:
    """Get a team by id.

    Raises:
        NotFound: If no such team exists
    """
    result = await session.execute(_locked(select(Team).where(Team.id == team_id), lock))
    team = result.scalar_one_or_none()
    if team is None:
        raise NotFound(f"Team '{team_id}' not found")
    return team


async def is_team_member(session: AsyncSession, team_id: int, user_id: int) -> bool:
    """Whether the user belongs to the team."""
    result = await session.execute(
        select(TeamMember.id).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
    )
    return result.scalar_one_or_none() is not None


async def require_team_member(session: AsyncSession, team: Team, user: User) -> None:
    """Raises Unauthorized unless the user belongs to the team."""
    if not await is_team_member(session, team.id, user.id):
        raise Unauthorized(f"User '{user.username}' is not a member of team '{team.name}'")


def check_trading_window(competition: Competition, now: datetime) -> None:
    """Reject trades outside the competition's [start_date, end_date] window."""
    state = competition.state_at(now)
    if state == CompetitionState.SCHEDULED:
        raise CompetitionNotStarted(f"Competition '{competition.code}' has not started yet")
    if state == CompetitionState.CLOSED:
        raise CompetitionEnded(f"Competition '{competition.code}' has ended")


async def resolve_ledger(
    session: AsyncSession,
    ref: AccountRef,
    *,
    trading_at: datetime | None = None,
    lock: bool = False,
) -> Ledger:
    """Load the ledger an AccountRef points at and check the caller may use it.

    Args:
        session: Database session
        ref: Ledger reference and acting user
        trading_at: If given, competition ledgers must be tradable at this
            (naive UTC) time
        lock: Lock the owner row for update and reload it

    Raises:
        NotFound: Unknown user, competition, team or membership
        Unauthorized: Acting user is not a member of the team
        CompetitionNotStarted / CompetitionEnded: Outside the trading window
    """
    if ref.kind == AccountKind.GLOBAL:
        return Ledger(owner=await require_user(session, ref.username, lock=lock))

    user = await require_user(session, ref.username)

    if ref.kind == AccountKind.TEAM:
        team = await require_team(session, ref.team_id, lock=lock)
        await require_team_member(session, team, user)
        return Ledger(owner=team)

    competition = await require_competition(session, ref.competition_code)
    if trading_at is not None:
        check_trading_window(competition, trading_at)

    if ref.kind == AccountKind.COMPETITION:
        result = await session.execute(
            _locked(
                select(CompetitionMember).where(
                    CompetitionMember.competition_id == competition.id,
                    CompetitionMember.user_id == user.id,
                ),
                lock,
            )
        )
        member = result.scalar_one_or_none()
        if member is None:
            raise NotFound(
                f"User '{user.username}' is not a member of competition '{competition.code}'"
            )
        return Ledger(owner=member, competition=competition)

    team = await require_team(session, ref.team_id)
    await require_team_member(session, team, user)
    result = await session.execute(
        _locked(
            select(CompetitionTeam).where(
                CompetitionTeam.competition_id == competition.id,
                CompetitionTeam.team_id == team.id,
            ),
            lock,
        )
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        raise NotFound(f"Team '{team.name}' has not joined competition '{competition.code}'")
    return Ledger(owner=entry, competition=competition)


# ============================================================================
# Trading
# ============================================================================


async def trade(
    session: AsyncSession,
    oracle: PriceOracle,
    ref: AccountRef,
    symbol: str,
    quantity: int,
    side: TradeSide | str,
    *,
    now: datetime | None = None,
    max_attempts: int = TRADE_MAX_ATTEMPTS,
) -> TradeResult:
    """Buy or sell ``quantity`` shares of ``symbol`` at the current price.

    Either the whole trade is committed (cash and holding) or nothing is.

    Args:
        session: Database session (committed or rolled back here)
        oracle: Price source
        ref: Ledger to trade on
        symbol: Ticker symbol (normalized to upper case)
        quantity: Positive number of shares
        side: BUY or SELL
        now: Current naive UTC time, defaults to the system clock
        max_attempts: Mutation attempts before giving up on conflicts

    Returns:
        The applied trade with the ledger's new cash balance

    Raises:
        LedgerError: Any rule violation; the session is rolled back
    """
    side = TradeSide(side)
    symbol = symbol.strip().upper()
    now = now or utcnow()

    try:
        if quantity <= 0:
            raise InvalidRequest("Quantity must be a positive integer")
        if not symbol:
            raise InvalidRequest("Symbol is required")

        await resolve_ledger(session, ref, trading_at=now)
        price = await fetch_price(oracle, symbol)

        for attempt in range(1, max_attempts + 1):
            try:
                ledger = await resolve_ledger(session, ref, trading_at=now, lock=True)
                cash_balance = await _apply(session, ledger, side, symbol, quantity, price)
                await session.commit()
            except (StaleDataError, IntegrityError):
                await session.rollback()
                logger.warning(
                    "Ledger changed concurrently, retrying trade",
                    extra={
                        "account_kind": ref.kind.value,
                        "username": ref.username,
                        "symbol": symbol,
                        "attempt": attempt,
                    },
                )
                continue

            telemetry.record_trade(ref.kind.value, side.value, symbol, quantity, price)
            logger.info(
                "Trade executed",
                extra={
                    "account_kind": ref.kind.value,
                    "username": ref.username,
                    "side": side.value,
                    "symbol": symbol,
                    "quantity": quantity,
                    "price": float(price),
                },
            )
            return TradeResult(
                side=side,
                symbol=symbol,
                quantity=quantity,
                price=price,
                cash_balance=cash_balance,
            )

        raise TradeConflict("Account was modified concurrently, please retry")

    except LedgerError as e:
        await session.rollback()
        telemetry.record_trade_rejected(ref.kind.value, type(e).__name__)
        logger.info(
            "Trade rejected",
            extra={
                "account_kind": ref.kind.value,
                "username": ref.username,
                "side": side.value,
                "symbol": symbol,
                "reason": e.message,
            },
        )
        raise


async def _apply(
    session: AsyncSession,
    ledger: Ledger,
    side: TradeSide,
    symbol: str,
    quantity: int,
    price: Decimal,
) -> Decimal:
    """Apply cash and holding changes in the session (no commit).

    Returns:
        The ledger's new cash balance
    """
    owner = ledger.owner
    amount = price * quantity
    holding = await ledger.get_holding(session, symbol)

    if side == TradeSide.BUY:
        if amount > owner.cash_balance:
            raise InsufficientFunds(
                f"Insufficient funds: cost {amount} exceeds cash balance {owner.cash_balance}"
            )
        owner.cash_balance -= amount
        if holding is None:
            session.add(ledger.new_holding(symbol, quantity, price))
        else:
            # buy_price keeps the first purchase price
            holding.quantity += quantity
    else:
        if holding is None:
            raise NoSuchHolding(f"No {symbol} shares held")
        if quantity > holding.quantity:
            raise InsufficientShares(
                f"Not enough shares: holding {holding.quantity} {symbol}, tried to sell {quantity}"
            )
        holding.quantity -= quantity
        if holding.quantity == 0:
            await session.delete(holding)
        owner.cash_balance += amount

    await session.flush()
    return owner.cash_balance
