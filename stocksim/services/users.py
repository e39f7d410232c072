"""User service - registration, credentials and account overview."""

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass, field

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stocksim.config import STARTING_CASH
from stocksim.errors import AlreadyExists, InvalidCredentials
from stocksim.models import (
    Competition,
    CompetitionMember,
    CompetitionTeam,
    Holding,
    Team,
    TeamMember,
    User,
)
from stocksim.quotes import PriceOracle
from stocksim.services.ledger import Ledger, require_user
from stocksim.services.valuation import Valuation, valuate_ledger

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 120_000


def hash_password(password: str) -> str:
    """Hash a password for storage.

    Returns:
        ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>``
    """
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash."""
    try:
        algorithm, iterations, salt, expected = password_hash.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


async def register_user(
    session: AsyncSession, username: str, password: str, email: str | None = None
) -> User:
    """Create a user with a fresh global ledger.

    Raises:
        AlreadyExists: If the username or email is taken
    """
    result = await session.execute(select(User.id).where(User.username == username))
    if result.scalar_one_or_none() is not None:
        raise AlreadyExists(f"User '{username}' already exists")

    if email:
        result = await session.execute(select(User.id).where(User.email == email))
        if result.scalar_one_or_none() is not None:
            raise AlreadyExists("Email already in use")

    user = User(
        username=username,
        email=email or None,
        password_hash=hash_password(password),
        cash_balance=STARTING_CASH,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        # Registered concurrently by another request
        await session.rollback()
        raise AlreadyExists(f"User '{username}' or email already exists")
    await session.refresh(user)

    logger.info("User registered", extra={"username": username})
    return user


async def authenticate(session: AsyncSession, username: str, password: str) -> User:
    """Return the user if the password matches.

    Raises:
        InvalidCredentials: Unknown user or wrong password
    """
    result = await session.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.password_hash):
        raise InvalidCredentials("Invalid credentials")
    return user


async def reset_global_account(session: AsyncSession, username: str) -> User:
    """Reset a user's global ledger to the starting cash with no holdings.

    Raises:
        NotFound: Unknown user
    """
    user = await require_user(session, username, lock=True)
    await session.execute(delete(Holding).where(Holding.user_id == user.id))
    user.cash_balance = STARTING_CASH
    await session.commit()

    logger.info("Global account reset", extra={"username": username})
    return user


@dataclass
class AccountOverview:
    """Every ledger a user can trade, valued at current prices."""

    user: User
    global_account: Valuation
    competition_accounts: list[tuple[Competition, Valuation]] = field(default_factory=list)
    team_accounts: list[tuple[Team, Valuation]] = field(default_factory=list)
    team_competitions: list[tuple[Competition, Team, Valuation]] = field(default_factory=list)


async def get_account_overview(
    session: AsyncSession, oracle: PriceOracle, username: str
) -> AccountOverview:
    """Value the user's global, competition, team and competition-team ledgers.

    Raises:
        NotFound: Unknown user
    """
    user = await require_user(session, username)
    overview = AccountOverview(
        user=user,
        global_account=await valuate_ledger(session, oracle, Ledger(owner=user)),
    )

    result = await session.execute(
        select(CompetitionMember, Competition)
        .join(Competition, Competition.id == CompetitionMember.competition_id)
        .where(CompetitionMember.user_id == user.id)
        .order_by(CompetitionMember.id)
    )
    for member, competition in result.all():
        valuation = await valuate_ledger(session, oracle, Ledger(member, competition))
        overview.competition_accounts.append((competition, valuation))

    result = await session.execute(
        select(Team)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .where(TeamMember.user_id == user.id)
        .order_by(Team.id)
    )
    teams = list(result.scalars().all())
    for team in teams:
        valuation = await valuate_ledger(session, oracle, Ledger(owner=team))
        overview.team_accounts.append((team, valuation))

    if teams:
        result = await session.execute(
            select(CompetitionTeam, Competition)
            .join(Competition, Competition.id == CompetitionTeam.competition_id)
            .where(CompetitionTeam.team_id.in_([t.id for t in teams]))
            .order_by(CompetitionTeam.id)
        )
        teams_by_id = {t.id: t for t in teams}
        for entry, competition in result.all():
            valuation = await valuate_ledger(session, oracle, Ledger(entry, competition))
            overview.team_competitions.append(
                (competition, teams_by_id[entry.team_id], valuation)
            )

    return overview
