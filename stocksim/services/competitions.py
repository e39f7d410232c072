"""Competition service - creation, joining and listings."""

import logging
import secrets
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stocksim import telemetry
from stocksim.config import QUICK_PICS_NAME, STARTING_CASH
from stocksim.database import as_naive_utc
from stocksim.errors import AlreadyExists, InvalidRequest, Unauthorized
from stocksim.models import Competition, CompetitionMember, CompetitionTeam
from stocksim.services.ledger import (
    require_competition,
    require_team,
    require_team_member,
    require_user,
)

logger = logging.getLogger(__name__)

# Attempts to insert a competition before giving up on code collisions
CODE_ATTEMPTS = 5


def generate_code() -> str:
    """Generate a random competition code (8 hex characters)."""
    return secrets.token_hex(4)


async def generate_competition_code(session: AsyncSession) -> str:
    """Generate a code no existing competition uses."""
    while True:
        code = generate_code()
        result = await session.execute(select(Competition.id).where(Competition.code == code))
        if result.scalar_one_or_none() is None:
            return code


async def insert_competition(session: AsyncSession, **fields) -> Competition:
    """Insert and commit a competition under a fresh unique code.

    A code taken between the check and the commit violates the unique
    constraint; the insert is then retried with a new code.

    Args:
        session: Database session
        **fields: Competition column values other than ``code``

    Raises:
        AlreadyExists: If no unique code could be allocated
    """
    for _ in range(CODE_ATTEMPTS):
        code = await generate_competition_code(session)
        competition = Competition(code=code, **fields)
        session.add(competition)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            logger.warning("Competition code collision, regenerating", extra={"code": code})
            continue
        return competition

    raise AlreadyExists("Could not allocate a unique competition code")


async def create_competition(
    session: AsyncSession,
    username: str,
    name: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    max_position_limit: str | None = None,
    featured: bool = False,
    is_open: bool = True,
) -> Competition:
    """Create a competition on behalf of a user.

    Raises:
        NotFound: Unknown user
        Unauthorized: Non-admin asking for a featured competition
        InvalidRequest: End date before start date
    """
    user = await require_user(session, username)
    if featured and not user.is_admin:
        raise Unauthorized("Only admins can feature a competition")

    start_date = as_naive_utc(start_date) if start_date else None
    end_date = as_naive_utc(end_date) if end_date else None
    if start_date and end_date and end_date < start_date:
        raise InvalidRequest("end_date must not be before start_date")

    competition = await insert_competition(
        session,
        name=name,
        created_by=user.id,
        start_date=start_date,
        end_date=end_date,
        max_position_limit=(max_position_limit or "").strip() or None,
        featured=featured,
        is_open=is_open,
    )

    telemetry.record_competition_created("manual")
    logger.info(
        "Competition created",
        extra={"code": competition.code, "username": username, "featured": featured},
    )
    return competition


async def join_competition(
    session: AsyncSession,
    username: str,
    competition_code: str,
    access_code: str | None = None,
) -> tuple[CompetitionMember, bool]:
    """Add a user to a competition with a fresh ledger.

    Joining twice is not an error: the existing membership is returned.

    Returns:
        (membership, created) where created is False for a re-join

    Raises:
        NotFound: Unknown user or competition
        Unauthorized: Closed competition and wrong access code
    """
    user = await require_user(session, username)
    competition = await require_competition(session, competition_code)

    if not competition.is_open and (access_code or "").strip() != competition.code:
        raise Unauthorized("This competition requires a valid access code")

    query = select(CompetitionMember).where(
        CompetitionMember.competition_id == competition.id,
        CompetitionMember.user_id == user.id,
    )
    existing = (await session.execute(query)).scalar_one_or_none()
    if existing is not None:
        return existing, False

    member = CompetitionMember(
        competition_id=competition.id,
        user_id=user.id,
        cash_balance=STARTING_CASH,
    )
    session.add(member)
    try:
        await session.commit()
    except IntegrityError:
        # Joined concurrently by another request
        await session.rollback()
        return (await session.execute(query)).scalar_one(), False

    logger.info("Joined competition", extra={"code": competition_code, "username": username})
    return member, True


async def join_competition_team(
    session: AsyncSession,
    username: str,
    competition_code: str,
    team_id: int,
) -> tuple[CompetitionTeam, bool]:
    """Enter a team into a competition with a fresh ledger.

    Returns:
        (entry, created) where created is False if already entered

    Raises:
        NotFound: Unknown user, competition or team
        Unauthorized: The user is not a member of the team
    """
    user = await require_user(session, username)
    competition = await require_competition(session, competition_code)
    team = await require_team(session, team_id)
    await require_team_member(session, team, user)

    query = select(CompetitionTeam).where(
        CompetitionTeam.competition_id == competition.id,
        CompetitionTeam.team_id == team.id,
    )
    existing = (await session.execute(query)).scalar_one_or_none()
    if existing is not None:
        return existing, False

    entry = CompetitionTeam(
        competition_id=competition.id,
        team_id=team.id,
        cash_balance=STARTING_CASH,
    )
    session.add(entry)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        return (await session.execute(query)).scalar_one(), False

    logger.info(
        "Team joined competition",
        extra={"code": competition_code, "team_id": team_id, "username": username},
    )
    return entry, True


async def list_competitions(session: AsyncSession) -> list[Competition]:
    """Get all competitions, oldest first."""
    result = await session.execute(select(Competition).order_by(Competition.id))
    return list(result.scalars().all())


async def featured_competitions(session: AsyncSession, now: datetime) -> list[Competition]:
    """Featured competitions that have not ended at ``now``."""
    result = await session.execute(
        select(Competition)
        .where(
            Competition.featured.is_(True),
            or_(Competition.end_date.is_(None), Competition.end_date >= now),
        )
        .order_by(Competition.start_date, Competition.id)
    )
    return list(result.scalars().all())


async def upcoming_quick_pics(
    session: AsyncSession, now: datetime, limit: int = 2
) -> list[Competition]:
    """The next Quick Pics competitions that have not started yet."""
    result = await session.execute(
        select(Competition)
        .where(Competition.name == QUICK_PICS_NAME, Competition.start_date > now)
        .order_by(Competition.start_date)
        .limit(limit)
    )
    return list(result.scalars().all())
