"""Team service - creating and joining teams."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stocksim.config import STARTING_CASH
from stocksim.models import Team, TeamMember
from stocksim.services.ledger import require_team, require_user

logger = logging.getLogger(__name__)


async def create_team(session: AsyncSession, username: str, name: str) -> Team:
    """Create a team; the creator becomes its first member.

    Raises:
        NotFound: Unknown user
    """
    user = await require_user(session, username)

    team = Team(name=name, created_by=user.id, cash_balance=STARTING_CASH)
    session.add(team)
    await session.flush()  # Get team id before adding the membership

    session.add(TeamMember(team_id=team.id, user_id=user.id))
    await session.commit()

    logger.info("Team created", extra={"team_id": team.id, "username": username})
    return team


async def join_team(
    session: AsyncSession, username: str, team_id: int
) -> tuple[TeamMember, bool]:
    """Add a user to a team. Joining twice returns the existing membership.

    Returns:
        (membership, created)

    Raises:
        NotFound: Unknown user or team
    """
    user = await require_user(session, username)
    team = await require_team(session, team_id)

    query = select(TeamMember).where(TeamMember.team_id == team.id, TeamMember.user_id == user.id)
    existing = (await session.execute(query)).scalar_one_or_none()
    if existing is not None:
        return existing, False

    membership = TeamMember(team_id=team.id, user_id=user.id)
    session.add(membership)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        return (await session.execute(query)).scalar_one(), False

    logger.info("Joined team", extra={"team_id": team_id, "username": username})
    return membership, True
