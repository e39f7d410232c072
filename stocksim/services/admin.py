"""Admin service - moderation and bookkeeping operations."""

import logging
from dataclasses import dataclass

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stocksim.errors import InvalidRequest, NotFound, Unauthorized
from stocksim.models import (
    Competition,
    CompetitionHolding,
    CompetitionMember,
    CompetitionTeam,
    CompetitionTeamHolding,
    Holding,
    Team,
    TeamMember,
    User,
)
from stocksim.services.ledger import require_competition, require_user

logger = logging.getLogger(__name__)


@dataclass
class Stats:
    """Row counts shown on the admin dashboard."""

    total_users: int
    total_competitions: int
    total_teams: int


async def require_admin(session: AsyncSession, username: str | None) -> User:
    """Get the user if they are an admin.

    Raises:
        Unauthorized: Unknown user or not an admin
    """
    result = await session.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if user is None or not user.is_admin:
        raise Unauthorized("Admin privileges required")
    return user


async def _count(session: AsyncSession, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


async def get_stats(session: AsyncSession) -> Stats:
    """Count users, competitions and teams."""
    return Stats(
        total_users=await _count(session, User),
        total_competitions=await _count(session, Competition),
        total_teams=await _count(session, Team),
    )


async def list_users(session: AsyncSession) -> list[User]:
    """Get all users, oldest first."""
    result = await session.execute(select(User).order_by(User.id))
    return list(result.scalars().all())


async def set_admin(session: AsyncSession, username: str, is_admin: bool = True) -> User:
    """Grant or revoke admin rights (used by the management CLI).

    Raises:
        NotFound: Unknown user
    """
    user = await require_user(session, username)
    user.is_admin = is_admin
    await session.commit()
    return user


async def delete_competition(session: AsyncSession, admin_username: str, code: str) -> None:
    """Delete a competition with all member and team ledgers in it.

    Raises:
        Unauthorized: Caller is not an admin
        NotFound: Unknown competition
    """
    await require_admin(session, admin_username)
    competition = await require_competition(session, code)

    member_ids = select(CompetitionMember.id).where(
        CompetitionMember.competition_id == competition.id
    )
    entry_ids = select(CompetitionTeam.id).where(CompetitionTeam.competition_id == competition.id)

    for stmt in (
        delete(CompetitionHolding).where(CompetitionHolding.competition_member_id.in_(member_ids)),
        delete(CompetitionMember).where(CompetitionMember.competition_id == competition.id),
        delete(CompetitionTeamHolding).where(
            CompetitionTeamHolding.competition_team_id.in_(entry_ids)
        ),
        delete(CompetitionTeam).where(CompetitionTeam.competition_id == competition.id),
        delete(Competition).where(Competition.id == competition.id),
    ):
        await session.execute(stmt.execution_options(synchronize_session=False))
    await session.commit()

    logger.info("Competition deleted", extra={"code": code, "admin": admin_username})


async def delete_user(session: AsyncSession, admin_username: str, target_username: str) -> None:
    """Delete a user with their global ledger, memberships and member ledgers.

    Teams and competitions the user created are kept without a creator.

    Raises:
        Unauthorized: Caller is not an admin
        NotFound: Unknown target user
        InvalidRequest: Admin deleting themselves
    """
    admin = await require_admin(session, admin_username)
    target = await require_user(session, target_username)
    if target.id == admin.id:
        raise InvalidRequest("Admins cannot delete themselves")

    member_ids = select(CompetitionMember.id).where(CompetitionMember.user_id == target.id)

    for stmt in (
        delete(Holding).where(Holding.user_id == target.id),
        delete(CompetitionHolding).where(CompetitionHolding.competition_member_id.in_(member_ids)),
        delete(CompetitionMember).where(CompetitionMember.user_id == target.id),
        delete(TeamMember).where(TeamMember.user_id == target.id),
        update(Competition).where(Competition.created_by == target.id).values(created_by=None),
        update(Team).where(Team.created_by == target.id).values(created_by=None),
        delete(User).where(User.id == target.id),
    ):
        await session.execute(stmt.execution_options(synchronize_session=False))
    await session.commit()

    logger.info("User deleted", extra={"target": target_username, "admin": admin_username})


async def set_competition_open(
    session: AsyncSession, admin_username: str, code: str, is_open: bool
) -> Competition:
    """Open or close a competition to joining by code alone."""
    await require_admin(session, admin_username)
    competition = await require_competition(session, code)
    competition.is_open = is_open
    await session.commit()
    return competition


async def set_competition_featured(
    session: AsyncSession, admin_username: str, code: str, featured: bool
) -> Competition:
    """Feature or unfeature a competition."""
    await require_admin(session, admin_username)
    competition = await require_competition(session, code)
    competition.featured = featured
    await session.commit()
    return competition


async def remove_user_from_competition(
    session: AsyncSession, admin_username: str, target_username: str, code: str
) -> None:
    """Drop a member and their competition ledger.

    Raises:
        NotFound: Unknown user/competition or not a member
    """
    await require_admin(session, admin_username)
    target = await require_user(session, target_username)
    competition = await require_competition(session, code)

    result = await session.execute(
        select(CompetitionMember.id).where(
            CompetitionMember.competition_id == competition.id,
            CompetitionMember.user_id == target.id,
        )
    )
    member_id = result.scalar_one_or_none()
    if member_id is None:
        raise NotFound(f"User '{target_username}' is not in competition '{code}'")

    for stmt in (
        delete(CompetitionHolding).where(CompetitionHolding.competition_member_id == member_id),
        delete(CompetitionMember).where(CompetitionMember.id == member_id),
    ):
        await session.execute(stmt.execution_options(synchronize_session=False))
    await session.commit()


async def remove_user_from_team(
    session: AsyncSession, admin_username: str, target_username: str, team_id: int
) -> None:
    """Revoke a user's membership of a team.

    Raises:
        NotFound: Unknown user or not a member
    """
    await require_admin(session, admin_username)
    target = await require_user(session, target_username)

    result = await session.execute(
        delete(TeamMember)
        .where(TeamMember.team_id == team_id, TeamMember.user_id == target.id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await session.rollback()
        raise NotFound(f"User '{target_username}' is not in team '{team_id}'")
    await session.commit()
