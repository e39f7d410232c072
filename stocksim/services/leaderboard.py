"""Leaderboard service - ranks a competition's participants by value."""

import enum
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stocksim.models import CompetitionMember, CompetitionTeam, Team, User
from stocksim.quotes import PriceOracle
from stocksim.services.ledger import Ledger, require_competition
from stocksim.services.valuation import valuate_ledger


class LeaderboardScope(str, enum.Enum):
    """Who is ranked: members individually or entered teams."""

    INDIVIDUAL = "individual"
    TEAM = "team"


@dataclass
class LeaderboardEntry:
    """One ranked participant."""

    name: str
    total_value: Decimal
    pnl: Decimal


async def build_leaderboard(
    session: AsyncSession,
    oracle: PriceOracle,
    competition_code: str,
    scope: LeaderboardScope = LeaderboardScope.INDIVIDUAL,
) -> list[LeaderboardEntry]:
    """Value every participant of a competition and rank them.

    Sorted by total value, highest first. Ties keep join order.

    Args:
        session: Database session
        oracle: Price source
        competition_code: Competition code
        scope: INDIVIDUAL (members) or TEAM (competition teams)

    Returns:
        Ranked entries; empty if nobody has joined

    Raises:
        NotFound: If the competition does not exist
    """
    competition = await require_competition(session, competition_code)

    if LeaderboardScope(scope) == LeaderboardScope.INDIVIDUAL:
        query = (
            select(CompetitionMember, User.username)
            .join(User, User.id == CompetitionMember.user_id)
            .where(CompetitionMember.competition_id == competition.id)
            .order_by(CompetitionMember.id)
        )
    else:
        query = (
            select(CompetitionTeam, Team.name)
            .join(Team, Team.id == CompetitionTeam.team_id)
            .where(CompetitionTeam.competition_id == competition.id)
            .order_by(CompetitionTeam.id)
        )

    result = await session.execute(query)

    entries = []
    for owner, name in result.all():
        valuation = await valuate_ledger(
            session, oracle, Ledger(owner=owner, competition=competition)
        )
        entries.append(
            LeaderboardEntry(name=name, total_value=valuation.total_value, pnl=valuation.pnl)
        )

    # sorted() is stable, so equal values stay in join order
    return sorted(entries, key=lambda e: e.total_value, reverse=True)
