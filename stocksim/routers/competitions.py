"""Competition API endpoints - creation, membership, listings and leaderboards."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from stocksim.database import get_session, utcnow
from stocksim.errors import LedgerError
from stocksim.quotes import PriceOracle, get_price_oracle
from stocksim.schemas.competition import (
    CompetitionCreate,
    CompetitionCreateResponse,
    CompetitionJoin,
    CompetitionSummary,
    CompetitionTeamJoin,
    LeaderboardEntryResponse,
    MessageResponse,
    QuickPicResponse,
)
from stocksim.services import competitions as competition_service
from stocksim.services.leaderboard import LeaderboardScope, build_leaderboard

router = APIRouter()


@router.post(
    "/competition/create",
    response_model=CompetitionCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a competition",
)
async def create_competition(
    data: CompetitionCreate,
    session: AsyncSession = Depends(get_session),
) -> CompetitionCreateResponse:
    """Create a competition and return its join code.

    - **start_date** / **end_date**: Optional trading window bounds
    - **max_position_limit**: Stored, not enforced
    - **featured**: Only admins may feature a competition
    - **is_open**: If false, joining requires the code as access code
    """
    try:
        competition = await competition_service.create_competition(
            session,
            data.username,
            name=data.competition_name,
            start_date=data.start_date,
            end_date=data.end_date,
            max_position_limit=data.max_position_limit,
            featured=data.featured,
            is_open=data.is_open,
        )
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return CompetitionCreateResponse(message="Created", competition_code=competition.code)


@router.post("/competition/join", response_model=MessageResponse, summary="Join a competition")
async def join_competition(
    data: CompetitionJoin,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Join a competition with a fresh ledger. Joining twice is a no-op."""
    try:
        _, created = await competition_service.join_competition(
            session, data.username, data.competition_code, access_code=data.access_code
        )
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return MessageResponse(message="Joined competition" if created else "Already joined")


@router.post(
    "/competition/team/join",
    response_model=MessageResponse,
    summary="Enter a team into a competition",
)
async def join_competition_team(
    data: CompetitionTeamJoin,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Enter a team into a competition. The user must belong to the team."""
    try:
        _, created = await competition_service.join_competition_team(
            session, data.username, data.competition_code, data.team_id
        )
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return MessageResponse(
        message="Team joined competition" if created else "Team already in competition"
    )


async def _leaderboard(
    session: AsyncSession, oracle: PriceOracle, code: str, scope: LeaderboardScope
) -> list[LeaderboardEntryResponse]:
    try:
        entries = await build_leaderboard(session, oracle, code, scope)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return [
        LeaderboardEntryResponse(name=e.name, total_value=e.total_value, pnl=e.pnl)
        for e in entries
    ]


@router.get(
    "/competition/{code}/leaderboard",
    response_model=list[LeaderboardEntryResponse],
    summary="Individual leaderboard",
)
async def competition_leaderboard(
    code: str,
    session: AsyncSession = Depends(get_session),
    oracle: PriceOracle = Depends(get_price_oracle),
) -> list[LeaderboardEntryResponse]:
    """Members ranked by total value (cash + holdings at current prices)."""
    return await _leaderboard(session, oracle, code, LeaderboardScope.INDIVIDUAL)


@router.get(
    "/competition/{code}/team_leaderboard",
    response_model=list[LeaderboardEntryResponse],
    summary="Team leaderboard",
)
async def competition_team_leaderboard(
    code: str,
    session: AsyncSession = Depends(get_session),
    oracle: PriceOracle = Depends(get_price_oracle),
) -> list[LeaderboardEntryResponse]:
    """Entered teams ranked by total value."""
    return await _leaderboard(session, oracle, code, LeaderboardScope.TEAM)


# ============================================================================
# Listings
# ============================================================================


@router.get(
    "/competitions",
    response_model=list[CompetitionSummary],
    summary="List all competitions",
)
async def list_competitions(
    session: AsyncSession = Depends(get_session),
) -> list[CompetitionSummary]:
    competitions = await competition_service.list_competitions(session)
    return [CompetitionSummary.model_validate(c) for c in competitions]


@router.get(
    "/featured_competitions",
    response_model=list[CompetitionSummary],
    summary="List featured competitions",
)
async def featured_competitions(
    session: AsyncSession = Depends(get_session),
) -> list[CompetitionSummary]:
    """Featured competitions that have not ended yet."""
    competitions = await competition_service.featured_competitions(session, utcnow())
    return [CompetitionSummary.model_validate(c) for c in competitions]


@router.get(
    "/quick_pics",
    response_model=list[QuickPicResponse],
    summary="Upcoming Quick Pics",
)
async def quick_pics(
    session: AsyncSession = Depends(get_session),
) -> list[QuickPicResponse]:
    """The next two Quick Pics competitions with seconds until each starts."""
    now = utcnow()
    competitions = await competition_service.upcoming_quick_pics(session, now)
    return [
        QuickPicResponse(
            code=c.code,
            name=c.name,
            start_date=c.start_date,
            end_date=c.end_date,
            countdown=(c.start_date - now).total_seconds(),
        )
        for c in competitions
    ]
