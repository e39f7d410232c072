"""Team API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from stocksim.database import get_session
from stocksim.errors import LedgerError
from stocksim.schemas.competition import MessageResponse
from stocksim.schemas.team import TeamCreate, TeamCreateResponse, TeamJoin
from stocksim.services import teams as team_service

router = APIRouter()


@router.post(
    "/team/create",
    response_model=TeamCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a team",
)
async def create_team(
    data: TeamCreate,
    session: AsyncSession = Depends(get_session),
) -> TeamCreateResponse:
    """Create a team with its own ledger. The creator joins it."""
    try:
        team = await team_service.create_team(session, data.username, data.team_name)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return TeamCreateResponse(message="Team created", team_id=team.id)


@router.post("/team/join", response_model=MessageResponse, summary="Join a team")
async def join_team(
    data: TeamJoin,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Join a team by id. Joining twice is a no-op."""
    try:
        _, created = await team_service.join_team(session, data.username, data.team_id)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return MessageResponse(message="Joined team" if created else "Already in team")
