"""Admin API endpoints - the caller is identified by admin_username."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stocksim.database import get_session
from stocksim.errors import LedgerError
from stocksim.schemas.admin import (
    AdminCompetitionRequest,
    AdminUserRequest,
    CompetitionFeaturedUpdate,
    CompetitionOpenUpdate,
    RemoveFromCompetition,
    RemoveFromTeam,
    StatsResponse,
    UserListItem,
)
from stocksim.schemas.competition import CompetitionSummary, MessageResponse
from stocksim.services import admin as admin_service
from stocksim.services import competitions as competition_service

router = APIRouter()


@router.get("/stats", response_model=StatsResponse, summary="Dashboard counters")
async def stats(
    admin_username: str = Query(...),
    session: AsyncSession = Depends(get_session),
) -> StatsResponse:
    try:
        await admin_service.require_admin(session, admin_username)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    result = await admin_service.get_stats(session)
    return StatsResponse(
        total_users=result.total_users,
        total_competitions=result.total_competitions,
        total_teams=result.total_teams,
    )


@router.get("/users", response_model=list[UserListItem], summary="List all users")
async def list_users(
    admin_username: str = Query(...),
    session: AsyncSession = Depends(get_session),
) -> list[UserListItem]:
    try:
        await admin_service.require_admin(session, admin_username)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    users = await admin_service.list_users(session)
    return [UserListItem.model_validate(u) for u in users]


@router.get(
    "/competitions",
    response_model=list[CompetitionSummary],
    summary="List all competitions",
)
async def list_competitions(
    admin_username: str = Query(...),
    session: AsyncSession = Depends(get_session),
) -> list[CompetitionSummary]:
    try:
        await admin_service.require_admin(session, admin_username)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    competitions = await competition_service.list_competitions(session)
    return [CompetitionSummary.model_validate(c) for c in competitions]


@router.post("/delete_competition", response_model=MessageResponse, summary="Delete a competition")
async def delete_competition(
    data: AdminCompetitionRequest,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Delete a competition including every member and team ledger in it."""
    try:
        await admin_service.delete_competition(
            session, data.admin_username, data.competition_code
        )
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Deleted")


@router.post("/delete_user", response_model=MessageResponse, summary="Delete a user")
async def delete_user(
    data: AdminUserRequest,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Delete a user with their holdings, competition ledgers and team memberships."""
    try:
        await admin_service.delete_user(session, data.admin_username, data.target_username)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="User deleted")


@router.post(
    "/update_competition_open",
    response_model=MessageResponse,
    summary="Open or close a competition",
)
async def update_competition_open(
    data: CompetitionOpenUpdate,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    try:
        await admin_service.set_competition_open(
            session, data.admin_username, data.competition_code, data.is_open
        )
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Updated")


@router.post(
    "/update_featured_status",
    response_model=MessageResponse,
    summary="Feature or unfeature a competition",
)
async def update_featured_status(
    data: CompetitionFeaturedUpdate,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    try:
        await admin_service.set_competition_featured(
            session, data.admin_username, data.competition_code, data.featured
        )
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Updated")


@router.post(
    "/remove_user_from_competition",
    response_model=MessageResponse,
    summary="Remove a user from a competition",
)
async def remove_user_from_competition(
    data: RemoveFromCompetition,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    try:
        await admin_service.remove_user_from_competition(
            session, data.admin_username, data.target_username, data.competition_code
        )
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Removed from competition")


@router.post(
    "/remove_user_from_team",
    response_model=MessageResponse,
    summary="Remove a user from a team",
)
async def remove_user_from_team(
    data: RemoveFromTeam,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    try:
        await admin_service.remove_user_from_team(
            session, data.admin_username, data.target_username, data.team_id
        )
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Removed from team")
