"""User API endpoints - registration, login and account overview."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stocksim.database import get_session
from stocksim.errors import LedgerError
from stocksim.quotes import PriceOracle, get_price_oracle
from stocksim.schemas.competition import MessageResponse
from stocksim.schemas.user import (
    AccountValueResponse,
    CompetitionAccountResponse,
    HoldingValueResponse,
    TeamAccountResponse,
    TeamCompetitionAccountResponse,
    UserLogin,
    UserOverviewResponse,
    UserRegister,
    UserRequest,
    UserResponse,
)
from stocksim.services import users as user_service
from stocksim.services.users import AccountOverview
from stocksim.services.valuation import Valuation

router = APIRouter()


def _account_fields(valuation: Valuation) -> dict:
    return {
        "cash_balance": valuation.cash,
        "portfolio": [
            HoldingValueResponse(
                symbol=h.symbol,
                quantity=h.quantity,
                buy_price=h.buy_price,
                current_price=h.current_price,
                total_value=h.value,
                pnl=h.pnl,
                price_available=h.price_available,
            )
            for h in valuation.holdings
        ],
        "total_value": valuation.total_value,
        "pnl": valuation.pnl,
    }


def _overview_response(overview: AccountOverview) -> UserOverviewResponse:
    return UserOverviewResponse(
        username=overview.user.username,
        is_admin=overview.user.is_admin,
        global_account=AccountValueResponse(**_account_fields(overview.global_account)),
        competition_accounts=[
            CompetitionAccountResponse(
                code=competition.code, name=competition.name, **_account_fields(valuation)
            )
            for competition, valuation in overview.competition_accounts
        ],
        team_accounts=[
            TeamAccountResponse(team_id=team.id, name=team.name, **_account_fields(valuation))
            for team, valuation in overview.team_accounts
        ],
        team_competitions=[
            TeamCompetitionAccountResponse(
                code=competition.code,
                name=competition.name,
                team_id=team.id,
                team_name=team.name,
                **_account_fields(valuation),
            )
            for competition, team, valuation in overview.team_competitions
        ],
    )


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a user",
)
async def register(
    data: UserRegister,
    session: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Create a user with a funded global account."""
    try:
        user = await user_service.register_user(
            session, data.username, data.password, email=data.email
        )
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=UserOverviewResponse, summary="Log in")
async def login(
    data: UserLogin,
    session: AsyncSession = Depends(get_session),
    oracle: PriceOracle = Depends(get_price_oracle),
) -> UserOverviewResponse:
    """Check credentials and return the user's account overview."""
    try:
        user = await user_service.authenticate(session, data.username, data.password)
        overview = await user_service.get_account_overview(session, oracle, user.username)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return _overview_response(overview)


@router.get("/user", response_model=UserOverviewResponse, summary="Get account overview")
async def get_user(
    username: str = Query(..., min_length=1),
    session: AsyncSession = Depends(get_session),
    oracle: PriceOracle = Depends(get_price_oracle),
) -> UserOverviewResponse:
    """Every ledger of the user valued at current prices.

    Holdings whose quote fails are valued at 0 and flagged with
    **price_available = false**.
    """
    try:
        overview = await user_service.get_account_overview(session, oracle, username)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return _overview_response(overview)


@router.post("/reset_global", response_model=MessageResponse, summary="Reset global account")
async def reset_global(
    data: UserRequest,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Restore the starting cash and drop all global holdings."""
    try:
        await user_service.reset_global_account(session, data.username)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Global account reset")
