"""Pydantic schemas for user endpoints."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class UserRegister(BaseModel):
    """Request schema for registration."""

    username: str = Field(..., min_length=1, max_length=80)
    password: str = Field(..., min_length=1)
    email: str | None = Field(default=None, max_length=120)


class UserLogin(BaseModel):
    """Request schema for login."""

    username: str
    password: str


class UserRequest(BaseModel):
    """Request that only names the acting user."""

    username: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    """Response schema for a created user."""

    id: int
    username: str
    email: str | None
    is_admin: bool
    cash_balance: Decimal
    created_at: datetime

    model_config = {"from_attributes": True}


# ============================================================================
# Account overview
# ============================================================================


class HoldingValueResponse(BaseModel):
    """A holding marked to market."""

    symbol: str
    quantity: int
    buy_price: Decimal
    current_price: Decimal
    total_value: Decimal
    pnl: Decimal
    price_available: bool = Field(
        True, description="False if the quote failed and the holding is valued at 0"
    )


class AccountValueResponse(BaseModel):
    """Cash, holdings and totals of one ledger."""

    cash_balance: Decimal
    portfolio: list[HoldingValueResponse] = Field(default_factory=list)
    total_value: Decimal
    pnl: Decimal


class CompetitionAccountResponse(AccountValueResponse):
    """The user's ledger in one competition."""

    code: str
    name: str | None


class TeamAccountResponse(AccountValueResponse):
    """A team ledger the user can trade."""

    team_id: int
    name: str


class TeamCompetitionAccountResponse(AccountValueResponse):
    """A team's ledger in one competition."""

    code: str
    name: str | None
    team_id: int
    team_name: str


class UserOverviewResponse(BaseModel):
    """Every ledger of a user, valued at current prices."""

    username: str
    is_admin: bool
    global_account: AccountValueResponse
    competition_accounts: list[CompetitionAccountResponse] = Field(default_factory=list)
    team_accounts: list[TeamAccountResponse] = Field(default_factory=list)
    team_competitions: list[TeamCompetitionAccountResponse] = Field(default_factory=list)
