"""Pydantic schemas for admin endpoints."""

from decimal import Decimal

from pydantic import AliasChoices, BaseModel, Field


class AdminCompetitionRequest(BaseModel):
    """Admin action on a competition."""

    admin_username: str
    competition_code: str


class AdminUserRequest(BaseModel):
    """Admin action on a user."""

    admin_username: str
    target_username: str


class CompetitionOpenUpdate(AdminCompetitionRequest):
    """Open or close a competition."""

    is_open: bool


class CompetitionFeaturedUpdate(AdminCompetitionRequest):
    """Feature or unfeature a competition."""

    featured: bool = Field(
        default=False, validation_alias=AliasChoices("featured", "feature_competition")
    )


class RemoveFromCompetition(AdminUserRequest):
    """Drop a user and their ledger from a competition."""

    competition_code: str


class RemoveFromTeam(AdminUserRequest):
    """Revoke a user's team membership."""

    team_id: int = Field(..., validation_alias=AliasChoices("team_id", "team_code"))


class StatsResponse(BaseModel):
    """Dashboard counters."""

    total_users: int
    total_competitions: int
    total_teams: int


class UserListItem(BaseModel):
    """User row in the admin user list."""

    id: int
    username: str
    is_admin: bool
    cash_balance: Decimal

    model_config = {"from_attributes": True}
