"""Pydantic schemas for competition endpoints."""

from datetime import datetime
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, Field, field_validator


class CompetitionCreate(BaseModel):
    """Request schema for creating a competition.

    Dates may be ISO dates (``2026-10-20``) or datetimes; an empty string
    means no bound.
    """

    username: str = Field(..., min_length=1, description="Creator")
    competition_name: str | None = Field(
        default=None,
        max_length=80,
        validation_alias=AliasChoices("competition_name", "name"),
    )
    start_date: datetime | None = None
    end_date: datetime | None = None
    max_position_limit: str | None = Field(default=None, max_length=16)
    featured: bool = Field(
        default=False,
        validation_alias=AliasChoices("featured", "feature_competition"),
        description="Admins only",
    )
    is_open: bool = Field(default=True, description="Joinable without an access code")

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def blank_date_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class CompetitionCreateResponse(BaseModel):
    """Response for a created competition."""

    message: str
    competition_code: str


class CompetitionJoin(BaseModel):
    """Request schema for joining a competition."""

    username: str = Field(..., min_length=1)
    competition_code: str = Field(..., min_length=1)
    access_code: str | None = Field(default=None, description="Required for closed competitions")


class CompetitionTeamJoin(BaseModel):
    """Request schema for entering a team into a competition."""

    username: str = Field(..., min_length=1, description="Acting team member")
    competition_code: str = Field(..., min_length=1)
    team_id: int = Field(..., validation_alias=AliasChoices("team_id", "team_code"))


class MessageResponse(BaseModel):
    """Plain confirmation message."""

    message: str


class CompetitionSummary(BaseModel):
    """Public view of a competition."""

    code: str
    name: str | None
    start_date: datetime | None
    end_date: datetime | None
    featured: bool
    is_open: bool

    model_config = {"from_attributes": True}


class QuickPicResponse(BaseModel):
    """An upcoming Quick Pics competition."""

    code: str
    name: str | None
    start_date: datetime
    end_date: datetime
    countdown: float = Field(..., description="Seconds until the competition starts")


class LeaderboardEntryResponse(BaseModel):
    """One row of a leaderboard, highest value first."""

    name: str
    total_value: Decimal
    pnl: Decimal
