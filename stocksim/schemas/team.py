"""Pydantic schemas for team endpoints."""

from pydantic import AliasChoices, BaseModel, Field


class TeamCreate(BaseModel):
    """Request schema for creating a team."""

    username: str = Field(..., min_length=1, description="Creator, becomes first member")
    team_name: str = Field(
        ...,
        min_length=1,
        max_length=80,
        validation_alias=AliasChoices("team_name", "name"),
    )


class TeamCreateResponse(BaseModel):
    """Response for a created team."""

    message: str
    team_id: int


class TeamJoin(BaseModel):
    """Request schema for joining a team."""

    username: str = Field(..., min_length=1)
    team_id: int = Field(..., validation_alias=AliasChoices("team_id", "team_code"))
