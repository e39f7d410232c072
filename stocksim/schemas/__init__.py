"""Pydantic schemas for request/response validation."""

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
from stocksim.schemas.team import TeamCreate, TeamCreateResponse, TeamJoin
from stocksim.schemas.trading import (
    CompetitionTeamTradeRequest,
    CompetitionTradeRequest,
    QuoteResponse,
    TeamTradeRequest,
    TradeRequest,
    TradeResponse,
)
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

__all__ = [
    # Admin schemas
    "AdminCompetitionRequest",
    "AdminUserRequest",
    "CompetitionOpenUpdate",
    "CompetitionFeaturedUpdate",
    "RemoveFromCompetition",
    "RemoveFromTeam",
    "StatsResponse",
    "UserListItem",
    # Competition schemas
    "CompetitionCreate",
    "CompetitionCreateResponse",
    "CompetitionJoin",
    "CompetitionTeamJoin",
    "CompetitionSummary",
    "QuickPicResponse",
    "LeaderboardEntryResponse",
    "MessageResponse",
    # Team schemas
    "TeamCreate",
    "TeamCreateResponse",
    "TeamJoin",
    # Trading schemas
    "TradeRequest",
    "CompetitionTradeRequest",
    "TeamTradeRequest",
    "CompetitionTeamTradeRequest",
    "TradeResponse",
    "QuoteResponse",
    # User schemas
    "UserRegister",
    "UserLogin",
    "UserRequest",
    "UserResponse",
    "HoldingValueResponse",
    "AccountValueResponse",
    "CompetitionAccountResponse",
    "TeamAccountResponse",
    "TeamCompetitionAccountResponse",
    "UserOverviewResponse",
]
