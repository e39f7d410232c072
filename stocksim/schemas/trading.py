"""Pydantic schemas for trading endpoints."""

from decimal import Decimal

from pydantic import AliasChoices, BaseModel, Field


# ============================================================================
# Trade requests (one per ledger kind)
# ============================================================================


class TradeRequest(BaseModel):
    """Buy or sell on the user's global ledger."""

    username: str = Field(..., min_length=1, description="Acting user")
    symbol: str = Field(..., min_length=1, max_length=16, description="Ticker symbol")
    quantity: int = Field(..., gt=0, description="Number of shares")


class CompetitionTradeRequest(TradeRequest):
    """Trade on the user's ledger inside a competition."""

    competition_code: str = Field(..., min_length=1)


class TeamTradeRequest(TradeRequest):
    """Trade on a team ledger; the user must be a team member."""

    team_id: int = Field(..., validation_alias=AliasChoices("team_id", "team_code"))


class CompetitionTeamTradeRequest(TeamTradeRequest):
    """Trade on a team's ledger inside a competition."""

    competition_code: str = Field(..., min_length=1)


# ============================================================================
# Responses
# ============================================================================


class TradeResponse(BaseModel):
    """Result of an executed trade."""

    message: str
    symbol: str
    side: str
    quantity: int
    price: Decimal = Field(..., description="Execution price per share")
    cash_balance: Decimal = Field(..., description="Ledger cash after the trade")


class QuoteResponse(BaseModel):
    """Current price of a symbol."""

    symbol: str
    price: Decimal
