"""Trading API endpoints - buy and sell on any ledger kind."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from stocksim.database import get_session
from stocksim.errors import LedgerError
from stocksim.quotes import PriceOracle, fetch_price, get_price_oracle
from stocksim.schemas.trading import (
    CompetitionTeamTradeRequest,
    CompetitionTradeRequest,
    QuoteResponse,
    TeamTradeRequest,
    TradeRequest,
    TradeResponse,
)
from stocksim.services import ledger as ledger_service
from stocksim.services.ledger import AccountRef, TradeSide

router = APIRouter()


async def _execute(
    session: AsyncSession,
    oracle: PriceOracle,
    ref: AccountRef,
    data: TradeRequest,
    side: TradeSide,
) -> TradeResponse:
    """Run a trade and translate ledger errors into HTTP errors."""
    try:
        result = await ledger_service.trade(
            session, oracle, ref, data.symbol, data.quantity, side
        )
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    verb = "Bought" if side == TradeSide.BUY else "Sold"
    return TradeResponse(
        message=f"{verb} {result.quantity} shares of {result.symbol} at {result.price}",
        symbol=result.symbol,
        side=result.side.value,
        quantity=result.quantity,
        price=result.price,
        cash_balance=result.cash_balance,
    )


# ============================================================================
# Global ledger
# ============================================================================


@router.post("/buy", response_model=TradeResponse, summary="Buy on the global account")
async def buy(
    data: TradeRequest,
    session: AsyncSession = Depends(get_session),
    oracle: PriceOracle = Depends(get_price_oracle),
) -> TradeResponse:
    """Buy shares at the current price with the user's own cash."""
    ref = AccountRef.global_account(data.username)
    return await _execute(session, oracle, ref, data, TradeSide.BUY)


@router.post("/sell", response_model=TradeResponse, summary="Sell on the global account")
async def sell(
    data: TradeRequest,
    session: AsyncSession = Depends(get_session),
    oracle: PriceOracle = Depends(get_price_oracle),
) -> TradeResponse:
    """Sell held shares at the current price."""
    ref = AccountRef.global_account(data.username)
    return await _execute(session, oracle, ref, data, TradeSide.SELL)


# ============================================================================
# Competition ledger
# ============================================================================


@router.post("/competition/buy", response_model=TradeResponse, summary="Buy in a competition")
async def competition_buy(
    data: CompetitionTradeRequest,
    session: AsyncSession = Depends(get_session),
    oracle: PriceOracle = Depends(get_price_oracle),
) -> TradeResponse:
    """Buy on the user's competition ledger. Only inside the competition window."""
    ref = AccountRef.competition(data.username, data.competition_code)
    return await _execute(session, oracle, ref, data, TradeSide.BUY)


@router.post("/competition/sell", response_model=TradeResponse, summary="Sell in a competition")
async def competition_sell(
    data: CompetitionTradeRequest,
    session: AsyncSession = Depends(get_session),
    oracle: PriceOracle = Depends(get_price_oracle),
) -> TradeResponse:
    """Sell on the user's competition ledger. Only inside the competition window."""
    ref = AccountRef.competition(data.username, data.competition_code)
    return await _execute(session, oracle, ref, data, TradeSide.SELL)


# ============================================================================
# Team ledger
# ============================================================================


@router.post("/team/buy", response_model=TradeResponse, summary="Buy for a team")
async def team_buy(
    data: TeamTradeRequest,
    session: AsyncSession = Depends(get_session),
    oracle: PriceOracle = Depends(get_price_oracle),
) -> TradeResponse:
    """Buy on a team ledger. The user must be a member of the team."""
    ref = AccountRef.team(data.username, data.team_id)
    return await _execute(session, oracle, ref, data, TradeSide.BUY)


@router.post("/team/sell", response_model=TradeResponse, summary="Sell for a team")
async def team_sell(
    data: TeamTradeRequest,
    session: AsyncSession = Depends(get_session),
    oracle: PriceOracle = Depends(get_price_oracle),
) -> TradeResponse:
    """Sell on a team ledger. The user must be a member of the team."""
    ref = AccountRef.team(data.username, data.team_id)
    return await _execute(session, oracle, ref, data, TradeSide.SELL)


# ============================================================================
# Competition team ledger
# ============================================================================


@router.post(
    "/competition/team/buy",
    response_model=TradeResponse,
    summary="Buy for a team in a competition",
)
async def competition_team_buy(
    data: CompetitionTeamTradeRequest,
    session: AsyncSession = Depends(get_session),
    oracle: PriceOracle = Depends(get_price_oracle),
) -> TradeResponse:
    """Buy on a team's competition ledger."""
    ref = AccountRef.competition_team(data.username, data.competition_code, data.team_id)
    return await _execute(session, oracle, ref, data, TradeSide.BUY)


@router.post(
    "/competition/team/sell",
    response_model=TradeResponse,
    summary="Sell for a team in a competition",
)
async def competition_team_sell(
    data: CompetitionTeamTradeRequest,
    session: AsyncSession = Depends(get_session),
    oracle: PriceOracle = Depends(get_price_oracle),
) -> TradeResponse:
    """Sell on a team's competition ledger."""
    ref = AccountRef.competition_team(data.username, data.competition_code, data.team_id)
    return await _execute(session, oracle, ref, data, TradeSide.SELL)


# ============================================================================
# Quotes
# ============================================================================


@router.get("/stock/{symbol}", response_model=QuoteResponse, summary="Get a live quote")
async def get_stock(
    symbol: str,
    oracle: PriceOracle = Depends(get_price_oracle),
) -> QuoteResponse:
    """Get the current price of a symbol."""
    symbol = symbol.strip().upper()
    try:
        price = await fetch_price(oracle, symbol)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return QuoteResponse(symbol=symbol, price=price)
