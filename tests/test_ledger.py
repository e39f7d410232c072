"""Tests for the account ledger (buy/sell on all four ledger kinds)."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select, text

from conftest import add_member, make_competition
from stocksim.database import utcnow
from stocksim.errors import (
    CompetitionEnded,
    CompetitionNotStarted,
    InsufficientFunds,
    InsufficientShares,
    InvalidRequest,
    NoSuchHolding,
    NotFound,
    PriceUnavailable,
    TradeConflict,
    Unauthorized,
)
from stocksim.models import Holding, TeamHolding
from stocksim.services import ledger as ledger_module
from stocksim.services.ledger import AccountRef, TradeSide, resolve_ledger, trade


async def _holdings(session, user):
    result = await session.execute(select(Holding).where(Holding.user_id == user.id))
    return list(result.scalars().all())


# ============================================================================
# Global ledger
# ============================================================================


class TestGlobalTrades:
    """Buy and sell on a user's own account."""

    @pytest.mark.asyncio
    async def test_buy_debits_cash_and_creates_holding(self, test_session, oracle, alice):
        result = await trade(
            test_session, oracle, AccountRef.global_account("alice"), "AAPL", 10, TradeSide.BUY
        )

        assert result.price == Decimal("150.25")
        assert result.amount == Decimal("1502.50")
        assert result.cash_balance == Decimal("98497.50")

        await test_session.refresh(alice)
        assert alice.cash_balance == Decimal("98497.50")
        holdings = await _holdings(test_session, alice)
        assert len(holdings) == 1
        assert holdings[0].symbol == "AAPL"
        assert holdings[0].quantity == 10
        assert holdings[0].buy_price == Decimal("150.25")

    @pytest.mark.asyncio
    async def test_symbol_is_normalized(self, test_session, oracle, alice):
        result = await trade(
            test_session, oracle, AccountRef.global_account("alice"), " aapl ", 1, "buy"
        )

        assert result.symbol == "AAPL"
        assert result.side == TradeSide.BUY

    @pytest.mark.asyncio
    async def test_repeat_buy_keeps_first_buy_price(self, test_session, oracle, alice):
        ref = AccountRef.global_account("alice")
        await trade(test_session, oracle, ref, "AAPL", 10, TradeSide.BUY)

        oracle.set_price("AAPL", "160")
        await trade(test_session, oracle, ref, "AAPL", 5, TradeSide.BUY)

        holdings = await _holdings(test_session, alice)
        assert len(holdings) == 1
        assert holdings[0].quantity == 15
        assert holdings[0].buy_price == Decimal("150.25")

    @pytest.mark.asyncio
    async def test_partial_sell_credits_cash(self, test_session, oracle, alice):
        ref = AccountRef.global_account("alice")
        await trade(test_session, oracle, ref, "AAPL", 10, TradeSide.BUY)

        oracle.set_price("AAPL", "155")
        result = await trade(test_session, oracle, ref, "AAPL", 4, TradeSide.SELL)

        assert result.cash_balance == Decimal("98497.50") + Decimal("620")
        holdings = await _holdings(test_session, alice)
        assert holdings[0].quantity == 6

    @pytest.mark.asyncio
    async def test_round_trip_at_same_price_restores_cash(self, test_session, oracle, alice):
        ref = AccountRef.global_account("alice")
        await trade(test_session, oracle, ref, "AAPL", 10, TradeSide.BUY)
        result = await trade(test_session, oracle, ref, "AAPL", 10, TradeSide.SELL)

        assert result.cash_balance == Decimal("100000")
        # Selling the full position removes the row
        assert await _holdings(test_session, alice) == []

    @pytest.mark.asyncio
    async def test_buy_exactly_all_cash(self, test_session, oracle, alice):
        oracle.set_price("BRK", "25000")
        result = await trade(
            test_session, oracle, AccountRef.global_account("alice"), "BRK", 4, TradeSide.BUY
        )

        assert result.cash_balance == Decimal("0")


class TestRejectedTrades:
    """Rejected trades leave cash and holdings untouched."""

    @pytest.mark.asyncio
    async def test_insufficient_funds(self, test_session, oracle, alice):
        with pytest.raises(InsufficientFunds):
            await trade(
                test_session, oracle, AccountRef.global_account("alice"), "AAPL", 1000, "buy"
            )

        await test_session.refresh(alice)
        assert alice.cash_balance == Decimal("100000")
        assert await _holdings(test_session, alice) == []

    @pytest.mark.asyncio
    async def test_insufficient_shares(self, test_session, oracle, alice):
        ref = AccountRef.global_account("alice")
        await trade(test_session, oracle, ref, "AAPL", 10, TradeSide.BUY)

        with pytest.raises(InsufficientShares):
            await trade(test_session, oracle, ref, "AAPL", 11, TradeSide.SELL)

        await test_session.refresh(alice)
        assert alice.cash_balance == Decimal("98497.50")
        holdings = await _holdings(test_session, alice)
        assert holdings[0].quantity == 10

    @pytest.mark.asyncio
    async def test_sell_without_holding(self, test_session, oracle, alice):
        with pytest.raises(NoSuchHolding) as exc_info:
            await trade(
                test_session, oracle, AccountRef.global_account("alice"), "MSFT", 1, "sell"
            )

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_price_unavailable_fails_trade(self, test_session, oracle, alice):
        oracle.fail("AAPL")

        with pytest.raises(PriceUnavailable) as exc_info:
            await trade(
                test_session, oracle, AccountRef.global_account("alice"), "AAPL", 1, "buy"
            )

        assert exc_info.value.status_code == 502
        await test_session.refresh(alice)
        assert alice.cash_balance == Decimal("100000")
        assert await _holdings(test_session, alice) == []

    @pytest.mark.asyncio
    async def test_zero_price_fails_trade(self, test_session, oracle, alice):
        oracle.set_price("PENNY", "0")

        with pytest.raises(PriceUnavailable):
            await trade(
                test_session, oracle, AccountRef.global_account("alice"), "PENNY", 1, "buy"
            )

    @pytest.mark.asyncio
    async def test_non_positive_quantity(self, test_session, oracle, alice):
        with pytest.raises(InvalidRequest):
            await trade(
                test_session, oracle, AccountRef.global_account("alice"), "AAPL", 0, "buy"
            )
        assert oracle.calls == []

    @pytest.mark.asyncio
    async def test_unknown_user(self, test_session, oracle):
        with pytest.raises(NotFound):
            await trade(
                test_session, oracle, AccountRef.global_account("nobody"), "AAPL", 1, "buy"
            )
        # Validation happens before the quote
        assert oracle.calls == []


# ============================================================================
# Competition ledgers
# ============================================================================


class TestCompetitionTrades:
    """Trades on a member's competition ledger."""

    @pytest.mark.asyncio
    async def test_competition_ledger_is_separate(
        self, test_session, oracle, alice, active_competition
    ):
        ref = AccountRef.competition("alice", active_competition.code)
        result = await trade(test_session, oracle, ref, "MSFT", 10, TradeSide.BUY)

        assert result.cash_balance == Decimal("97000")
        ledger = await resolve_ledger(test_session, ref)
        holding = await ledger.get_holding(test_session, "MSFT")
        assert holding.quantity == 10

        await test_session.refresh(alice)
        assert alice.cash_balance == Decimal("100000")
        assert await _holdings(test_session, alice) == []

    @pytest.mark.asyncio
    async def test_not_started(self, test_session, oracle, alice):
        now = utcnow()
        competition = await make_competition(
            test_session, "future01", start_date=now + timedelta(hours=1)
        )
        await add_member(test_session, competition, alice)

        with pytest.raises(CompetitionNotStarted):
            await trade(
                test_session,
                oracle,
                AccountRef.competition("alice", "future01"),
                "AAPL",
                1,
                "buy",
                now=now,
            )
        assert oracle.calls == []

    @pytest.mark.asyncio
    async def test_ended(self, test_session, oracle, alice):
        now = utcnow()
        competition = await make_competition(
            test_session,
            "past0001",
            start_date=now - timedelta(days=2),
            end_date=now - timedelta(days=1),
        )
        await add_member(test_session, competition, alice)

        with pytest.raises(CompetitionEnded):
            await trade(
                test_session,
                oracle,
                AccountRef.competition("alice", "past0001"),
                "AAPL",
                1,
                "buy",
                now=now,
            )

    @pytest.mark.asyncio
    async def test_open_ended_competition(self, test_session, oracle, alice):
        competition = await make_competition(test_session, "forever1")
        await add_member(test_session, competition, alice)

        result = await trade(
            test_session, oracle, AccountRef.competition("alice", "forever1"), "AAPL", 1, "buy"
        )
        assert result.quantity == 1

    @pytest.mark.asyncio
    async def test_window_bounds_are_inclusive(self, test_session, oracle, alice):
        now = utcnow()
        competition = await make_competition(
            test_session, "bounds01", start_date=now, end_date=now + timedelta(hours=1)
        )
        await add_member(test_session, competition, alice)
        ref = AccountRef.competition("alice", "bounds01")

        await trade(test_session, oracle, ref, "AAPL", 1, "buy", now=now)
        await trade(test_session, oracle, ref, "AAPL", 1, "sell", now=now + timedelta(hours=1))

    @pytest.mark.asyncio
    async def test_non_member(self, test_session, oracle, bob, active_competition):
        with pytest.raises(NotFound):
            await trade(
                test_session,
                oracle,
                AccountRef.competition("bob", active_competition.code),
                "AAPL",
                1,
                "buy",
            )

    @pytest.mark.asyncio
    async def test_unknown_competition(self, test_session, oracle, alice):
        with pytest.raises(NotFound):
            await trade(
                test_session, oracle, AccountRef.competition("alice", "nope"), "AAPL", 1, "buy"
            )


# ============================================================================
# Team ledgers
# ============================================================================


class TestTeamTrades:
    """Trades on team and competition-team ledgers."""

    @pytest.mark.asyncio
    async def test_member_trades_team_ledger(self, test_session, oracle, alice, team):
        result = await trade(
            test_session, oracle, AccountRef.team("alice", team.id), "TSLA", 5, TradeSide.BUY
        )

        assert result.cash_balance == Decimal("99000")
        holdings = await test_session.execute(
            select(TeamHolding).where(TeamHolding.team_id == team.id)
        )
        assert [h.symbol for h in holdings.scalars()] == ["TSLA"]

    @pytest.mark.asyncio
    async def test_non_member_is_unauthorized(self, test_session, oracle, bob, team):
        with pytest.raises(Unauthorized) as exc_info:
            await trade(test_session, oracle, AccountRef.team("bob", team.id), "TSLA", 1, "buy")

        assert exc_info.value.status_code == 403
        await test_session.refresh(team)
        assert team.cash_balance == Decimal("100000")

    @pytest.mark.asyncio
    async def test_unknown_team(self, test_session, oracle, alice):
        with pytest.raises(NotFound):
            await trade(test_session, oracle, AccountRef.team("alice", 999), "TSLA", 1, "buy")

    @pytest.mark.asyncio
    async def test_competition_team_ledger(
        self, test_session, oracle, alice, team, team_entry, active_competition
    ):
        ref = AccountRef.competition_team("alice", active_competition.code, team.id)
        result = await trade(test_session, oracle, ref, "AAPL", 2, TradeSide.BUY)

        assert result.cash_balance == Decimal("99699.50")
        await test_session.refresh(team)
        assert team.cash_balance == Decimal("100000")

    @pytest.mark.asyncio
    async def test_competition_team_not_entered(
        self, test_session, oracle, alice, team, active_competition
    ):
        ref = AccountRef.competition_team("alice", active_competition.code, team.id)
        with pytest.raises(NotFound):
            await trade(test_session, oracle, ref, "AAPL", 1, "buy")


# ============================================================================
# Concurrency
# ============================================================================


def _bump_version_on_apply(monkeypatch, times: int) -> list:
    """Make the first ``times`` mutation attempts lose a version race."""
    real_apply = ledger_module._apply
    calls = []

    async def conflicting_apply(session, ledger, *args):
        calls.append(ledger.owner.id)
        if len(calls) <= times:
            await session.execute(
                text("UPDATE users SET version_id = version_id + 1 WHERE id = :id"),
                {"id": ledger.owner.id},
            )
        return await real_apply(session, ledger, *args)

    monkeypatch.setattr(ledger_module, "_apply", conflicting_apply)
    return calls


class TestOptimisticLocking:
    """Concurrent writers of the same ledger."""

    @pytest.mark.asyncio
    async def test_conflict_is_retried(self, test_session, oracle, alice, monkeypatch):
        calls = _bump_version_on_apply(monkeypatch, times=1)

        result = await trade(
            test_session, oracle, AccountRef.global_account("alice"), "AAPL", 10, "buy"
        )

        assert len(calls) == 2
        assert result.cash_balance == Decimal("98497.50")
        holdings = await _holdings(test_session, alice)
        assert [h.quantity for h in holdings] == [10]

    @pytest.mark.asyncio
    async def test_conflict_retries_exhausted(self, test_session, oracle, alice, monkeypatch):
        calls = _bump_version_on_apply(monkeypatch, times=10)

        with pytest.raises(TradeConflict):
            await trade(
                test_session,
                oracle,
                AccountRef.global_account("alice"),
                "AAPL",
                10,
                "buy",
                max_attempts=3,
            )

        assert len(calls) == 3
        await test_session.refresh(alice)
        assert alice.cash_balance == Decimal("100000")
        assert await _holdings(test_session, alice) == []
