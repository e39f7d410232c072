"""Tests for the user service."""

from decimal import Decimal

import pytest
from sqlalchemy import false, select

from stocksim.errors import AlreadyExists, InvalidCredentials, NotFound
from stocksim.models import User
from stocksim.services import users as user_service
from stocksim.services.competitions import join_competition_team
from stocksim.services.ledger import AccountRef, trade
from stocksim.services.users import hash_password, verify_password


class TestPasswords:
    """Password hashing."""

    def test_hash_roundtrip(self):
        stored = hash_password("hunter2")

        assert stored.startswith("pbkdf2_sha256$")
        assert verify_password("hunter2", stored)
        assert not verify_password("hunter3", stored)

    def test_salted(self):
        assert hash_password("same") != hash_password("same")

    def test_malformed_hash(self):
        assert not verify_password("x", "plaintext")


class TestRegistration:
    """Registering and authenticating users."""

    @pytest.mark.asyncio
    async def test_register(self, test_session):
        user = await user_service.register_user(test_session, "carol", "pw", email="c@x.io")

        assert user.cash_balance == Decimal("100000")
        assert user.is_admin is False
        assert user.password_hash != "pw"

    @pytest.mark.asyncio
    async def test_duplicate_username(self, test_session, alice):
        with pytest.raises(AlreadyExists):
            await user_service.register_user(test_session, "alice", "pw")

    @pytest.mark.asyncio
    async def test_duplicate_email(self, test_session):
        await user_service.register_user(test_session, "carol", "pw", email="c@x.io")

        with pytest.raises(AlreadyExists):
            await user_service.register_user(test_session, "dave", "pw", email="c@x.io")

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_reports_already_exists(self, test_session, alice, monkeypatch):
        # Pre-insert lookups miss, as when another request registers the same
        # name between the check and the commit
        def stale_select(*columns):
            return select(*columns).where(false())

        monkeypatch.setattr(user_service, "select", stale_select)

        with pytest.raises(AlreadyExists):
            await user_service.register_user(test_session, "alice", "pw")

        monkeypatch.undo()
        result = await test_session.execute(select(User).where(User.username == "alice"))
        assert len(result.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_authenticate(self, test_session, alice):
        user = await user_service.authenticate(test_session, "alice", "secret")
        assert user.id == alice.id

        with pytest.raises(InvalidCredentials):
            await user_service.authenticate(test_session, "alice", "wrong")
        with pytest.raises(InvalidCredentials):
            await user_service.authenticate(test_session, "ghost", "secret")


class TestGlobalReset:
    """Resetting the global account."""

    @pytest.mark.asyncio
    async def test_reset_restores_cash_and_drops_holdings(self, test_session, oracle, alice):
        await trade(test_session, oracle, AccountRef.global_account("alice"), "AAPL", 10, "buy")

        user = await user_service.reset_global_account(test_session, "alice")

        assert user.cash_balance == Decimal("100000")
        overview = await user_service.get_account_overview(test_session, oracle, "alice")
        assert overview.global_account.holdings == []

    @pytest.mark.asyncio
    async def test_reset_unknown_user(self, test_session):
        with pytest.raises(NotFound):
            await user_service.reset_global_account(test_session, "ghost")


class TestAccountOverview:
    """All ledgers of one user."""

    @pytest.mark.asyncio
    async def test_overview_lists_every_ledger(
        self, test_session, oracle, alice, team, active_competition
    ):
        await join_competition_team(test_session, "alice", active_competition.code, team.id)
        await trade(
            test_session,
            oracle,
            AccountRef.competition("alice", active_competition.code),
            "MSFT",
            1,
            "buy",
        )

        overview = await user_service.get_account_overview(test_session, oracle, "alice")

        assert overview.user.username == "alice"
        assert overview.global_account.total_value == Decimal("100000")
        assert [(c.code, v.cash) for c, v in overview.competition_accounts] == [
            (active_competition.code, Decimal("99700"))
        ]
        assert [t.name for t, _ in overview.team_accounts] == ["Bulls"]
        assert [(c.code, t.name) for c, t, _ in overview.team_competitions] == [
            (active_competition.code, "Bulls")
        ]

    @pytest.mark.asyncio
    async def test_unknown_user(self, test_session, oracle):
        with pytest.raises(NotFound):
            await user_service.get_account_overview(test_session, oracle, "ghost")
