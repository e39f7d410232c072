"""
Shared pytest fixtures for testing the stock simulator.

Uses an in-memory SQLite database for fast, isolated tests and a
deterministic price oracle instead of the live quote provider.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from stocksim.config import STARTING_CASH
from stocksim.database import Base, get_session, utcnow
from stocksim.errors import PriceUnavailable
from stocksim.main import app
from stocksim.models import Competition, CompetitionMember, CompetitionTeam, Team, TeamMember, User
from stocksim.quotes import get_price_oracle
from stocksim.services.users import hash_password


# Use in-memory SQLite for tests (fast, isolated)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "secret"


class FakePriceOracle:
    """Price oracle serving fixed prices.

    Unknown symbols and symbols in ``failing`` raise PriceUnavailable.
    """

    def __init__(self, prices: dict[str, str | Decimal] | None = None):
        self.prices = {symbol: Decimal(str(price)) for symbol, price in (prices or {}).items()}
        self.failing: set[str] = set()
        self.calls: list[str] = []

    def set_price(self, symbol: str, price: str | Decimal) -> None:
        self.prices[symbol] = Decimal(str(price))

    def fail(self, symbol: str) -> None:
        self.failing.add(symbol)

    async def get_price(self, symbol: str) -> Decimal:
        self.calls.append(symbol)
        if symbol in self.failing or symbol not in self.prices:
            raise PriceUnavailable(f"No data found for symbol {symbol}")
        return self.prices[symbol]


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio backend for pytest-asyncio."""
    return "asyncio"


@pytest.fixture
def oracle():
    """Oracle with a few well-known prices."""
    return FakePriceOracle({"AAPL": "150.25", "MSFT": "300", "TSLA": "200"})


@pytest_asyncio.fixture
async def test_engine():
    """Create a test database engine.

    Creates tables at the start, drops them at the end.
    Each test gets a fresh database shared by all sessions of the test.
    """
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test database."""
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def test_session(session_factory):
    """Provide a database session for a test.

    Rolls back the session after each test for isolation.
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def test_client(session_factory, oracle):
    """Provide a FastAPI test client with test database and price oracle.

    Overrides the get_session and get_price_oracle dependencies.
    """

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_price_oracle] = lambda: oracle

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


# --- Helper functions and fixtures for creating test data ---


async def make_user(session, username: str, is_admin: bool = False) -> User:
    """Insert a user with the starting cash."""
    user = User(
        username=username,
        password_hash=hash_password(TEST_PASSWORD),
        is_admin=is_admin,
        cash_balance=STARTING_CASH,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def make_competition(
    session,
    code: str,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    **fields,
) -> Competition:
    """Insert a competition with a fixed code."""
    competition = Competition(code=code, start_date=start_date, end_date=end_date, **fields)
    session.add(competition)
    await session.commit()
    await session.refresh(competition)
    return competition


async def add_member(session, competition: Competition, user: User, cash=STARTING_CASH):
    member = CompetitionMember(
        competition_id=competition.id, user_id=user.id, cash_balance=Decimal(cash)
    )
    session.add(member)
    await session.commit()
    return member


@pytest_asyncio.fixture
async def alice(test_session):
    return await make_user(test_session, "alice")


@pytest_asyncio.fixture
async def bob(test_session):
    return await make_user(test_session, "bob")


@pytest_asyncio.fixture
async def admin(test_session):
    return await make_user(test_session, "root", is_admin=True)


@pytest_asyncio.fixture
async def active_competition(test_session, alice):
    """A competition running from an hour ago to an hour from now, alice joined."""
    now = utcnow()
    competition = await make_competition(
        test_session,
        "c0ffee01",
        name="Spring Cup",
        start_date=now - timedelta(hours=1),
        end_date=now + timedelta(hours=1),
    )
    await add_member(test_session, competition, alice)
    return competition


@pytest_asyncio.fixture
async def team(test_session, alice):
    """Team "Bulls" with alice as its only member."""
    t = Team(name="Bulls", created_by=alice.id, cash_balance=STARTING_CASH)
    test_session.add(t)
    await test_session.flush()
    test_session.add(TeamMember(team_id=t.id, user_id=alice.id))
    await test_session.commit()
    await test_session.refresh(t)
    return t


@pytest_asyncio.fixture
async def team_entry(test_session, team, active_competition):
    """The Bulls entered into the active competition."""
    entry = CompetitionTeam(
        competition_id=active_competition.id, team_id=team.id, cash_balance=STARTING_CASH
    )
    test_session.add(entry)
    await test_session.commit()
    return entry
