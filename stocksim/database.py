"""
Database configuration for the stock simulator.

Uses async SQLAlchemy with SQLite (local) or PostgreSQL (production).
"""

from datetime import datetime, UTC

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from stocksim.config import DATABASE_URL, SQLALCHEMY_ECHO

# SQLALCHEMY_ECHO=1 logs every statement
engine = create_async_engine(DATABASE_URL, echo=SQLALCHEMY_ECHO)

# Objects stay readable after commit; trade results are built from them
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the storage convention)."""
    return datetime.now(UTC).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


async def init_db() -> None:
    """Create missing tables (application startup and manage.py)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncSession:
    """Dependency that provides a database session.

    Usage in FastAPI:
        @app.get("/example")
        async def example(session: AsyncSession = Depends(get_session)):
            ...
    """
    async with AsyncSessionLocal() as session:
        yield session
