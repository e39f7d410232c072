"""
Competition models.

A competition is a time-boxed (or open-ended) contest. Each joining user
gets a CompetitionMember row, which is an independent ledger with its own
cash and CompetitionHolding rows.
"""

import enum
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stocksim.database import Base
from stocksim.models.ledger import HoldingMixin, LedgerMixin


class CompetitionState(str, enum.Enum):
    """Derived lifecycle state; never stored."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    CLOSED = "closed"


class Competition(Base):
    """A trading competition identified by a short join code."""

    __tablename__ = "competitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Short hex code used to join; unique across all competitions
    code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False, index=True)

    name: Mapped[str | None] = mapped_column(String(80), nullable=True)

    # NULL for competitions generated by the scheduler
    created_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    # Naive UTC; NULL means unbounded on that side
    start_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # When False, joining requires the code as an access code
    is_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Advisory only, e.g. "20%" or "50000"; not enforced by the ledger
    max_position_limit: Mapped[str | None] = mapped_column(String(16), nullable=True)

    def state_at(self, now: datetime) -> CompetitionState:
        """Lifecycle state of the competition at ``now`` (naive UTC)."""
        if self.start_date is not None and now < self.start_date:
            return CompetitionState.SCHEDULED
        if self.end_date is not None and now > self.end_date:
            return CompetitionState.CLOSED
        return CompetitionState.ACTIVE

    def __repr__(self) -> str:
        return f"Competition(code={self.code!r}, name={self.name!r})"


class CompetitionMember(LedgerMixin, Base):
    """A user's participation in a competition, with its own ledger."""

    __tablename__ = "competition_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    competition_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    holdings: Mapped[list["CompetitionHolding"]] = relationship(
        back_populates="member", passive_deletes=True
    )

    __table_args__ = (
        UniqueConstraint("competition_id", "user_id", name="uq_competition_user"),
        CheckConstraint("cash_balance >= 0", name="check_member_cash_non_negative"),
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"CompetitionMember(competition_id={self.competition_id}, "
            f"user_id={self.user_id}, cash_balance={self.cash_balance})"
        )


class CompetitionHolding(HoldingMixin, Base):
    """A position held by a competition member."""

    __tablename__ = "competition_holdings"

    competition_member_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("competition_members.id", ondelete="CASCADE"), nullable=False, index=True
    )

    member: Mapped["CompetitionMember"] = relationship(back_populates="holdings")

    __table_args__ = (
        UniqueConstraint("competition_member_id", "symbol", name="uq_competition_holding_symbol"),
        CheckConstraint("quantity > 0", name="check_competition_holding_quantity_positive"),
    )
