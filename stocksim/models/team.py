"""
Team models.

A team has one shared ledger of its own (cash on the team row, positions
in TeamHolding) that any member can trade. When a team enters a
competition it gets a separate CompetitionTeam ledger for that
competition only.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stocksim.database import Base
from stocksim.models.ledger import HoldingMixin, LedgerMixin


class Team(LedgerMixin, Base):
    """A group of users trading a shared account."""

    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    created_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    holdings: Mapped[list["TeamHolding"]] = relationship(
        back_populates="team", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("cash_balance >= 0", name="check_team_cash_non_negative"),
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"Team(id={self.id}, name={self.name!r}, cash_balance={self.cash_balance})"


class TeamMember(Base):
    """Grants a user trading rights over a team's ledgers."""

    __tablename__ = "team_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    team_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_user"),
    )


class TeamHolding(HoldingMixin, Base):
    """A position in a team's own ledger."""

    __tablename__ = "team_holdings"

    team_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True
    )

    team: Mapped["Team"] = relationship(back_populates="holdings")

    __table_args__ = (
        UniqueConstraint("team_id", "symbol", name="uq_team_holding_symbol"),
        CheckConstraint("quantity > 0", name="check_team_holding_quantity_positive"),
    )


class CompetitionTeam(LedgerMixin, Base):
    """A team's entry in a competition, with a ledger of its own."""

    __tablename__ = "competition_teams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    competition_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    team_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True
    )

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    holdings: Mapped[list["CompetitionTeamHolding"]] = relationship(
        back_populates="competition_team", passive_deletes=True
    )

    __table_args__ = (
        UniqueConstraint("competition_id", "team_id", name="uq_competition_team"),
        CheckConstraint("cash_balance >= 0", name="check_competition_team_cash_non_negative"),
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"CompetitionTeam(competition_id={self.competition_id}, "
            f"team_id={self.team_id}, cash_balance={self.cash_balance})"
        )


class CompetitionTeamHolding(HoldingMixin, Base):
    """A position held by a team inside one competition."""

    __tablename__ = "competition_team_holdings"

    competition_team_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("competition_teams.id", ondelete="CASCADE"), nullable=False, index=True
    )

    competition_team: Mapped["CompetitionTeam"] = relationship(back_populates="holdings")

    __table_args__ = (
        UniqueConstraint("competition_team_id", "symbol", name="uq_competition_team_holding_symbol"),
        CheckConstraint("quantity > 0", name="check_competition_team_holding_quantity_positive"),
    )
