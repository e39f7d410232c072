"""
User model and the user's global (personal) holdings.

The user row itself is the global ledger: cash lives on the user,
positions live in ``holdings``.
"""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stocksim.database import Base
from stocksim.models.ledger import HoldingMixin, LedgerMixin


class User(LedgerMixin, Base):
    """A simulator participant."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(80), unique=True, nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(120), unique=True, nullable=True)

    # Salted PBKDF2 hash, see services.users.hash_password
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)

    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    holdings: Mapped[list["Holding"]] = relationship(
        back_populates="user", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("cash_balance >= 0", name="check_user_cash_non_negative"),
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"User(username={self.username!r}, cash_balance={self.cash_balance})"


class Holding(HoldingMixin, Base):
    """A position in the user's global account."""

    __tablename__ = "holdings"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    user: Mapped["User"] = relationship(back_populates="holdings")

    __table_args__ = (
        UniqueConstraint("user_id", "symbol", name="uq_holding_user_symbol"),
        CheckConstraint("quantity > 0", name="check_holding_quantity_positive"),
    )

    def __repr__(self) -> str:
        return f"Holding(user_id={self.user_id}, symbol={self.symbol!r}, quantity={self.quantity})"
