"""
SQLAlchemy models for the stock simulator.

This module exports all models and the Base class for easy imports:
    from stocksim.models import Base, User, Holding, Competition, Team
"""

from stocksim.database import Base
from stocksim.models.user import User, Holding
from stocksim.models.competition import (
    Competition,
    CompetitionHolding,
    CompetitionMember,
    CompetitionState,
)
from stocksim.models.team import (
    CompetitionTeam,
    CompetitionTeamHolding,
    Team,
    TeamHolding,
    TeamMember,
)

__all__ = [
    "Base",
    "User",
    "Holding",
    "Competition",
    "CompetitionState",
    "CompetitionMember",
    "CompetitionHolding",
    "Team",
    "TeamMember",
    "TeamHolding",
    "CompetitionTeam",
    "CompetitionTeamHolding",
]
