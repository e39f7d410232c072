"""API routers."""

from stocksim.routers.admin import router as admin_router
from stocksim.routers.competitions import router as competitions_router
from stocksim.routers.teams import router as teams_router
from stocksim.routers.trading import router as trading_router
from stocksim.routers.users import router as users_router

__all__ = [
    "admin_router",
    "competitions_router",
    "teams_router",
    "trading_router",
    "users_router",
]
