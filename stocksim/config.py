"""
Runtime configuration for the stock simulator.

All settings come from environment variables and are read once at import.
"""

import os
from decimal import Decimal

# Database URL from environment, defaults to SQLite for local development
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./stocksim.db")
SQLALCHEMY_ECHO = os.getenv("SQLALCHEMY_ECHO") == "1"

# Every new ledger (user, competition member, team, competition team) starts here
STARTING_CASH = Decimal(os.getenv("STARTING_CASH", "100000"))

# Price quotes
ALPHA_VANTAGE_API_KEY = os.getenv("ALPHA_VANTAGE_API_KEY", "demo")
QUOTE_API_URL = os.getenv("QUOTE_API_URL", "https://www.alphavantage.co/query")
QUOTE_TIMEOUT = float(os.getenv("QUOTE_TIMEOUT", "10"))

# Optimistic concurrency: how often a conflicting trade is retried
TRADE_MAX_ATTEMPTS = int(os.getenv("TRADE_MAX_ATTEMPTS", "3"))

# Quick Pics scheduler
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() != "false"
SCHEDULER_TIMEZONE = os.getenv("SCHEDULER_TIMEZONE", "America/New_York")
QUICK_PICS_NAME = "Quick Pics"
QUICK_PICS_FIRST_HOUR = int(os.getenv("QUICK_PICS_FIRST_HOUR", "10"))
QUICK_PICS_COUNT = int(os.getenv("QUICK_PICS_COUNT", "6"))

# Browser origins allowed to call the API
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# OpenTelemetry export (metrics and logs over OTLP/HTTP)
OTLP_ENABLED = os.getenv("OTLP_ENABLED", "true").lower() != "false"
OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT", "http://localhost:4318/v1/metrics")
OTLP_EXPORT_INTERVAL = int(os.getenv("OTLP_EXPORT_INTERVAL", "5000"))
