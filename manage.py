#!/usr/bin/env python3
"""
Management script for the stock simulator.

Usage:
    python manage.py db init
    python manage.py db clear
    python manage.py db status
    python manage.py users list
    python manage.py users promote <username> [--revoke]
    python manage.py quickpics run [--date 2026-10-20]
"""

import asyncio
from datetime import datetime, time, UTC

import click
import pytz
from sqlalchemy import func, select

from stocksim.config import SCHEDULER_TIMEZONE
from stocksim.database import AsyncSessionLocal, Base, engine, init_db
from stocksim.errors import LedgerError
from stocksim.models import (
    Competition,
    CompetitionHolding,
    CompetitionMember,
    CompetitionTeam,
    CompetitionTeamHolding,
    Holding,
    Team,
    TeamHolding,
    TeamMember,
    User,
)
from stocksim.scheduler import create_quick_pics
from stocksim.services import admin as admin_service


# ============================================================================
# Direct database operations (internal)
# ============================================================================


async def _clear_db():
    """Drop and recreate all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def _count_records():
    """Count records in each table."""
    async with AsyncSessionLocal() as session:
        counts = {}
        for model in [
            User,
            Holding,
            Competition,
            CompetitionMember,
            CompetitionHolding,
            Team,
            TeamMember,
            TeamHolding,
            CompetitionTeam,
            CompetitionTeamHolding,
        ]:
            result = await session.execute(select(func.count()).select_from(model))
            counts[model.__tablename__] = result.scalar_one()
        return counts


# ============================================================================
# CLI: Main group
# ============================================================================


@click.group()
def cli():
    """Stock simulator management commands."""
    pass


# ============================================================================
# CLI: db
# ============================================================================


@cli.group()
def db():
    """Database management."""
    pass


@db.command("init")
def db_init():
    """Create missing tables."""
    asyncio.run(init_db())
    click.echo("Database initialized.")


@db.command("clear")
@click.confirmation_option(prompt="Are you sure you want to clear all data?")
def db_clear():
    """Clear all data from the database (destructive!)."""
    click.echo("Clearing database...")
    asyncio.run(_clear_db())
    click.echo("Database cleared and tables recreated.")


@db.command("status")
def db_status():
    """Show database status and record counts."""

    async def run():
        await init_db()
        return await _count_records()

    counts = asyncio.run(run())

    click.echo("\nDatabase Status:")
    click.echo("-" * 40)
    for table, count in counts.items():
        click.echo(f"  {table:<25} {count:>10,}")
    click.echo("-" * 40)
    click.echo(f"  {'Total':<25} {sum(counts.values()):>10,}")


# ============================================================================
# CLI: users
# ============================================================================


@cli.group()
def users():
    """Manage users."""
    pass


@users.command("list")
def users_list():
    """Show all users."""

    async def run():
        await init_db()
        async with AsyncSessionLocal() as session:
            return await admin_service.list_users(session)

    users_found = asyncio.run(run())

    if not users_found:
        click.echo("No users found.")
        return

    click.echo(f"\n{'Username':<24} {'Admin':<6} {'Cash':>16}")
    click.echo("-" * 48)
    for u in users_found:
        click.echo(f"{u.username:<24} {'yes' if u.is_admin else '':<6} {u.cash_balance:>16,.2f}")
    click.echo(f"\nTotal: {len(users_found)} users")


@users.command("promote")
@click.argument("username")
@click.option("--revoke", is_flag=True, help="Remove admin rights instead")
def users_promote(username, revoke):
    """Grant (or revoke) admin rights."""

    async def run():
        await init_db()
        async with AsyncSessionLocal() as session:
            return await admin_service.set_admin(session, username, is_admin=not revoke)

    try:
        user = asyncio.run(run())
    except LedgerError as e:
        raise click.ClickException(e.message)

    state = "an admin" if user.is_admin else "no longer an admin"
    click.echo(f"{user.username} is {state}.")


# ============================================================================
# CLI: quickpics
# ============================================================================


@cli.group()
def quickpics():
    """Quick Pics competitions."""
    pass


@quickpics.command("run")
@click.option(
    "--date", "-d",
    "day",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Day to create competitions for (default: today)",
)
def quickpics_run(day):
    """Create one day's Quick Pics competitions now."""
    tz = pytz.timezone(SCHEDULER_TIMEZONE)
    if day is None:
        now = datetime.now(UTC)
    else:
        now = tz.localize(datetime.combine(day.date(), time()))

    async def run():
        await init_db()
        return await create_quick_pics(AsyncSessionLocal, now, tz)

    created = asyncio.run(run())

    if not created:
        click.echo("No Quick Pics created (weekend or all inserts failed).")
        return

    for c in created:
        click.echo(f"  {c.code}  {c.start_date:%Y-%m-%d %H:%M} - {c.end_date:%H:%M} UTC")
    click.echo(f"\nCreated {len(created)} competitions")


if __name__ == "__main__":
    cli()
