"""Quick Pics scheduler.

Every day at midnight (scheduler timezone) a batch of one-hour "Quick Pics"
competitions is created for that day's trading hours. Weekends are skipped.
Each competition is inserted in its own transaction; a failed insert is
logged and the remaining windows are still attempted.
"""

import logging
from collections.abc import Callable
from datetime import date, datetime, time, timedelta, UTC

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stocksim import telemetry
from stocksim.config import (
    QUICK_PICS_COUNT,
    QUICK_PICS_FIRST_HOUR,
    QUICK_PICS_NAME,
    SCHEDULER_TIMEZONE,
)
from stocksim.database import AsyncSessionLocal, as_naive_utc
from stocksim.models import Competition
from stocksim.services.competitions import insert_competition

logger = logging.getLogger(__name__)

WINDOW = timedelta(hours=1)


def system_clock() -> datetime:
    """Current time, timezone aware (UTC)."""
    return datetime.now(UTC)


def quick_pics_windows(
    day: date,
    tz: pytz.BaseTzInfo,
    first_hour: int = QUICK_PICS_FIRST_HOUR,
    count: int = QUICK_PICS_COUNT,
) -> list[tuple[datetime, datetime]]:
    """Consecutive one-hour windows on ``day`` as naive UTC (start, end) pairs.

    The first window starts at ``first_hour`` local time in ``tz``.
    """
    first_start = as_naive_utc(tz.localize(datetime.combine(day, time(hour=first_hour))))
    return [
        (first_start + i * WINDOW, first_start + (i + 1) * WINDOW)
        for i in range(count)
    ]


async def create_quick_pics(
    session_factory: async_sessionmaker[AsyncSession],
    now: datetime,
    tz: pytz.BaseTzInfo,
    first_hour: int = QUICK_PICS_FIRST_HOUR,
    count: int = QUICK_PICS_COUNT,
) -> list[Competition]:
    """Create the day's Quick Pics competitions.

    Args:
        session_factory: Creates one session per competition
        now: Trigger time; naive values are taken as UTC
        tz: Timezone that defines the day and the window hours
        first_hour: Local hour of the first window
        count: Number of windows

    Returns:
        The competitions that were created (empty on weekends)
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    today = now.astimezone(tz).date()

    if today.weekday() >= 5:
        logger.info("Weekend, no Quick Pics created", extra={"day": today.isoformat()})
        return []

    created = []
    for start, end in quick_pics_windows(today, tz, first_hour, count):
        try:
            async with session_factory() as session:
                competition = await insert_competition(
                    session,
                    name=QUICK_PICS_NAME,
                    created_by=None,
                    start_date=start,
                    end_date=end,
                    featured=True,
                    is_open=True,
                    max_position_limit=None,
                )
        except Exception:
            logger.exception(
                "Failed to create Quick Pics competition",
                extra={"start_date": start.isoformat()},
            )
            continue

        telemetry.record_competition_created("scheduler")
        created.append(competition)

    logger.info(
        "Quick Pics created",
        extra={"day": today.isoformat(), "created": len(created), "expected": count},
    )
    return created


class QuickPicsScheduler:
    """Runs ``create_quick_pics`` daily at 00:00 in the scheduler timezone."""

    JOB_ID = "quick_pics"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        clock: Callable[[], datetime] = system_clock,
        timezone: str = SCHEDULER_TIMEZONE,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.timezone = pytz.timezone(timezone)
        self._scheduler = AsyncIOScheduler(timezone=self.timezone)

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        """Register the daily job and start the scheduler (needs a running loop)."""
        self._scheduler.add_job(
            self.run_once,
            CronTrigger(hour=0, minute=0, timezone=self.timezone),
            id=self.JOB_ID,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=3600,
        )
        self._scheduler.start()
        logger.info("Quick Pics scheduler started", extra={"timezone": str(self.timezone)})

    def shutdown(self) -> None:
        """Stop the scheduler without waiting for a running job."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    def next_run_time(self) -> datetime | None:
        """When the daily job fires next, or None if not scheduled."""
        job = self._scheduler.get_job(self.JOB_ID)
        return job.next_run_time if job else None

    async def run_once(self) -> list[Competition]:
        """One scheduler tick. Never raises; failures go to the log."""
        try:
            created = await create_quick_pics(self.session_factory, self.clock(), self.timezone)
        except Exception:
            logger.exception("Quick Pics run failed")
            telemetry.record_scheduler_run("failed")
            return []

        telemetry.record_scheduler_run("created" if created else "skipped")
        return created
