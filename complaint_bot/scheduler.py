"""
Maintenance scheduler.

Wires the core's maintenance hooks to APScheduler cron triggers in the
configured timezone:

- membership check, pending reminders: daily at 00:00
- spreadsheet export to admins: every third day at 00:00
- weekly statistics: Monday 09:00
- group announcement: 09:00 and 15:00
- status report: every STATUS_REPORT_MINUTES minutes (when > 0)
- housekeeping (idle sessions, expired rate-limit windows): every 15 minutes
"""

import logging
from typing import Awaitable, Callable, Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from .config import Settings

logger = logging.getLogger(__name__)

HOUSEKEEPING_MINUTES = 15


def _job(name: str, hook: Callable[[], Awaitable[object]]) -> Callable[[], Awaitable[None]]:
    async def run() -> None:
        logger.info("Starting scheduled job %s", name)
        try:
            await hook()
        except Exception as e:
            # Don't raise - one failed run must not unschedule the job
            logger.error(f"Scheduled job {name} failed: {e}", exc_info=True)
        else:
            logger.info("Scheduled job %s finished", name)

    return run


def build_scheduler(core, settings: Settings, scheduler: Optional[AsyncIOScheduler] = None) -> AsyncIOScheduler:
    """Register every maintenance job. The caller starts the scheduler."""
    tz = ZoneInfo(settings.timezone)
    scheduler = scheduler or AsyncIOScheduler(timezone=tz)

    jobs = [
        ("membership_check", core.run_membership_check, CronTrigger(hour=0, minute=0, timezone=tz)),
        ("daily_reminder", core.run_daily_reminder, CronTrigger(hour=0, minute=0, timezone=tz)),
        ("periodic_export", core.run_periodic_export, CronTrigger(day="*/3", hour=0, minute=0, timezone=tz)),
        ("weekly_stats", core.run_weekly_stats, CronTrigger(day_of_week="mon", hour=9, minute=0, timezone=tz)),
        ("group_announcement", core.run_group_announcement, CronTrigger(hour="9,15", minute=0, timezone=tz)),
    ]
    if settings.status_report_minutes > 0:
        report_every = IntervalTrigger(minutes=settings.status_report_minutes, timezone=tz)
        jobs.append(("status_report", core.run_status_report, report_every))
    jobs.append(
        ("housekeeping", core.run_housekeeping, IntervalTrigger(minutes=HOUSEKEEPING_MINUTES, timezone=tz))
    )

    for name, hook, trigger in jobs:
        scheduler.add_job(
            _job(name, hook),
            trigger=trigger,
            id=name,
            name=name.replace("_", " ").title(),
            replace_existing=True,
        )
    logger.info("Scheduled %d maintenance jobs (%s)", len(jobs), settings.timezone)
    return scheduler
