"""
APScheduler housekeeping for the storybook API.

The only recurring job removes "new story" announcements that stayed unread
past the notification TTL.
"""
import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from storybook.database import SessionLocal
from storybook.services.notification_service import purge_stale_story_notifications

logger = logging.getLogger(__name__)

CLEANUP_JOB_ID = "purge_stale_story_notifications"

_scheduler: Optional[BackgroundScheduler] = None


def purge_stale_notifications_job() -> int:
    """Purge stale story notifications for every user. Returns the number removed."""
    db = SessionLocal()
    try:
        removed = purge_stale_story_notifications(db)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Stale notification cleanup failed")
        return 0
    finally:
        db.close()

    logger.info("Stale notification cleanup removed %d notifications", removed)
    return removed


def start_scheduler() -> BackgroundScheduler:
    global _scheduler

    if _scheduler is not None:
        logger.warning("Scheduler already running")
        return _scheduler

    scheduler = BackgroundScheduler(timezone="UTC")
    # Daily at 03:00 UTC
    scheduler.add_job(
        purge_stale_notifications_job,
        trigger=CronTrigger(hour=3, minute=0, timezone="UTC"),
        id=CLEANUP_JOB_ID,
        name="Purge stale story notifications",
        replace_existing=True,
        coalesce=True,
    )
    scheduler.start()
    _scheduler = scheduler

    logger.info("Background scheduler started (jobs=%s)", [job.id for job in scheduler.get_jobs()])
    return scheduler


def stop_scheduler() -> None:
    global _scheduler

    if _scheduler is None:
        return

    logger.info("Stopping background scheduler")
    _scheduler.shutdown(wait=False)
    _scheduler = None
