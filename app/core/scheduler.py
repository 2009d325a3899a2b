"""
Application Scheduler - APScheduler Integration

Runs the periodic sweep that clears expired magic-link tokens.
"""

import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.services.user_store import UserStore

logger = logging.getLogger(__name__)
settings = get_settings()

SWEEP_JOB_ID = "sweep_expired_tokens"

scheduler = AsyncIOScheduler(
    timezone="UTC",
    job_defaults={
        "coalesce": True,  # Combine missed runs into one
        "max_instances": 1,
        "misfire_grace_time": 300,
    },
)


def scheduler_listener(event):
    if event.exception:
        logger.error(f"Job '{event.job_id}' failed: {event.exception}")
    else:
        logger.debug(f"Job '{event.job_id}' executed")


scheduler.add_listener(scheduler_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)


def sweep_expired_tokens() -> int:
    """Open a session, clear expired magic-link tokens, return rows affected."""
    db = SessionLocal()
    try:
        return UserStore(db).sweep_expired_tokens()
    finally:
        db.close()


def start_scheduler() -> None:
    interval = settings.TOKEN_SWEEP_INTERVAL_MINUTES
    if interval <= 0:
        logger.info("Token sweep scheduling disabled")
        return

    scheduler.add_job(
        sweep_expired_tokens,
        trigger=IntervalTrigger(minutes=interval),
        id=SWEEP_JOB_ID,
        replace_existing=True,
    )
    scheduler.start()
    logger.info(f"Scheduler started: token sweep every {interval} min")


def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
