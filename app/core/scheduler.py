import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


def schedule_job(func: Callable, *, delay_seconds: int, job_id: str, name: Optional[str] = None, kwargs: Optional[dict] = None):
    """Run ``func`` once after ``delay_seconds``; a job with the same id is replaced."""
    run_date = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)
    job = scheduler.add_job(
        func,
        'date',
        run_date=run_date,
        id=job_id,
        name=name or job_id,
        kwargs=kwargs or {},
        replace_existing=True,
        misfire_grace_time=None,
    )
    logger.info(f"Scheduled job {job_id} in {delay_seconds}s")
    return job


def start_scheduler():
    if os.getenv("TESTING") == "true":
        logger.info("Scheduler disabled in test environment")
        return

    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
