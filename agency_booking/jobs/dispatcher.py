# agency_booking/jobs/dispatcher.py
"""One-shot background jobs: work that must not hold up the HTTP response."""
from __future__ import annotations
import logging
from typing import Callable, Optional

from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler

from ..config import settings

logger = logging.getLogger(__name__)

_scheduler: Optional[BackgroundScheduler] = None


def _on_job_error(event) -> None:
    logger.error("Background job %s failed: %s\n%s", event.job_id, event.exception, event.traceback)


def get_scheduler() -> BackgroundScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler(
            timezone=settings.TIMEZONE,
            executors={"default": ThreadPoolExecutor(settings.NOTIFY_WORKERS)},
        )
        _scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    return _scheduler


def start_dispatcher() -> BackgroundScheduler:
    scheduler = get_scheduler()
    if not scheduler.running:
        scheduler.start()
    return scheduler


def shutdown_dispatcher() -> None:
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=True)


def spawn(fn: Callable, *args, **kwargs) -> None:
    """
    Run ``fn`` once, as soon as a worker is free. Jobs added before the
    scheduler starts are kept and run on start (no misfire cut-off).
    """
    get_scheduler().add_job(fn, args=args, kwargs=kwargs, misfire_grace_time=None)
