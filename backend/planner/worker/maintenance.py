"""Scheduled upkeep for the in-process cache and rate limiter.

Both live in API process memory, so the jobs run on that process's event
loop rather than in a separate worker.
"""
from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from planner.core.config import settings
from planner.services.cache import ResultCache, result_cache
from planner.services.rate_limiter import RateLimiter, rate_limiter

logger = logging.getLogger(__name__)

CACHE_CLEANUP_JOB_ID = "cache_cleanup"
DAILY_RESET_JOB_ID = "rate_limit_daily_reset"
MONTHLY_RESET_JOB_ID = "rate_limit_monthly_reset"

_scheduler: Optional[AsyncIOScheduler] = None


async def cleanup_cache(cache: ResultCache = result_cache) -> int:
    return cache.cleanup()


async def reset_daily_usage(limiter: RateLimiter = rate_limiter) -> None:
    limiter.reset_daily_usage()


async def reset_monthly_usage(limiter: RateLimiter = rate_limiter) -> None:
    limiter.reset_monthly_usage()


def register_maintenance_jobs(
    scheduler: AsyncIOScheduler,
    cache: ResultCache = result_cache,
    limiter: RateLimiter = rate_limiter,
) -> None:
    scheduler.add_job(
        cleanup_cache,
        trigger="interval",
        minutes=settings.cache_cleanup_interval_minutes,
        kwargs={"cache": cache},
        id=CACHE_CLEANUP_JOB_ID,
        replace_existing=True,
    )
    scheduler.add_job(
        reset_daily_usage,
        trigger="cron",
        hour=0,
        minute=0,
        kwargs={"limiter": limiter},
        id=DAILY_RESET_JOB_ID,
        replace_existing=True,
    )
    scheduler.add_job(
        reset_monthly_usage,
        trigger="cron",
        day=1,
        hour=0,
        minute=0,
        kwargs={"limiter": limiter},
        id=MONTHLY_RESET_JOB_ID,
        replace_existing=True,
    )
    logger.info(
        "Registered maintenance jobs (cache sweep every %s min, tz=%s)",
        settings.cache_cleanup_interval_minutes,
        settings.scheduler_timezone,
    )


def start_maintenance_scheduler() -> Optional[AsyncIOScheduler]:
    """Start the jobs on the running event loop when the scheduler is enabled."""
    global _scheduler

    if not settings.scheduler_enabled:
        logger.info("Maintenance scheduler disabled via config")
        return None
    if _scheduler is not None and _scheduler.running:
        return _scheduler

    scheduler = AsyncIOScheduler(timezone=settings.scheduler_timezone)
    register_maintenance_jobs(scheduler)
    scheduler.start()
    _scheduler = scheduler
    return scheduler


def stop_maintenance_scheduler() -> None:
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Maintenance scheduler stopped")
    _scheduler = None
