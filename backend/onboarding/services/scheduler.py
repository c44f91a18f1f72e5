"""Background task scheduler: daily stale-progress cleanup.

Uses FastAPI's lifespan context to start/stop an asyncio background loop
that fires once per day at the configured hour.

Configuration:
    CLEANUP_HOUR=3   (run at 03:00 UTC daily, via .env)
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI

from onboarding.config import settings
from onboarding.database import async_session
from onboarding.utils.cache import close_redis

logger = logging.getLogger("onboarding.scheduler")


async def run_daily_cleanup() -> int:
    """Complete stale progress rows in one transaction."""
    from onboarding.services.progress import cleanup_stale_progress

    logger.info("Starting stale progress cleanup")
    async with async_session() as db:
        try:
            cleaned = await cleanup_stale_progress(db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    logger.info("Stale progress cleanup complete: %d row(s)", cleaned)
    return cleaned


def seconds_until(hour: int, now: datetime | None = None) -> float:
    """Seconds from `now` until the next hour:00 UTC."""
    now = now or datetime.now(timezone.utc)
    next_run = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


async def _scheduler_loop() -> None:
    while True:
        wait_seconds = seconds_until(settings.cleanup_hour)
        logger.info("Next stale progress cleanup in %.0f seconds", wait_seconds)

        await asyncio.sleep(wait_seconds)

        try:
            await run_daily_cleanup()
        except Exception:
            logger.exception("Unhandled error in stale progress cleanup")

        # Small buffer to avoid running twice in the same minute
        await asyncio.sleep(60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan: start the scheduler on startup, cancel on shutdown."""
    task = asyncio.create_task(_scheduler_loop())
    logger.info("Cleanup scheduler started")
    try:
        yield
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        await close_redis()
        logger.info("Cleanup scheduler stopped")
