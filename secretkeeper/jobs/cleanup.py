"""Background cleanup jobs."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..auth_providers.session import SessionManager


logger = logging.getLogger(__name__)

PURGE_JOB_ID = "purge_expired_sessions"


async def purge_expired_sessions(sessions: SessionManager) -> int:
    """
    Drop expired in-memory sessions.

    Runs every SESSION_PURGE_INTERVAL_MINUTES. A no-op with the Redis
    backend, which expires keys itself.
    """
    try:
        count = sessions.purge_expired()
        if count > 0:
            logger.info(f"Purged {count} expired sessions")
        else:
            logger.debug("No expired sessions to purge")
        return count
    except Exception as e:
        logger.error(f"Error in purge_expired_sessions job: {e}", exc_info=True)
        return 0


def schedule_jobs(scheduler: AsyncIOScheduler, sessions: SessionManager, interval_minutes: int) -> None:
    scheduler.add_job(
        purge_expired_sessions,
        "interval",
        minutes=interval_minutes,
        id=PURGE_JOB_ID,
        args=[sessions],
        replace_existing=True,
    )


def start_background_jobs(scheduler: AsyncIOScheduler):
    """Start all background jobs."""
    logger.info("Starting background jobs scheduler...")
    scheduler.start()
    logger.info(f"Background jobs started: {[job.id for job in scheduler.get_jobs()]}")


def stop_background_jobs(scheduler: AsyncIOScheduler):
    """Stop all background jobs."""
    if scheduler.running:
        logger.info("Stopping background jobs scheduler...")
        scheduler.shutdown(wait=False)
        logger.info("Background jobs stopped")


def get_job_status(scheduler: AsyncIOScheduler):
    """Get status of all background jobs."""
    jobs = []
    for job in scheduler.get_jobs():
        next_run = getattr(job, "next_run_time", None)
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": next_run.isoformat() if next_run else None,
            "trigger": str(job.trigger)
        })
    return jobs
