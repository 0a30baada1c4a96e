"""
Feed Sync Scheduler

Runs sync_all_feeds() every FEED_SYNC_INTERVAL_MINUTES.

Uses APScheduler's AsyncIOScheduler inside the API process; the sweep itself
is blocking I/O and runs on a worker thread.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import settings
from .feed_ingestion import SweepSummary, sync_all_feeds

logger = logging.getLogger(__name__)

JOB_ID = "external_feed_sweep"

# Global scheduler instance
_scheduler: Optional[AsyncIOScheduler] = None
_last_sweep: Optional[SweepSummary] = None


async def run_feed_sweep_job():
    """Job function called by the scheduler"""
    global _last_sweep
    
    logger.info("Running scheduled feed sweep...")
    try:
        _last_sweep = await asyncio.to_thread(sync_all_feeds)
    except Exception as e:
        logger.error(f"Scheduled feed sweep failed: {e}")


def start_feed_scheduler(interval_minutes: Optional[int] = None) -> bool:
    """
    Start the periodic sweep. The first run happens shortly after startup.
    
    Returns:
        True if the scheduler is running, False otherwise
    """
    global _scheduler
    
    if _scheduler is not None and _scheduler.running:
        logger.warning("Feed scheduler is already running")
        return True
    
    interval_minutes = interval_minutes or settings.feed_sync_interval_minutes
    
    try:
        _scheduler = AsyncIOScheduler(timezone=timezone.utc)
        _scheduler.add_job(
            run_feed_sweep_job,
            IntervalTrigger(minutes=interval_minutes, timezone=timezone.utc),
            id=JOB_ID,
            name=f"External feed sweep every {interval_minutes} min",
            next_run_time=datetime.now(timezone.utc) + timedelta(seconds=30),
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        _scheduler.start()
        
        logger.info(f"Feed scheduler started (every {interval_minutes} min)")
        return True
    
    except Exception as e:
        logger.error(f"Failed to start feed scheduler: {e}")
        _scheduler = None
        return False


def stop_feed_scheduler() -> bool:
    global _scheduler
    
    if _scheduler is None:
        return True
    
    try:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Feed scheduler stopped")
        return True
    except Exception as e:
        logger.error(f"Failed to stop feed scheduler: {e}")
        return False


def get_scheduler_status() -> Dict:
    status = {
        "running": False,
        "next_run": None,
        "last_sweep": None,
    }
    
    if _scheduler is not None and _scheduler.running:
        status["running"] = True
        job = _scheduler.get_job(JOB_ID)
        if job is not None and job.next_run_time:
            status["next_run"] = job.next_run_time.isoformat()
    
    if _last_sweep is not None:
        status["last_sweep"] = {
            "started_at": _last_sweep.started_at.isoformat(),
            "finished_at": _last_sweep.finished_at.isoformat() if _last_sweep.finished_at else None,
            "total": _last_sweep.total,
            "succeeded": _last_sweep.succeeded,
            "failed": _last_sweep.failed,
        }
    
    return status
