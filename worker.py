#!/usr/bin/env python
"""
Feed Sync Worker

Standalone process that sweeps every registered external calendar feed on
a fixed interval. Use it instead of the in-API scheduler when running
several API replicas (set FEED_SYNC_ENABLED=false on the API).

Run with:
    python worker.py

Or with environment:
    FEED_SYNC_INTERVAL_MINUTES=15 python worker.py
"""

import os
import sys
import time
import logging
import signal

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from fleetcal.config import settings
from fleetcal.services.feed_ingestion import sync_all_feeds
from fleetcal.utils.logging_config import setup_logging

setup_logging(settings.log_level, json_format=settings.use_json_logs, include_uvicorn=False)
logger = logging.getLogger("worker")

POLL_INTERVAL = settings.feed_sync_interval_minutes * 60  # seconds
RUNNING = True


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully"""
    global RUNNING
    logger.info("Received shutdown signal, finishing current sweep...")
    RUNNING = False


def run_worker():
    """Main worker loop"""
    logger.info("=" * 50)
    logger.info("Starting Feed Sync Worker")
    logger.info(f"Interval: {settings.feed_sync_interval_minutes} min")
    logger.info(f"Parallel feeds: {settings.feed_sync_max_parallel}")
    logger.info("=" * 50)
    
    cycle = 0
    
    while RUNNING:
        cycle += 1
        start_time = time.time()
        
        try:
            summary = sync_all_feeds()
            duration = time.time() - start_time
            logger.info(
                f"Cycle {cycle}: {summary.succeeded}/{summary.total} feeds ok, "
                f"{summary.failed} failed | {duration:.2f}s"
            )
            for feed_id, error in summary.errors.items():
                logger.warning(f"Feed {feed_id}: {error}")
        except Exception as e:
            logger.error(f"Critical error in cycle {cycle}: {e}")
        
        # Sleep until next sweep, waking up early on shutdown
        deadline = start_time + POLL_INTERVAL
        while RUNNING and time.time() < deadline:
            time.sleep(1)
    
    logger.info("Worker shutdown complete")


if __name__ == "__main__":
    # Register signal handlers for graceful shutdown
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
    
    try:
        run_worker()
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    except Exception as e:
        logger.critical(f"Worker crashed: {e}")
