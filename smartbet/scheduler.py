"""
Periodic runs of the scraping pipeline.

Jobs:
- Prediction acquisition, daily
- Result verification and bet settlement, hourly

Scheduler: APScheduler. Each job opens its own database connection; the
browser session is shared and closed when the scheduler stops.
"""
import logging
from typing import Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from .browser import release_session
from .config import ACQUISITION_CRON_HOUR, SCHEDULER_TIMEZONE
from .database import get_connection, init_database
from .pipeline import run_acquisition, run_verification

logger = logging.getLogger(__name__)


def acquisition_job() -> None:
    logger.info("Running scheduled prediction scrape")
    conn = get_connection()
    try:
        init_database(conn)
        result = run_acquisition(conn)
        logger.info(
            f"Scheduled scrape finished: {result['predictions_count']} predictions, "
            f"{result['matches_found']} saved"
        )
    except Exception as e:
        logger.error(f"Error in scheduled scrape: {e}")
    finally:
        conn.close()


def verification_job() -> None:
    logger.info("Running scheduled result verification")
    conn = get_connection()
    try:
        init_database(conn)
        result = run_verification(conn)
        logger.info(f"Scheduled verification: {result['verified']} verified, {result['pending']} pending")
    except Exception as e:
        logger.error(f"Error in scheduled verification: {e}")
    finally:
        conn.close()


def build_scheduler(timezone: str = SCHEDULER_TIMEZONE, acquisition_hour: int = ACQUISITION_CRON_HOUR) -> BlockingScheduler:
    """Create a scheduler with the acquisition and verification jobs registered."""
    scheduler = BlockingScheduler(
        timezone=timezone,
        job_defaults={
            "coalesce": True,  # Combine missed runs into one
            "max_instances": 1,
            "misfire_grace_time": 300,
        }
    )
    scheduler.add_job(
        acquisition_job,
        trigger=CronTrigger(hour=acquisition_hour, minute=0, timezone=timezone),
        id="prediction_scrape",
        name="Scrape predictions",
    )
    scheduler.add_job(
        verification_job,
        trigger=CronTrigger(minute=0, timezone=timezone),
        id="result_verification",
        name="Verify results and settle bets",
    )
    return scheduler


def run_scheduler(scheduler: Optional[BlockingScheduler] = None) -> None:
    """Block running scheduled jobs until interrupted."""
    scheduler = scheduler or build_scheduler()
    for job in scheduler.get_jobs():
        logger.info(f"Scheduled {job.name} ({job.trigger})")
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped")
    finally:
        release_session()
