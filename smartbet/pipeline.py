"""Entry points for acquisition and verification runs.

These are what the API, the CLI and the scheduler call. Each returns a
plain dict summary. Scraping failures end up in the summary and in the job
ledger; anything unexpected is recorded as a failed job and re-raised.
"""
import logging
import sqlite3
from typing import Any, Dict, Optional

from .browser import BrowserSession, get_session
from .config import PREDICTIONS_SOURCE, RESULTS_SOURCE
from .database import count_pending_bets
from .errors import JobAlreadyRunningError
from .ledger import JobLedger
from .models import JobOutcome, JobStatus
from .persistence import save_predictions
from .scrapers import PredictionScraper, ResultScraper
from .settlement import verify_match_results

logger = logging.getLogger(__name__)


def run_acquisition(conn: sqlite3.Connection, session: Optional[BrowserSession] = None) -> Dict[str, Any]:
    """
    Scrape today's predictions and store them.

    Returns:
        Dict with success, matches_found, predictions_count, error and job_id
    """
    ledger = JobLedger(conn)
    try:
        job_id = ledger.begin(PREDICTIONS_SOURCE)
    except JobAlreadyRunningError as e:
        logger.warning(str(e))
        return {
            "success": False,
            "matches_found": 0,
            "predictions_count": 0,
            "error": str(e),
            "job_id": None,
        }

    try:
        result = PredictionScraper(session).scrape()
        matches_found = len(result.records)
        if result.success and result.records:
            save_stats = save_predictions(conn, result.records)
            matches_found = save_stats["saved"]
    except Exception as e:
        # Never leave the job RUNNING
        ledger.finish(job_id, JobOutcome(status=JobStatus.FAILED, error_message=str(e)))
        raise

    ledger.finish(job_id, JobOutcome(
        status=JobStatus.COMPLETED if result.success else JobStatus.FAILED,
        matches_found=matches_found,
        predictions_found=len(result.records),
        error_message=result.error,
    ))

    return {
        "success": result.success,
        "matches_found": matches_found,
        "predictions_count": len(result.records),
        "error": result.error,
        "job_id": job_id,
    }


def run_verification(conn: sqlite3.Connection, session: Optional[BrowserSession] = None) -> Dict[str, int]:
    """
    Settle pending bets against the latest results.

    Returns:
        Dict with 'verified' and 'pending' counts
    """
    ledger = JobLedger(conn)
    try:
        job_id = ledger.begin(RESULTS_SOURCE)
    except JobAlreadyRunningError as e:
        logger.warning(str(e))
        return {"verified": 0, "pending": 0}

    scraper = ResultScraper(session)
    last_scrape = {}

    def fetch_results():
        last_scrape["result"] = scraper.scrape()
        return last_scrape["result"]

    try:
        stats = verify_match_results(conn, fetch_results)
    except Exception as e:
        logger.error(f"Error verifying results: {e}")
        ledger.finish(job_id, JobOutcome(status=JobStatus.FAILED, error_message=str(e)))
        raise

    scrape = last_scrape.get("result")
    failed = scrape is not None and not scrape.success
    ledger.finish(job_id, JobOutcome(
        status=JobStatus.FAILED if failed else JobStatus.COMPLETED,
        matches_found=stats["verified"],
        error_message=scrape.error if failed else None,
    ))
    return stats


def run_result_scrape(league: Optional[str] = None, session: Optional[BrowserSession] = None) -> Dict[str, Any]:
    """
    Scrape results without touching the database.

    Returns:
        Dict with success, results_count, results (list of dicts) and error
    """
    result = ResultScraper(session).scrape(league)
    return {
        "success": result.success,
        "results_count": len(result.records),
        "results": [r.to_dict() for r in result.records],
        "error": result.error,
    }


def scraper_status(conn: sqlite3.Connection, session: Optional[BrowserSession] = None) -> Dict[str, Any]:
    """Summary of the last acquisition run and the open bets."""
    last_job = JobLedger(conn).last_job(PREDICTIONS_SOURCE)
    session = session or get_session()
    return {
        "scraper_status": last_job.status if last_job else "UNKNOWN",
        "last_run": last_job.started_at if last_job else None,
        "last_success": bool(last_job and last_job.status == JobStatus.COMPLETED.value),
        "pending_bets": count_pending_bets(conn),
        "browser_ready": session.is_active,
    }
