"""Durable record of scraping runs."""
import logging
import sqlite3
from typing import Optional

from .database import complete_job, get_last_job, insert_running_job, transaction
from .errors import JobAlreadyRunningError, LedgerStateError
from .models import JobOutcome, ScrapingJob

logger = logging.getLogger(__name__)


class JobLedger:
    """Opens and closes scraping_jobs rows.

    ``begin`` refuses to start a second RUNNING job for the same source; the
    check and the insert are a single statement guarded by a partial unique
    index, so two triggers racing each other cannot both get through.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def begin(self, source: str) -> int:
        try:
            with transaction(self.conn):
                job_id = insert_running_job(self.conn, source)
        except sqlite3.IntegrityError as e:
            raise JobAlreadyRunningError(source) from e
        logger.info(f"Started {source} job #{job_id}")
        return job_id

    def finish(self, job_id: int, outcome: JobOutcome) -> None:
        with transaction(self.conn):
            updated = complete_job(self.conn, job_id, outcome)
        if not updated:
            raise LedgerStateError(f"Job #{job_id} is not running")
        logger.info(
            f"Job #{job_id} {outcome.status.value}: "
            f"{outcome.matches_found} matches, {outcome.predictions_found} predictions"
        )

    def last_job(self, source: str) -> Optional[ScrapingJob]:
        return get_last_job(self.conn, source)
