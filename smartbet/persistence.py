"""Idempotent write path from extracted predictions into the database."""
import logging
import sqlite3
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from .database import transaction, upsert_match, upsert_prediction
from .errors import PersistenceRecordError
from .models import PredictionRecord

logger = logging.getLogger(__name__)


@dataclass
class SaveOutcome:
    """Result of saving one record: either IDs or the error that stopped it."""
    record: PredictionRecord
    match_id: Optional[int] = None
    prediction_id: Optional[int] = None
    error: Optional[PersistenceRecordError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def save_match(conn: sqlite3.Connection, record: PredictionRecord) -> int:
    """Insert or refresh the record's match. Returns the match ID."""
    with transaction(conn):
        return upsert_match(conn, record)


def save_prediction(conn: sqlite3.Connection, match_id: int, record: PredictionRecord) -> int:
    """Insert or refresh a prediction for (match_id, market). Returns its ID."""
    with transaction(conn):
        return upsert_prediction(conn, match_id, record)


def save_record(conn: sqlite3.Connection, record: PredictionRecord) -> SaveOutcome:
    """Save one record's match and prediction in a single commit.

    Never raises for database or data errors; they come back in the outcome.
    """
    try:
        with transaction(conn):
            match_id = upsert_match(conn, record)
            prediction_id = upsert_prediction(conn, match_id, record)
    except (sqlite3.Error, ValueError, TypeError, AttributeError) as e:
        return SaveOutcome(record=record, error=PersistenceRecordError(record, e))
    return SaveOutcome(record=record, match_id=match_id, prediction_id=prediction_id)


def save_predictions(conn: sqlite3.Connection, records: Iterable[PredictionRecord]) -> Dict[str, int]:
    """
    Save a batch of predictions, one commit per record.

    Args:
        conn: Database connection
        records: Extracted prediction records

    Returns:
        Stats dict with 'saved' and 'errors' counts
    """
    stats = {"saved": 0, "errors": 0}

    for record in records:
        outcome = save_record(conn, record)
        if outcome.ok:
            stats["saved"] += 1
        else:
            logger.error(
                f"Error saving prediction {record.home_team} vs {record.away_team} "
                f"({record.market}): {outcome.error}"
            )
            stats["errors"] += 1

    logger.info(f"Predictions saved: {stats['saved']}, errors: {stats['errors']}")
    return stats
