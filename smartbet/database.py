"""Database connection and operations for the prediction scraper.

Write helpers never commit on their own; callers wrap them in
``transaction`` so that a record, a settlement or a ledger entry is
committed as one unit.
"""
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Generator, Optional, List

from .config import DB_PATH
from .models import (
    Bet,
    BetStatus,
    JobOutcome,
    JobStatus,
    Match,
    MatchStatus,
    Prediction,
    PredictionRecord,
    ScrapingJob,
)


def get_connection(db_path: Path = DB_PATH) -> sqlite3.Connection:
    """Create a database connection with row factory enabled."""
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """Context manager for database transactions."""
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def init_database(conn: sqlite3.Connection) -> None:
    """Initialize the database schema."""
    conn.executescript("""
        -- Fixtures seen on prediction pages
        CREATE TABLE IF NOT EXISTS matches (
            id INTEGER PRIMARY KEY,
            external_id TEXT UNIQUE NOT NULL,
            home_team TEXT NOT NULL,
            away_team TEXT NOT NULL,
            league TEXT,
            match_date DATE,
            match_time TEXT,
            status TEXT NOT NULL DEFAULT 'SCHEDULED'
                CHECK (status IN ('SCHEDULED', 'LIVE', 'FINISHED')),
            home_score INTEGER,
            away_score INTEGER,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
        );

        -- One tip per match and market
        CREATE TABLE IF NOT EXISTS predictions (
            id INTEGER PRIMARY KEY,
            match_id INTEGER NOT NULL REFERENCES matches(id) ON DELETE CASCADE,
            market TEXT NOT NULL,
            odds REAL,
            probability REAL CHECK (probability BETWEEN 0 AND 100),
            stake INTEGER CHECK (stake BETWEEN 1 AND 10),
            confidence_level TEXT,
            home_odds REAL,
            draw_odds REAL,
            away_odds REAL,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(match_id, market)
        );

        -- Wagers, created by the API and settled by the verifier
        CREATE TABLE IF NOT EXISTS bets (
            id INTEGER PRIMARY KEY,
            prediction_id INTEGER REFERENCES predictions(id),
            match_id INTEGER REFERENCES matches(id),
            amount REAL NOT NULL CHECK (amount > 0),
            odds_taken REAL NOT NULL,
            market TEXT,
            selection TEXT,
            status TEXT NOT NULL DEFAULT 'PENDING'
                CHECK (status IN ('PENDING', 'WON', 'LOST', 'VOID')),
            profit_loss REAL,
            placed_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            settled_at DATETIME
        );

        -- Run history
        CREATE TABLE IF NOT EXISTS scraping_jobs (
            id INTEGER PRIMARY KEY,
            source TEXT NOT NULL,
            status TEXT NOT NULL
                CHECK (status IN ('RUNNING', 'COMPLETED', 'FAILED')),
            matches_found INTEGER DEFAULT 0,
            predictions_found INTEGER DEFAULT 0,
            error_message TEXT,
            started_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            completed_at DATETIME
        );

        -- Indexes
        CREATE INDEX IF NOT EXISTS idx_matches_status ON matches(status);
        CREATE INDEX IF NOT EXISTS idx_predictions_match ON predictions(match_id);
        CREATE INDEX IF NOT EXISTS idx_bets_match_status ON bets(match_id, status);
        CREATE INDEX IF NOT EXISTS idx_jobs_source ON scraping_jobs(source, started_at);

        -- At most one running job per source
        CREATE UNIQUE INDEX IF NOT EXISTS idx_jobs_one_running
            ON scraping_jobs(source) WHERE status = 'RUNNING';
    """)
    conn.commit()


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _parse_datetime(value) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(str(value))


def _row_to_match(row: sqlite3.Row) -> Match:
    return Match(
        id=row["id"],
        external_id=row["external_id"],
        home_team=row["home_team"],
        away_team=row["away_team"],
        league=row["league"],
        match_date=date.fromisoformat(row["match_date"]) if row["match_date"] else None,
        match_time=row["match_time"] or "",
        status=row["status"],
        home_score=row["home_score"],
        away_score=row["away_score"],
    )


def _row_to_bet(row: sqlite3.Row) -> Bet:
    return Bet(
        id=row["id"],
        amount=row["amount"],
        odds_taken=row["odds_taken"],
        market=row["market"],
        selection=row["selection"],
        match_id=row["match_id"],
        prediction_id=row["prediction_id"],
        status=row["status"],
        profit_loss=row["profit_loss"],
        placed_at=_parse_datetime(row["placed_at"]),
        settled_at=_parse_datetime(row["settled_at"]),
    )


def _row_to_job(row: sqlite3.Row) -> ScrapingJob:
    return ScrapingJob(
        id=row["id"],
        source=row["source"],
        status=row["status"],
        matches_found=row["matches_found"] or 0,
        predictions_found=row["predictions_found"] or 0,
        error_message=row["error_message"],
        started_at=_parse_datetime(row["started_at"]),
        completed_at=_parse_datetime(row["completed_at"]),
    )


# Match operations
def upsert_match(conn: sqlite3.Connection, record: PredictionRecord) -> int:
    """Insert a match or refresh its fields, keyed by external_id. Returns the ID."""
    conn.execute(
        """
        INSERT INTO matches (external_id, home_team, away_team, league, match_date, match_time)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(external_id) DO UPDATE SET
            home_team = excluded.home_team,
            away_team = excluded.away_team,
            league = excluded.league,
            match_date = excluded.match_date,
            match_time = excluded.match_time,
            updated_at = CURRENT_TIMESTAMP
        """,
        (
            record.external_id,
            record.home_team,
            record.away_team,
            record.league,
            record.match_date.isoformat() if record.match_date else None,
            record.match_time,
        )
    )
    row = conn.execute(
        "SELECT id FROM matches WHERE external_id = ?", (record.external_id,)
    ).fetchone()
    return row["id"]


def get_match_by_id(conn: sqlite3.Connection, match_id: int) -> Optional[Match]:
    """Get a match by its ID."""
    row = conn.execute("SELECT * FROM matches WHERE id = ?", (match_id,)).fetchone()
    return _row_to_match(row) if row else None


def get_match_by_external_id(conn: sqlite3.Connection, external_id: str) -> Optional[Match]:
    """Get a match by the ID derived from the scraped page."""
    row = conn.execute("SELECT * FROM matches WHERE external_id = ?", (external_id,)).fetchone()
    return _row_to_match(row) if row else None


def get_matches_with_pending_bets(conn: sqlite3.Connection, limit: int) -> List[Match]:
    """Get scheduled matches that still have at least one pending bet."""
    cursor = conn.execute(
        """
        SELECT DISTINCT m.* FROM matches m
        JOIN bets b ON b.match_id = m.id
        WHERE m.status = ? AND b.status = ?
        ORDER BY m.id
        LIMIT ?
        """,
        (MatchStatus.SCHEDULED.value, BetStatus.PENDING.value, limit)
    )
    return [_row_to_match(row) for row in cursor.fetchall()]


def finish_match(conn: sqlite3.Connection, match_id: int, home_score: int, away_score: int) -> None:
    """Record the final score and mark the match finished."""
    conn.execute(
        """
        UPDATE matches
        SET home_score = ?, away_score = ?, status = ?, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
        """,
        (home_score, away_score, MatchStatus.FINISHED.value, match_id)
    )


# Prediction operations
def upsert_prediction(conn: sqlite3.Connection, match_id: int, record: PredictionRecord) -> int:
    """Insert a prediction or refresh it, keyed by (match_id, market). Returns the ID."""
    conn.execute(
        """
        INSERT INTO predictions
            (match_id, market, odds, probability, stake, confidence_level, home_odds, draw_odds, away_odds)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(match_id, market) DO UPDATE SET
            odds = excluded.odds,
            probability = excluded.probability,
            stake = excluded.stake,
            confidence_level = excluded.confidence_level
        """,
        (
            match_id,
            record.market,
            record.odds,
            record.probability,
            record.stake,
            record.confidence_level,
            record.home_odds,
            record.draw_odds,
            record.away_odds,
        )
    )
    row = conn.execute(
        "SELECT id FROM predictions WHERE match_id = ? AND market = ?",
        (match_id, record.market)
    ).fetchone()
    return row["id"]


def get_predictions_for_match(conn: sqlite3.Connection, match_id: int) -> List[Prediction]:
    """Get all predictions stored for a match."""
    cursor = conn.execute("SELECT * FROM predictions WHERE match_id = ? ORDER BY id", (match_id,))
    return [
        Prediction(
            id=row["id"],
            match_id=row["match_id"],
            market=row["market"],
            odds=row["odds"],
            probability=row["probability"],
            stake=row["stake"],
            confidence_level=row["confidence_level"],
            home_odds=row["home_odds"],
            draw_odds=row["draw_odds"],
            away_odds=row["away_odds"],
        )
        for row in cursor.fetchall()
    ]


# Bet operations
def insert_bet(
    conn: sqlite3.Connection,
    amount: float,
    odds_taken: float,
    market: str,
    selection: str,
    match_id: Optional[int] = None,
    prediction_id: Optional[int] = None
) -> int:
    """Insert a new pending bet."""
    cursor = conn.execute(
        """
        INSERT INTO bets (prediction_id, match_id, amount, odds_taken, market, selection, placed_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (prediction_id, match_id, amount, odds_taken, market, selection, _now())
    )
    return cursor.lastrowid


def get_bet_by_id(conn: sqlite3.Connection, bet_id: int) -> Optional[Bet]:
    """Get a bet by its ID."""
    row = conn.execute("SELECT * FROM bets WHERE id = ?", (bet_id,)).fetchone()
    return _row_to_bet(row) if row else None


def get_bets_for_match(conn: sqlite3.Connection, match_id: int, status: Optional[str] = None) -> List[Bet]:
    """Get bets attached to a match, optionally filtered by status."""
    if status is None:
        cursor = conn.execute("SELECT * FROM bets WHERE match_id = ? ORDER BY id", (match_id,))
    else:
        cursor = conn.execute(
            "SELECT * FROM bets WHERE match_id = ? AND status = ? ORDER BY id",
            (match_id, status)
        )
    return [_row_to_bet(row) for row in cursor.fetchall()]


def settle_bet(conn: sqlite3.Connection, bet_id: int, status: str, profit_loss: float) -> bool:
    """Move a pending bet to a terminal status. Returns False if it was not pending."""
    cursor = conn.execute(
        """
        UPDATE bets SET status = ?, profit_loss = ?, settled_at = ?
        WHERE id = ? AND status = ?
        """,
        (status, profit_loss, _now(), bet_id, BetStatus.PENDING.value)
    )
    return cursor.rowcount == 1


def count_pending_bets(conn: sqlite3.Connection) -> int:
    """Count bets that are still waiting for a result."""
    row = conn.execute(
        "SELECT COUNT(*) AS count FROM bets WHERE status = ?", (BetStatus.PENDING.value,)
    ).fetchone()
    return row["count"]


# Scraping job operations
def insert_running_job(conn: sqlite3.Connection, source: str) -> int:
    """Insert a RUNNING job.

    Raises sqlite3.IntegrityError if the source already has a running job.
    """
    cursor = conn.execute(
        "INSERT INTO scraping_jobs (source, status, started_at) VALUES (?, ?, ?)",
        (source, JobStatus.RUNNING.value, _now())
    )
    return cursor.lastrowid


def complete_job(conn: sqlite3.Connection, job_id: int, outcome: JobOutcome) -> bool:
    """Finalize a running job. Returns False if no running job has that ID."""
    cursor = conn.execute(
        """
        UPDATE scraping_jobs
        SET status = ?, matches_found = ?, predictions_found = ?, error_message = ?, completed_at = ?
        WHERE id = ? AND status = ?
        """,
        (
            outcome.status.value,
            outcome.matches_found,
            outcome.predictions_found,
            outcome.error_message,
            _now(),
            job_id,
            JobStatus.RUNNING.value,
        )
    )
    return cursor.rowcount == 1


def get_job(conn: sqlite3.Connection, job_id: int) -> Optional[ScrapingJob]:
    """Get a scraping job by its ID."""
    row = conn.execute("SELECT * FROM scraping_jobs WHERE id = ?", (job_id,)).fetchone()
    return _row_to_job(row) if row else None


def get_last_job(conn: sqlite3.Connection, source: str) -> Optional[ScrapingJob]:
    """Get the most recently started job for a source."""
    row = conn.execute(
        "SELECT * FROM scraping_jobs WHERE source = ? ORDER BY started_at DESC, id DESC LIMIT 1",
        (source,)
    ).fetchone()
    return _row_to_job(row) if row else None


def get_recent_jobs(conn: sqlite3.Connection, limit: int = 20) -> List[ScrapingJob]:
    """Get the latest jobs across all sources."""
    cursor = conn.execute(
        "SELECT * FROM scraping_jobs ORDER BY started_at DESC, id DESC LIMIT ?",
        (limit,)
    )
    return [_row_to_job(row) for row in cursor.fetchall()]
