"""Data models for the prediction scraper."""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional


class MatchStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    LIVE = "LIVE"
    FINISHED = "FINISHED"


class BetStatus(str, Enum):
    PENDING = "PENDING"
    WON = "WON"
    LOST = "LOST"
    VOID = "VOID"


class JobStatus(str, Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ConfidenceLevel(str, Enum):
    EXCELLENT = "EXCELLENT"
    HIGH = "HIGH"
    GOOD = "GOOD"
    MODERATE = "MODERATE"
    LOW = "LOW"
    VERY_LOW = "VERY_LOW"


@dataclass
class Match:
    """Represents a football match."""
    id: Optional[int]
    external_id: str
    home_team: str
    away_team: str
    league: str
    match_date: Optional[date] = None
    match_time: str = ""
    status: str = MatchStatus.SCHEDULED.value
    home_score: Optional[int] = None
    away_score: Optional[int] = None


@dataclass
class Prediction:
    """A tip for one market of a match."""
    id: Optional[int]
    match_id: int
    market: str
    odds: float
    probability: float
    stake: int
    confidence_level: str
    home_odds: Optional[float] = None
    draw_odds: Optional[float] = None
    away_odds: Optional[float] = None


@dataclass
class Bet:
    """A wager placed by the user, settled against match results."""
    id: Optional[int]
    amount: float
    odds_taken: float
    market: str
    selection: str
    match_id: Optional[int] = None
    prediction_id: Optional[int] = None
    status: str = BetStatus.PENDING.value
    profit_loss: Optional[float] = None
    placed_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None


@dataclass
class ScrapingJob:
    """One acquisition or verification run."""
    id: Optional[int]
    source: str
    status: str
    matches_found: int = 0
    predictions_found: int = 0
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class PredictionRecord:
    """A prediction as extracted from a page, before persistence."""
    external_id: str
    home_team: str
    away_team: str
    league: str
    match_date: date
    match_time: str
    market: str
    odds: float
    probability: float
    stake: int
    confidence_level: str
    home_odds: Optional[float] = None
    draw_odds: Optional[float] = None
    away_odds: Optional[float] = None

    @property
    def key(self):
        return (self.external_id, self.market)


@dataclass
class ResultRecord:
    """A match score as extracted from a results page."""
    external_id: str
    home_team: str
    away_team: str
    home_score: int
    away_score: int
    status: str
    finished: bool

    @property
    def key(self):
        return self.external_id

    def to_dict(self) -> dict:
        return {
            "external_id": self.external_id,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "status": self.status,
            "finished": self.finished,
        }


@dataclass
class ScrapeResult:
    """Outcome of one scraper pass over a page."""
    success: bool = False
    records: List = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class JobOutcome:
    """Terminal state handed to the job ledger."""
    status: JobStatus
    matches_found: int = 0
    predictions_found: int = 0
    error_message: Optional[str] = None
