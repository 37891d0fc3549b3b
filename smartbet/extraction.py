"""Turn prediction and result pages into typed records.

Extraction is layered: strategies are tried in order and the first one
that yields at least one record wins. The structured strategies walk the
DOM using the selector sets from config; the text strategies are the
fallback for pages whose structure no longer matches.
"""
import hashlib
import logging
import re
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

from .config import PREDICTION_SELECTORS, RESULT_SELECTORS, SelectorSet
from .errors import ExtractionRowError
from .models import ConfidenceLevel, MatchStatus, PredictionRecord, ResultRecord

logger = logging.getLogger(__name__)

DEFAULT_MARKET = "1X2"
FALLBACK_STAKE = 5
FALLBACK_LEAGUE = "Extracted from Page"
UNKNOWN_LEAGUE = "Unknown League"
UNKNOWN_TEAM = "Unknown"
MARKET_MAX_LENGTH = 50

# (minimum probability, stake, confidence), highest first
_THRESHOLDS = [
    (85, 10, ConfidenceLevel.EXCELLENT),
    (75, 8, ConfidenceLevel.HIGH),
    (65, 6, ConfidenceLevel.GOOD),
    (55, 4, ConfidenceLevel.MODERATE),
    (45, 3, ConfidenceLevel.LOW),
]

_TEAM_SPLIT = re.compile(r"\s+(?:vs\.?|v)\s+", re.IGNORECASE)
_TEAM_NAME = r"[^\W\d_](?:[^\W\d_]|[ .'&-])*"
_VERSUS_PATTERN = re.compile(rf"({_TEAM_NAME}?)\s+vs\.?\s+({_TEAM_NAME})", re.IGNORECASE)
_SCORE_PATTERN = re.compile(r"(\d+)\s*-\s*(\d+)")
_FINISHED_MARKERS = ("ft", "finished", "final")


# Derivation rules
def stake_from_probability(probability: float) -> int:
    """Map a probability (0-100) to a 1-10 stake rating."""
    for minimum, stake, _ in _THRESHOLDS:
        if probability >= minimum:
            return stake
    return 2


def confidence_level(probability: float) -> str:
    """Map a probability (0-100) to a confidence label."""
    for minimum, _, level in _THRESHOLDS:
        if probability >= minimum:
            return level.value
    return ConfidenceLevel.VERY_LOW.value


def normalize_market(raw: Optional[str]) -> str:
    """Reduce free-text market descriptions to a canonical name.

    Checks run in a fixed order, so "over 2.5" wins over a stray "home".
    Unknown markets pass through, cut to 50 characters.
    """
    if raw is None:
        return DEFAULT_MARKET
    text = raw.strip()
    market = text.lower()
    if not market:
        return DEFAULT_MARKET

    if "btts" in market or "both" in market:
        return "BTTS"
    if "over" in market and "2.5" in market:
        return "Over 2.5"
    if "under" in market and "2.5" in market:
        return "Under 2.5"
    if "over" in market and "1.5" in market:
        return "Over 1.5"
    if "under" in market and "1.5" in market:
        return "Under 1.5"
    if "home" in market or market == "1":
        return "Home"
    if "away" in market or market == "2":
        return "Away"
    if "draw" in market or market == "x":
        return "Draw"
    if "1x2" in market or "result" in market:
        return "1X2"

    return text[:MARKET_MAX_LENGTH]


def make_external_id(teams_text: str, date_text: str) -> str:
    """Content hash identifying a fixture across scrapes."""
    return hashlib.md5(f"{teams_text}{date_text}".encode("utf-8")).hexdigest()[:16]


def make_result_id(home_team: str, away_team: str) -> str:
    digest = hashlib.md5(f"{home_team.lower()}{away_team.lower()}".encode("utf-8")).hexdigest()
    return f"sofascore_{digest[:12]}"


# Field parsers
def parse_odds(odds_str: Optional[str]) -> Optional[float]:
    """
    Convert an odds string to decimal format.

    Args:
        odds_str: Odds string like '3/1', '11/10', 'EVS', or decimal like '2.50' / '2,50'

    Returns:
        Decimal odds or None if parsing fails
    """
    if not odds_str:
        return None

    odds_str = odds_str.strip().upper()

    # Handle special cases
    if odds_str in ("SP", "-", ""):
        return None
    if odds_str in ("EVS", "EVENS", "EVN"):
        return 2.0

    # Try fractional format (e.g., '3/1')
    if "/" in odds_str:
        try:
            num, den = odds_str.split("/")
            return (float(num) / float(den)) + 1
        except (ValueError, ZeroDivisionError):
            return None

    # Try decimal format
    try:
        value = float(odds_str.replace(",", "."))
    except ValueError:
        return None
    return value if value > 0 else None


def parse_probability(text: Optional[str]) -> float:
    """Read a percentage like '72%' or '64,5 %'. Missing or invalid means 0."""
    if not text:
        return 0.0
    match = re.search(r"\d+(?:[.,]\d+)?", text)
    if not match:
        return 0.0
    value = float(match.group(0).replace(",", "."))
    return max(0.0, min(100.0, value))


def parse_stake_hint(text: Optional[str]) -> Optional[int]:
    """First integer in text, clamped to the 1-10 stake scale."""
    if not text:
        return None
    match = re.search(r"\d+", text)
    if not match:
        return None
    return max(1, min(10, int(match.group(0))))


def parse_date_time(text: Optional[str], now: Optional[datetime] = None) -> Tuple[date, str]:
    """
    Parse a fixture date/time string.

    Args:
        text: e.g. '15/03/2025 20:45', '2025-03-15', 'Today 15:00', 'Sat 15:00'
        now: reference time for relative dates

    Returns:
        (match date, 'HH:MM' or '' when no time is present)
    """
    now = now or datetime.now()
    if not text:
        return now.date(), ""

    text = text.strip()
    time_str = ""
    hour = None
    time_match = re.search(r"(\d{1,2}):(\d{2})", text)
    if time_match:
        hour, minute = int(time_match.group(1)), int(time_match.group(2))
        if hour < 24 and minute < 60:
            time_str = f"{hour:02d}:{minute:02d}"
        else:
            hour = None

    iso_match = re.search(r"(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})", text)
    if iso_match:
        year, month, day = (int(g) for g in iso_match.groups())
        try:
            return date(year, month, day), time_str
        except ValueError:
            pass

    dmy_match = re.search(r"(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})", text)
    if dmy_match:
        day, month, year = (int(g) for g in dmy_match.groups())
        if year < 100:
            year += 2000
        try:
            return date(year, month, day), time_str
        except ValueError:
            pass

    lowered = text.lower()
    if "today" in lowered:
        return now.date(), time_str
    if "tomorrow" in lowered:
        return (now + timedelta(days=1)).date(), time_str

    days = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]
    for i, day in enumerate(days):
        if re.search(rf"\b{day}", lowered):
            days_ahead = (i - now.weekday()) % 7
            if days_ahead == 0 and hour is not None and hour < now.hour:
                days_ahead = 7  # Next week
            return (now + timedelta(days=days_ahead)).date(), time_str

    return now.date(), time_str


def _text(element) -> str:
    return element.get_text(" ", strip=True) if element is not None else ""


def _select_text(row, selector: str) -> str:
    """Text of the first element matching selector.

    The alternatives of a comma-separated selector are tried left to right,
    so earlier hints take priority over document order.
    """
    if not selector:
        return ""
    for alternative in selector.split(","):
        element = row.select_one(alternative.strip())
        if element is not None:
            return _text(element)
    return ""


def split_teams(row, selector: str) -> Tuple[str, str, str]:
    """Find home and away names in a row.

    Returns (home, away, raw teams text). Either name may be empty.
    """
    elements = row.select(selector) if selector else []
    for element in elements:
        text = _text(element)
        parts = [p.strip() for p in _TEAM_SPLIT.split(text, maxsplit=1)]
        if len(parts) == 2 and parts[0] and parts[1]:
            return parts[0], parts[1], text

    # Nested matches (a "teams" wrapper around "team-home") would repeat names
    leaves = [_text(e) for e in elements if not e.select(selector)]
    leaves = [t for t in leaves if t]
    if len(leaves) >= 2:
        return leaves[0], leaves[1], f"{leaves[0]} vs {leaves[1]}"
    if leaves:
        return leaves[0], "", leaves[0]
    return "", "", ""


# Strategies
class ExtractionStrategy:
    """Attempt extraction from a parsed page; return an empty list on no match."""

    name = "base"

    def extract(self, soup: BeautifulSoup) -> list:
        raise NotImplementedError


class StructuredPredictionStrategy(ExtractionStrategy):
    """Read prediction rows using CSS hints."""

    name = "structured"

    def __init__(self, selectors: SelectorSet = PREDICTION_SELECTORS, now: Optional[datetime] = None):
        self.selectors = selectors
        self.now = now

    def extract(self, soup: BeautifulSoup) -> List[PredictionRecord]:
        rows = soup.select(self.selectors.rows)
        logger.info(f"Found {len(rows)} prediction rows")

        records = []
        for row in rows:
            try:
                records.append(self.parse_row(row))
            except ExtractionRowError as e:
                logger.debug(f"Skipping row: {e}")
            except (ValueError, AttributeError) as e:
                logger.debug(f"Error parsing prediction row: {e}")
        return records

    def parse_row(self, row) -> PredictionRecord:
        sel = self.selectors
        home_team, away_team, teams_text = split_teams(row, sel.teams)
        if not home_team and not away_team:
            raise ExtractionRowError("row has no team names")

        date_text = _select_text(row, sel.date)
        match_date, match_time = parse_date_time(date_text, self.now)

        odds = []
        for element in row.select(sel.odds) if sel.odds else []:
            value = parse_odds(_text(element))
            if value:
                odds.append(value)

        probability = parse_probability(_select_text(row, sel.probability))
        stake = parse_stake_hint(_select_text(row, sel.stake))
        if stake is None:
            stake = stake_from_probability(probability)

        market = normalize_market(_select_text(row, sel.market))

        return PredictionRecord(
            external_id=make_external_id(teams_text, date_text),
            home_team=home_team or UNKNOWN_TEAM,
            away_team=away_team or UNKNOWN_TEAM,
            league=_select_text(row, sel.league) or UNKNOWN_LEAGUE,
            match_date=match_date,
            match_time=match_time,
            market=market,
            odds=odds[0] if odds else 0.0,
            probability=probability,
            stake=stake,
            confidence_level=confidence_level(probability),
            home_odds=odds[0] if len(odds) > 0 else None,
            draw_odds=odds[1] if len(odds) > 1 else None,
            away_odds=odds[2] if len(odds) > 2 else None,
        )


class TextPatternPredictionStrategy(ExtractionStrategy):
    """Find 'Team vs Team' mentions in the page text and emit stub tips."""

    name = "text-pattern"

    def __init__(self, now: Optional[datetime] = None):
        self.now = now

    def extract(self, soup: BeautifulSoup) -> List[PredictionRecord]:
        today = (self.now or datetime.now()).date()
        records = []
        for line in soup.get_text("\n").splitlines():
            for match in _VERSUS_PATTERN.finditer(line):
                home_team = match.group(1).strip()
                away_team = match.group(2).strip()
                if len(home_team) <= 2 or len(away_team) <= 2:
                    continue
                records.append(PredictionRecord(
                    external_id=make_external_id(home_team, away_team),
                    home_team=home_team,
                    away_team=away_team,
                    league=FALLBACK_LEAGUE,
                    match_date=today,
                    match_time="",
                    market=DEFAULT_MARKET,
                    odds=0.0,
                    probability=0.0,
                    stake=FALLBACK_STAKE,
                    confidence_level=confidence_level(0),
                ))
        if records:
            logger.info(f"Text fallback found {len(records)} fixtures")
        return records


class StructuredResultStrategy(ExtractionStrategy):
    """Read scores and match state from event containers."""

    name = "structured"

    def __init__(self, selectors: SelectorSet = RESULT_SELECTORS):
        self.selectors = selectors

    def extract(self, soup: BeautifulSoup) -> List[ResultRecord]:
        containers = soup.select(self.selectors.rows)
        logger.info(f"Found {len(containers)} match containers")

        records = []
        for container in containers:
            try:
                records.append(self.parse_container(container))
            except ExtractionRowError as e:
                logger.debug(f"Skipping container: {e}")
            except (ValueError, AttributeError) as e:
                logger.debug(f"Error parsing match container: {e}")
        return records

    def parse_container(self, container) -> ResultRecord:
        sel = self.selectors
        home_team = _select_text(container, sel.home_team)
        away_team = _select_text(container, sel.away_team)
        if not home_team or not away_team:
            raise ExtractionRowError("container has no team names")

        home_score = _parse_score(_select_text(container, sel.home_score))
        away_score = _parse_score(_select_text(container, sel.away_score))

        status_text = _select_text(container, sel.status)
        finished = is_finished(status_text)
        status = MatchStatus.FINISHED.value if finished else (status_text or MatchStatus.SCHEDULED.value)

        return ResultRecord(
            external_id=make_result_id(home_team, away_team),
            home_team=home_team,
            away_team=away_team,
            home_score=home_score,
            away_score=away_score,
            status=status,
            finished=finished,
        )


class ScoreTextResultStrategy(ExtractionStrategy):
    """Pair 'n - n' score elements with the team names next to them."""

    name = "score-text"

    def extract(self, soup: BeautifulSoup) -> List[ResultRecord]:
        records = []
        for element in soup.select('[class*="score"], [class*="result"]'):
            score = _SCORE_PATTERN.search(_text(element))
            if not score or element.parent is None:
                continue
            teams = [_text(t) for t in element.parent.select('[class*="team"]')[:2]]
            if len(teams) < 2 or not teams[0] or not teams[1]:
                continue
            records.append(ResultRecord(
                external_id=make_result_id(teams[0], teams[1]),
                home_team=teams[0],
                away_team=teams[1],
                home_score=int(score.group(1)),
                away_score=int(score.group(2)),
                status=MatchStatus.FINISHED.value,
                finished=True,
            ))
        return records


def is_finished(status_text: Optional[str]) -> bool:
    lowered = (status_text or "").lower()
    return any(marker in lowered for marker in _FINISHED_MARKERS)


def _parse_score(text: str) -> int:
    match = re.search(r"\d+", text or "")
    return int(match.group(0)) if match else 0


class Extractor:
    """Run strategies in order; the first non-empty result wins."""

    def __init__(self, strategies: Sequence[ExtractionStrategy]):
        self.strategies = list(strategies)

    def extract(self, html: str) -> list:
        soup = BeautifulSoup(html, "lxml")
        for strategy in self.strategies:
            records = strategy.extract(soup)
            if records:
                logger.debug(f"Strategy {strategy.name} produced {len(records)} records")
                return _dedupe(records)
            logger.debug(f"Strategy {strategy.name} found nothing")
        return []


def _dedupe(records: Iterable) -> list:
    seen = set()
    unique = []
    for record in records:
        if record.key in seen:
            continue
        seen.add(record.key)
        unique.append(record)
    return unique


def prediction_extractor(selectors: SelectorSet = PREDICTION_SELECTORS, now: Optional[datetime] = None) -> Extractor:
    return Extractor([StructuredPredictionStrategy(selectors, now), TextPatternPredictionStrategy(now)])


def result_extractor(selectors: SelectorSet = RESULT_SELECTORS) -> Extractor:
    return Extractor([StructuredResultStrategy(selectors), ScoreTextResultStrategy()])
