"""Configuration and settings for the prediction scraper."""
import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Base paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = BASE_DIR / "data"
DB_PATH = Path(os.getenv("SMARTBET_DB_PATH", str(DATA_DIR / "smartbet.db")))

# Ensure data directory exists
DB_PATH.parent.mkdir(parents=True, exist_ok=True)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Target sites
PREDICTIONS_SOURCE = "FootyStats"
PREDICTIONS_URL = os.getenv("PREDICTIONS_URL", "https://footystats.org/predictions/mathematical")
RESULTS_SOURCE = "Sofascore"
RESULTS_URL = os.getenv("RESULTS_URL", "https://www.sofascore.com/es-la/")

# Browser
HEADLESS = os.getenv("HEADLESS", "true").lower() not in ("0", "false", "no")
WINDOW_SIZE = (1920, 1080)
PAGE_LOAD_TIMEOUT = int(os.getenv("PAGE_LOAD_TIMEOUT", "60"))  # hard cap for driver.get
NAVIGATION_TIMEOUT = int(os.getenv("NAVIGATION_TIMEOUT", "30"))  # wait for content to settle
CHALLENGE_TIMEOUT = int(os.getenv("CHALLENGE_TIMEOUT", "60"))

# Human pacing (seconds)
PAGE_DELAY = (2.0, 4.0)
RESULTS_PAGE_DELAY = (2.0, 3.0)
SCROLL_COUNT = 2

# Settlement
VERIFY_BATCH_LIMIT = int(os.getenv("VERIFY_BATCH_LIMIT", "50"))
HOME_WIN_MARKETS = ("Home", "1X2", "HomeWin")

# Scheduler
SCHEDULER_TIMEZONE = os.getenv("SCHEDULER_TIMEZONE", "Europe/Madrid")
ACQUISITION_CRON_HOUR = int(os.getenv("ACQUISITION_CRON_HOUR", "6"))

# Client identities, one is drawn per browser session
USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

# (locale, accept-language, timezone)
CLIENT_LOCALES = [
    ("es-ES", "es-ES,es;q=0.9,en;q=0.8", "Europe/Madrid"),
    ("en-GB", "en-GB,en;q=0.9", "Europe/London"),
    ("pt-PT", "pt-PT,pt;q=0.9,en;q=0.8", "Europe/Lisbon"),
]

EXTRA_HTTP_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Cache-Control": "max-age=0",
}

# Anti-bot gate
CHALLENGE_SELECTORS = ["#cf-challenge-running", ".challenge-running"]
DENIAL_MARKERS = ["404", "Access Denied"]


@dataclass(frozen=True)
class SelectorSet:
    """CSS hints describing where fields live on a target page.

    Each value is a CSS selector list as accepted by BeautifulSoup's
    ``select``. Sites change, so these are meant to be swapped, not patched.
    """
    rows: str
    teams: str = ""
    home_team: str = ""
    away_team: str = ""
    date: str = ""
    league: str = ""
    odds: str = ""
    probability: str = ""
    stake: str = ""
    market: str = ""
    home_score: str = ""
    away_score: str = ""
    status: str = ""


PREDICTION_SELECTORS = SelectorSet(
    rows='tr.match-row, tr.prediction-row, .prediction-row, [class*="prediction"]',
    teams='[class*="team"], [class*="versus"]',
    date='[class*="date"], [class*="time"]',
    league='[class*="league"], [class*="country"]',
    odds='[class*="odd"]',
    probability='[class*="prob"], [class*="percentage"]',
    stake='[class*="stake"], [class*="rating"]',
    market='[class*="market"], [class*="tip"], [class*="prediction"]',
)

RESULT_SELECTORS = SelectorSet(
    rows='[class*="match"], [class*="event"], [class*="game"], .Event, .match-row, [data-testid*="match"]',
    home_team='[class*="team-home"], [class*="homeTeam"], [class*="home"]',
    away_team='[class*="team-away"], [class*="awayTeam"], [class*="away"]',
    home_score='[class*="score-home"], [class*="home-score"], .homeScore',
    away_score='[class*="score-away"], [class*="away-score"], .awayScore',
    status='[class*="status"], [class*="time"], [class*="state"]',
)
