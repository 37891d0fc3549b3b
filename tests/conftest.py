"""Shared pytest fixtures: in-memory database and fake browser objects."""
from contextlib import contextmanager
from datetime import date

import pytest
from selenium.common.exceptions import TimeoutException

from smartbet.database import get_connection, init_database, insert_bet, transaction, upsert_match
from smartbet.models import PredictionRecord


@pytest.fixture
def conn():
    """Fresh in-memory database with the schema applied."""
    connection = get_connection(":memory:")
    init_database(connection)
    yield connection
    connection.close()


def build_record(**overrides) -> PredictionRecord:
    values = {
        "external_id": "a1b2c3d4e5f60718",
        "home_team": "Arsenal",
        "away_team": "Chelsea",
        "league": "Premier League",
        "match_date": date(2025, 3, 15),
        "match_time": "20:45",
        "market": "Home",
        "odds": 1.85,
        "probability": 72.0,
        "stake": 6,
        "confidence_level": "GOOD",
        "home_odds": 1.85,
        "draw_odds": 3.4,
        "away_odds": 4.2,
    }
    values.update(overrides)
    return PredictionRecord(**values)


@pytest.fixture
def make_record():
    return build_record


@pytest.fixture
def add_match(conn):
    """Store a scheduled match and return its ID."""
    def _add(home_team, away_team, external_id=None):
        record = build_record(
            external_id=external_id or f"{home_team}-{away_team}",
            home_team=home_team,
            away_team=away_team,
        )
        with transaction(conn):
            return upsert_match(conn, record)
    return _add


@pytest.fixture
def add_bet(conn):
    """Store a pending bet and return its ID."""
    def _add(match_id, amount=10.0, odds_taken=2.5, market="Home", selection="Arsenal"):
        with transaction(conn):
            return insert_bet(conn, amount, odds_taken, market, selection, match_id=match_id)
    return _add


class FakeElement:
    def __init__(self, text="", displayed=True):
        self.text = text
        self._displayed = displayed

    def is_displayed(self):
        return self._displayed


class FakeSwitchTo:
    def __init__(self, driver):
        self.driver = driver

    def new_window(self, kind):
        self.driver.tabs_opened += 1
        self.driver.current_window_handle = f"tab-{self.driver.tabs_opened}"

    def window(self, handle):
        self.driver.current_window_handle = handle


class FakeDriver:
    """Just enough of a WebDriver for navigation and scraping code.

    ``challenge_polls`` is how many times the challenge marker is still
    reported before it disappears.
    """

    def __init__(self, page_source="<html><body></body></html>", title="", body_text="",
                 challenge_polls=0, ready_state="complete", load_timeout=False):
        self.page_source = page_source
        self.title = title
        self.body_text = body_text
        self.challenge_polls = challenge_polls
        self.ready_state = ready_state
        self.load_timeout = load_timeout
        self.visited = []
        self.scripts = []
        self.current_window_handle = "main"
        self.tabs_opened = 0
        self.tabs_closed = 0
        self.quit_called = False
        self.switch_to = FakeSwitchTo(self)

    def get(self, url):
        self.visited.append(url)
        if self.load_timeout:
            raise TimeoutException("page load timed out")

    def execute_script(self, script):
        self.scripts.append(script)
        if "readyState" in script:
            return self.ready_state
        if "getEntriesByType" in script:
            return 12
        return None

    def find_elements(self, by, selector):
        if selector == "#cf-challenge-running" and self.challenge_polls > 0:
            self.challenge_polls -= 1
            return [FakeElement()]
        return []

    def find_element(self, by, selector):
        return FakeElement(self.body_text)

    def get_log(self, kind):
        return [{"level": "SEVERE", "message": "script error"}]

    def close(self):
        self.tabs_closed += 1

    def quit(self):
        self.quit_called = True


class FakeSession:
    """Stands in for BrowserSession, handing out a single FakeDriver."""

    def __init__(self, driver=None, error=None):
        self.driver = driver or FakeDriver()
        self.error = error
        self.is_active = False

    @contextmanager
    def page(self):
        if self.error:
            raise self.error
        self.is_active = True
        yield self.driver


@pytest.fixture
def driver_factory():
    return FakeDriver


@pytest.fixture
def fake_session_factory():
    return FakeSession
