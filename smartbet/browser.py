"""Shared headless Chrome session used by every scraper."""
import logging
import random
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from selenium import webdriver
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.common.exceptions import WebDriverException
from webdriver_manager.chrome import ChromeDriverManager

from .config import (
    CLIENT_LOCALES,
    EXTRA_HTTP_HEADERS,
    HEADLESS,
    PAGE_LOAD_TIMEOUT,
    USER_AGENTS,
    WINDOW_SIZE,
)
from .errors import SessionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientIdentity:
    """What the browser presents to target sites for a whole session."""
    user_agent: str
    locale: str
    accept_language: str
    timezone: str
    headers: Dict[str, str]


def random_identity(rng: random.Random = None) -> ClientIdentity:
    """Pick a user agent, locale and timezone for a new session."""
    rng = rng or random
    locale, accept_language, tz = rng.choice(CLIENT_LOCALES)
    headers = dict(EXTRA_HTTP_HEADERS)
    headers["Accept-Language"] = accept_language
    return ClientIdentity(
        user_agent=rng.choice(USER_AGENTS),
        locale=locale,
        accept_language=accept_language,
        timezone=tz,
        headers=headers,
    )


def delay(min_seconds: float = 1.0, max_seconds: float = 3.0) -> float:
    """Sleep for a random duration to mimic human pacing. Returns the pause."""
    pause = random.uniform(min_seconds, max_seconds)
    time.sleep(pause)
    return pause


def scroll_page(driver, scroll_count: int = 3) -> None:
    """Scroll to the bottom a few times so lazy content gets loaded."""
    for _ in range(scroll_count):
        driver.execute_script("window.scrollTo(0, document.body.scrollHeight);")
        delay(0.5, 1.0)


class BrowserSession:
    """Owns one Chrome WebDriver, created on first use and reused afterwards.

    A WebDriver is not thread-safe and window switching is global to the
    driver, so ``page()`` hands out one tab at a time.
    """

    def __init__(self, headless: bool = HEADLESS, identity: Optional[ClientIdentity] = None):
        self.headless = headless
        self._identity = identity
        self._driver: Optional[webdriver.Chrome] = None
        self._init_lock = threading.Lock()
        self._page_lock = threading.RLock()

    @property
    def identity(self) -> Optional[ClientIdentity]:
        return self._identity

    @property
    def is_active(self) -> bool:
        return self._driver is not None

    def _build_options(self, identity: ClientIdentity) -> Options:
        options = Options()
        if self.headless:
            options.add_argument("--headless=new")
        options.add_argument("--disable-gpu")
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-setuid-sandbox")
        options.add_argument("--disable-dev-shm-usage")
        options.add_argument(f"--window-size={WINDOW_SIZE[0]},{WINDOW_SIZE[1]}")
        options.add_argument(f"--lang={identity.locale}")
        options.add_argument(f"user-agent={identity.user_agent}")
        options.add_experimental_option("prefs", {"intl.accept_languages": identity.accept_language})
        options.set_capability("goog:loggingPrefs", {"browser": "SEVERE"})
        return options

    def _apply_identity(self, driver: webdriver.Chrome, identity: ClientIdentity) -> None:
        driver.execute_cdp_cmd("Network.enable", {})
        driver.execute_cdp_cmd("Network.setExtraHTTPHeaders", {"headers": identity.headers})
        driver.execute_cdp_cmd("Emulation.setTimezoneOverride", {"timezoneId": identity.timezone})
        driver.execute_cdp_cmd("Emulation.setLocaleOverride", {"locale": identity.locale})

    def _launch(self, identity: ClientIdentity) -> webdriver.Chrome:
        service = Service(ChromeDriverManager().install())
        driver = webdriver.Chrome(service=service, options=self._build_options(identity))
        try:
            driver.set_page_load_timeout(PAGE_LOAD_TIMEOUT)
            self._apply_identity(driver, identity)
        except Exception:
            # Chrome is already running; don't leave it behind
            driver.quit()
            raise
        return driver

    def acquire(self) -> webdriver.Chrome:
        """Return the session's driver, launching Chrome on first call."""
        if self._driver is not None:
            return self._driver

        with self._init_lock:
            if self._driver is None:
                identity = self._identity or random_identity()
                logger.info("Starting browser session")
                try:
                    self._driver = self._launch(identity)
                except Exception as e:
                    logger.error(f"Failed to initialize Chrome WebDriver: {e}")
                    raise SessionError(f"Could not launch browser: {e}") from e
                self._identity = identity
                logger.info(f"Browser ready ({identity.locale}, {identity.timezone})")

        return self._driver

    def release(self) -> None:
        """Quit the browser. The next acquire() starts a new session."""
        with self._init_lock:
            driver, self._driver = self._driver, None
        if driver is None:
            return
        try:
            driver.quit()
            logger.info("Browser session closed")
        except WebDriverException as e:
            logger.warning(f"Error closing browser: {e}")

    @contextmanager
    def page(self) -> Iterator[webdriver.Chrome]:
        """Open a fresh tab for one run and close it afterwards."""
        driver = self.acquire()
        with self._page_lock:
            home_handle = driver.current_window_handle
            driver.switch_to.new_window("tab")
            try:
                yield driver
            finally:
                try:
                    driver.close()
                    driver.switch_to.window(home_handle)
                except WebDriverException as e:
                    logger.debug(f"Error closing tab: {e}")


_default_session: Optional[BrowserSession] = None
_default_lock = threading.Lock()


def get_session() -> BrowserSession:
    """Get the process-wide browser session."""
    global _default_session
    with _default_lock:
        if _default_session is None:
            _default_session = BrowserSession()
        return _default_session


def release_session() -> None:
    """Close the process-wide browser session if one was started."""
    with _default_lock:
        session = _default_session
    if session is not None:
        session.release()
