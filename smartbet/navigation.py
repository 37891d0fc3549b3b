"""Page loading and anti-bot gate handling.

Two outcomes of the gate are fatal and one is not: an explicit denial
(404, Access Denied) aborts the run, while a challenge that never clears
only means we carry on with whatever content the page has.
"""
import logging
from typing import Iterable, Optional

from selenium.common.exceptions import StaleElementReferenceException, TimeoutException, WebDriverException
from selenium.webdriver.common.by import By
from selenium.webdriver.support.ui import WebDriverWait

from .config import CHALLENGE_SELECTORS, CHALLENGE_TIMEOUT, DENIAL_MARKERS, NAVIGATION_TIMEOUT
from .errors import GateDeniedError, GateTimeoutError

logger = logging.getLogger(__name__)

POLL_FREQUENCY = 0.5

_RESOURCE_COUNT_JS = "return window.performance.getEntriesByType('resource').length;"


class _NetworkIdle:
    """Wait condition: document loaded and no new resources since last poll."""

    def __init__(self, quiet_polls: int = 2):
        self.quiet_polls = quiet_polls
        self._last_count = None
        self._quiet = 0

    def __call__(self, driver) -> bool:
        if driver.execute_script("return document.readyState;") != "complete":
            return False
        count = driver.execute_script(_RESOURCE_COUNT_JS)
        if count == self._last_count:
            self._quiet += 1
        else:
            self._quiet = 0
        self._last_count = count
        return self._quiet >= self.quiet_polls


def open_page(driver, url: str, timeout: float = NAVIGATION_TIMEOUT, poll_frequency: float = POLL_FREQUENCY) -> bool:
    """Navigate to url and wait until the network goes quiet.

    Returns True if the page settled within timeout. A slow page is not an
    error; the caller proceeds with what has loaded.
    """
    logger.info(f"Opening {url}")
    try:
        driver.get(url)
    except TimeoutException:
        logger.warning(f"Page load timed out for {url}, continuing with partial content")
        return False

    try:
        WebDriverWait(driver, timeout, poll_frequency=poll_frequency).until(_NetworkIdle())
        return True
    except TimeoutException:
        logger.warning(f"Network did not settle within {timeout}s on {url}")
        return False


def find_denial_marker(text: str, markers: Iterable[str] = DENIAL_MARKERS) -> Optional[str]:
    """Return the first denial marker present in text, if any."""
    if not text:
        return None
    for marker in markers:
        if marker in text:
            return marker
    return None


def _challenge_present(driver) -> bool:
    try:
        return any(
            element.is_displayed()
            for selector in CHALLENGE_SELECTORS
            for element in driver.find_elements(By.CSS_SELECTOR, selector)
        )
    except StaleElementReferenceException:
        # Page is being replaced; poll again
        return True


def _visible_text(driver) -> str:
    try:
        body = driver.find_element(By.TAG_NAME, "body").text
    except WebDriverException:
        body = ""
    return f"{driver.title or ''}\n{body}"


def pass_challenge(driver, ceiling: float = CHALLENGE_TIMEOUT, poll_frequency: float = POLL_FREQUENCY) -> None:
    """Wait out a bot-challenge interstitial, then check for an access denial.

    Raises:
        GateDeniedError: the page says access is denied or not found.
        GateTimeoutError: the challenge was still showing after ceiling seconds.
    """
    if not _challenge_present(driver):
        logger.debug("No bot challenge detected")
        cleared = True
    else:
        logger.warning("Bot challenge detected, waiting...")
        try:
            WebDriverWait(driver, ceiling, poll_frequency=poll_frequency).until_not(_challenge_present)
            logger.info("Bot challenge cleared")
            cleared = True
        except TimeoutException:
            cleared = False

    marker = find_denial_marker(_visible_text(driver))
    if marker:
        raise GateDeniedError(f"Access denied or page not found ({marker!r} on page)")

    if not cleared:
        raise GateTimeoutError(f"Bot challenge still present after {ceiling}s")


def log_console_errors(driver) -> int:
    """Send severe browser console messages to the debug log."""
    try:
        entries = driver.get_log("browser")
    except (WebDriverException, AttributeError, ValueError) as e:
        logger.debug(f"Browser console not available: {e}")
        return 0
    for entry in entries:
        logger.debug(f"Console error: {entry.get('message')}")
    return len(entries)
