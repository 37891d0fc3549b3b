"""Scrapers for the prediction and results sites."""
import logging
from typing import Optional

from selenium.common.exceptions import WebDriverException

from .browser import BrowserSession, delay, get_session, scroll_page
from .config import (
    CHALLENGE_TIMEOUT,
    NAVIGATION_TIMEOUT,
    PAGE_DELAY,
    PREDICTIONS_URL,
    RESULTS_PAGE_DELAY,
    RESULTS_URL,
    SCROLL_COUNT,
)
from .errors import GateDeniedError, GateTimeoutError, SessionError
from .extraction import Extractor, prediction_extractor, result_extractor
from .models import ScrapeResult
from .navigation import log_console_errors, open_page, pass_challenge

logger = logging.getLogger(__name__)


class PageScraper:
    """Load one page through the shared browser and extract records from it."""

    source = "page"

    def __init__(
        self,
        session: Optional[BrowserSession] = None,
        extractor: Optional[Extractor] = None,
        navigation_timeout: float = NAVIGATION_TIMEOUT,
        challenge_timeout: float = CHALLENGE_TIMEOUT
    ):
        self.session = session or get_session()
        self.extractor = extractor
        self.navigation_timeout = navigation_timeout
        self.challenge_timeout = challenge_timeout

    def _settle(self, driver) -> None:
        """Hook for human-like pacing once the page is open."""

    def _load(self, driver, url: str) -> str:
        open_page(driver, url, self.navigation_timeout)
        try:
            pass_challenge(driver, self.challenge_timeout)
        except GateTimeoutError as e:
            logger.warning(f"{e}; continuing with the content we have")
        self._settle(driver)
        log_console_errors(driver)
        return driver.page_source

    def _is_success(self, records: list) -> bool:
        return True

    def scrape_url(self, url: str) -> ScrapeResult:
        """
        Scrape a single page.

        Fatal errors (browser launch, access denied, WebDriver failures) are
        reported in the result rather than raised.
        """
        result = ScrapeResult()
        logger.info(f"Scraping {self.source}: {url}")

        try:
            with self.session.page() as driver:
                html = self._load(driver, url)
            result.records = self.extractor.extract(html)
            result.success = self._is_success(result.records)
            logger.info(f"{self.source} scrape complete: {len(result.records)} records")
        except (SessionError, GateDeniedError) as e:
            logger.error(f"{self.source} scrape aborted: {e}")
            result.error = str(e)
        except WebDriverException as e:
            logger.error(f"WebDriver error: {e}")
            result.error = f"WebDriver error: {e.msg or e}"

        return result


class PredictionScraper(PageScraper):
    """Mathematical predictions from FootyStats."""

    source = "FootyStats"

    def __init__(self, session: Optional[BrowserSession] = None, url: str = PREDICTIONS_URL, **kwargs):
        kwargs.setdefault("extractor", prediction_extractor())
        super().__init__(session, **kwargs)
        self.url = url

    def _settle(self, driver) -> None:
        delay(*PAGE_DELAY)
        scroll_page(driver, SCROLL_COUNT)

    def _is_success(self, records: list) -> bool:
        return len(records) > 0

    def scrape(self) -> ScrapeResult:
        result = self.scrape_url(self.url)
        if not result.success and result.error is None:
            result.error = "No predictions found on page"
        return result


class ResultScraper(PageScraper):
    """Live and finished scores from Sofascore."""

    source = "Sofascore"

    def __init__(self, session: Optional[BrowserSession] = None, base_url: str = RESULTS_URL, **kwargs):
        kwargs.setdefault("extractor", result_extractor())
        super().__init__(session, **kwargs)
        self.base_url = base_url

    def _settle(self, driver) -> None:
        delay(*RESULTS_PAGE_DELAY)

    def url_for(self, league: Optional[str] = None) -> str:
        if not league:
            return self.base_url
        return f"{self.base_url.rstrip('/')}/{league.lstrip('/')}"

    def scrape(self, league: Optional[str] = None) -> ScrapeResult:
        return self.scrape_url(self.url_for(league))
