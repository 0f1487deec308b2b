"""Playwright-backed WebSession with login and bounded waits."""
import logging
from typing import Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from restock.config import config
from restock.session.errors import (
    FatalSessionError,
    SelectorNotFoundError,
    SessionError,
    TransientSessionError,
)
from restock.session.web_session import click_first, fill_first, read_first_text

logger = logging.getLogger(__name__)

USERNAME_SELECTORS = ["#UserName", "#j_username", 'input[name="username"]', 'input[type="email"]']
PASSWORD_SELECTORS = ["#Password", "#j_password", 'input[name="password"]', 'input[type="password"]']
LOGIN_SUBMIT_SELECTORS = ["#login-submit", 'button[type="submit"]', 'input[type="submit"]', ".login-button"]
LOGIN_ERROR_SELECTORS = [".validation-summary-errors", ".error-message", ".alert-danger"]

# Messages meaning the browser/page is gone rather than slow
_DEAD_SESSION_MARKERS = (
    "Target closed",
    "has been closed",
    "Browser closed",
    "Connection closed",
)


def _ms(seconds: float) -> float:
    return seconds * 1000


class PlaywrightSession:
    """Single-page Chromium session, used strictly sequentially."""

    def __init__(
        self,
        headless: bool = config.HEADLESS,
        navigation_timeout: float = config.NAVIGATION_TIMEOUT,
        selector_timeout: float = config.SELECTOR_TIMEOUT,
    ):
        self.headless = headless
        self.navigation_timeout = navigation_timeout
        self.selector_timeout = selector_timeout
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._page: Optional[Page] = None
        self.is_logged_in = False

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        logger.info(f"Launching browser (headless={self.headless})...")
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.headless)
        context = await self._browser.new_context(
            viewport={"width": 1280, "height": 800},
            user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
        )
        self._page = await context.new_page()
        logger.info("Browser ready")

    async def close(self) -> None:
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()
        self._browser = None
        self._playwright = None
        self._page = None
        self.is_logged_in = False

    @property
    def page(self) -> Page:
        if self._page is None:
            raise FatalSessionError("Browser session is not started")
        return self._page

    def _translate(self, error: PlaywrightError, what: str, missing_element: bool) -> SessionError:
        message = str(error)
        if any(marker in message for marker in _DEAD_SESSION_MARKERS):
            return FatalSessionError(f"{what}: browser session lost ({message})")
        if isinstance(error, PlaywrightTimeoutError) and missing_element:
            return SelectorNotFoundError(f"{what}: element not found", [what])
        return TransientSessionError(f"{what}: {message}")

    async def goto(self, url: str) -> None:
        try:
            await self.page.goto(url, wait_until="networkidle", timeout=_ms(self.navigation_timeout))
        except PlaywrightError as e:
            raise self._translate(e, f"goto {url}", missing_element=False) from e

    async def fill(self, selector: str, value: str) -> None:
        try:
            await self.page.fill(selector, value, timeout=_ms(self.selector_timeout))
        except PlaywrightError as e:
            raise self._translate(e, selector, missing_element=True) from e

    async def click(self, selector: str) -> None:
        try:
            await self.page.click(selector, timeout=_ms(self.selector_timeout))
        except PlaywrightError as e:
            raise self._translate(e, selector, missing_element=True) from e

    async def wait_for_selector(self, selector: str, timeout: float) -> None:
        try:
            await self.page.wait_for_selector(selector, timeout=_ms(timeout))
        except PlaywrightError as e:
            raise self._translate(e, selector, missing_element=True) from e

    async def wait_for_navigation(self, timeout: float) -> None:
        try:
            await self.page.wait_for_load_state("networkidle", timeout=_ms(timeout))
        except PlaywrightError as e:
            raise self._translate(e, "navigation", missing_element=False) from e

    async def text_content(self, selector: str) -> str:
        try:
            text = await self.page.text_content(selector, timeout=_ms(self.selector_timeout))
        except PlaywrightError as e:
            raise self._translate(e, selector, missing_element=True) from e
        return (text or "").strip()

    async def screenshot(self, path: str) -> None:
        try:
            await self.page.screenshot(path=path, full_page=True)
        except PlaywrightError as e:
            raise self._translate(e, f"screenshot {path}", missing_element=False) from e

    async def login(self, username: Optional[str] = None, password: Optional[str] = None) -> None:
        """Log in to the supplier; raises FatalSessionError when it cannot."""
        username = username or config.SUPPLIER_USERNAME
        password = password or config.SUPPLIER_PASSWORD
        if not username or not password:
            raise FatalSessionError("SUPPLIER_USERNAME/SUPPLIER_PASSWORD must be provided")

        logger.info(f"Logging in as {username}...")
        try:
            await self._login_attempt(username, password)
        except (TransientSessionError, SelectorNotFoundError) as e:
            raise FatalSessionError(f"Login failed: {e}") from e
        self.is_logged_in = True
        logger.info("Login successful")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(TransientSessionError),
        reraise=True,
    )
    async def _login_attempt(self, username: str, password: str) -> None:
        """One login round-trip; transient failures are retried."""
        await self.goto(config.LOGIN_URL)
        await fill_first(self, USERNAME_SELECTORS, username, self.selector_timeout)
        await fill_first(self, PASSWORD_SELECTORS, password, self.selector_timeout)
        await click_first(self, LOGIN_SUBMIT_SELECTORS, self.selector_timeout)
        await self.wait_for_navigation(self.navigation_timeout)

        if "login" in self.page.url.lower():
            error = await read_first_text(self, LOGIN_ERROR_SELECTORS)
            logger.error(f"Still on login page after submit: {self.page.url}")
            raise FatalSessionError(f"Login rejected: {error or 'unknown error'}")
