import logging
from typing import List, Optional

from playwright.sync_api import sync_playwright, Browser, BrowserContext, Page, Playwright

from evidence_harness.utils.config import (
    BROWSER_CHROMIUM,
    BROWSER_FIREFOX,
    ELEMENT_WAIT_TIMEOUT_SECONDS,
    PAGE_LOAD_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)


class PlaywrightSession:
    """A rendering browser session driven through Playwright (Chromium or Firefox)."""

    can_capture_pixels = True

    def __init__(
        self,
        engine: str = BROWSER_CHROMIUM,
        headless: bool = True,
        window_width: int = 1920,
        window_height: int = 1080,
        in_container: bool = False,
    ):
        if engine not in (BROWSER_CHROMIUM, BROWSER_FIREFOX):
            raise ValueError(f"Unsupported Playwright engine: {engine}")
        self.engine = engine
        self.headless = headless
        self.window_width = window_width
        self.window_height = window_height
        self.in_container = in_container
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    @property
    def name(self) -> str:
        return self.engine

    def _launch_args(self) -> List[str]:
        if self.engine != BROWSER_CHROMIUM:
            return []
        args = ["--remote-allow-origins=*"]
        if self.in_container:
            args += ["--no-sandbox", "--disable-dev-shm-usage"]
        return args

    def start(self) -> Page:
        """Starts a new browser session and returns a page."""
        if self.page:
            return self.page

        logger.info(
            f"Starting {self.engine}"
            f"{' in headless mode' if self.headless else ''} "
            f"({self.window_width}x{self.window_height})"
        )
        try:
            self.playwright = sync_playwright().start()
            browser_type = getattr(self.playwright, self.engine)
            self.browser = browser_type.launch(headless=self.headless, args=self._launch_args())
            self.context = self.browser.new_context(
                viewport={"width": self.window_width, "height": self.window_height},
                locale="en-US",
            )
            self.context.set_default_navigation_timeout(PAGE_LOAD_TIMEOUT_SECONDS * 1000)
            self.context.set_default_timeout(ELEMENT_WAIT_TIMEOUT_SECONDS * 1000)
            self.page = self.context.new_page()
        except Exception:
            # A half-started engine still holds a driver subprocess.
            self.close()
            raise
        return self.page

    def navigate(self, url: str):
        """Navigates the current page to the specified URL."""
        if not self.page:
            self.start()
        if self.page:
            self.page.goto(url)

    @property
    def url(self) -> str:
        if not self.page:
            raise RuntimeError("Session not started")
        return self.page.url

    @property
    def title(self) -> str:
        if not self.page:
            raise RuntimeError("Session not started")
        return self.page.title()

    @property
    def page_source(self) -> str:
        """Returns the full HTML content of the page."""
        if not self.page:
            raise RuntimeError("Session not started")
        return self.page.content()

    def screenshot(self, path: Optional[str] = None) -> bytes:
        """Captures a PNG screenshot of the current viewport."""
        if not self.page:
            raise RuntimeError("Session not started")
        return self.page.screenshot(path=path)

    def close(self):
        """Closes the browser session and releases resources."""
        try:
            if self.context:
                self.context.close()
            if self.browser:
                self.browser.close()
        finally:
            self.context = None
            self.browser = None
            self.page = None
            if self.playwright:
                playwright, self.playwright = self.playwright, None
                playwright.stop()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
