"""
Browser session for listing pages

Wraps a single headless Chromium page (Playwright sync API). Pages are loaded
sequentially; the session is meant to be used from one thread only.
"""

from __future__ import annotations

import os
from typing import Optional

from .config import DEFAULT_USER_AGENT
from .logging_utils import get_logger

CHROMIUM_ARGS = [
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--disable-setuid-sandbox",
    "--no-sandbox",
]

logger = get_logger(__name__)


def _docker_mode() -> bool:
    return os.getenv("DOCKER") == "true" or os.getenv("CONTAINER") == "true"


class BrowserSession:
    """
    One browser, one page, sequential navigation.

    Usage:
        with BrowserSession() as browser:
            html = browser.fetch("https://www.festivalinfo.nl/festivals/")
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        headless: bool = True,
        executable_path: Optional[str] = None,
    ):
        self.user_agent = user_agent
        self.headless = headless
        self.executable_path = executable_path or (
            os.getenv("CHROMIUM_PATH", "/usr/bin/chromium-browser") if _docker_mode() else None
        )
        self._playwright = None
        self._browser = None
        self._page = None

    def start(self) -> "BrowserSession":
        from playwright.sync_api import sync_playwright

        if self._page is not None:
            return self

        logger.info("Launching browser at %s", self.executable_path or "default location")
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(
            headless=self.headless,
            executable_path=self.executable_path,
            args=CHROMIUM_ARGS,
        )
        context = self._browser.new_context(user_agent=self.user_agent)
        self._page = context.new_page()
        return self

    def fetch(self, url: str, timeout_ms: int = 60000, wait_for: Optional[str] = None) -> str:
        """
        Load a URL and return the rendered HTML.

        Args:
            url: Page to load.
            timeout_ms: Navigation timeout.
            wait_for: Optional CSS selector that must appear before returning.

        Raises:
            playwright.sync_api.Error: On navigation failures or timeouts.
        """
        page = self.start()._page
        page.goto(url, wait_until="networkidle", timeout=timeout_ms)
        if wait_for:
            page.wait_for_selector(wait_for, timeout=10000)
        return page.content()

    def click_if_present(self, selector: str, timeout_ms: int = 5000) -> bool:
        """Click an element (e.g. a cookie banner button) if it shows up."""
        from playwright.sync_api import Error as PlaywrightError

        page = self.start()._page
        try:
            page.wait_for_selector(selector, timeout=timeout_ms)
            page.click(selector)
            return True
        except PlaywrightError:
            logger.debug("No element for %s", selector)
            return False

    def wait(self, milliseconds: int) -> None:
        if milliseconds > 0 and self._page is not None:
            self._page.wait_for_timeout(milliseconds)

    def close(self):
        """Close the page, the browser and the Playwright driver."""
        if self._browser is not None:
            self._browser.close()
        if self._playwright is not None:
            self._playwright.stop()
        self._browser = None
        self._playwright = None
        self._page = None

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
