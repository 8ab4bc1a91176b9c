"""Browser factory for the shared Playwright browser process.

This module provides the BrowserFactory class that lazily launches one
Chromium process, reuses it across audits, and hands out one isolated
browser context and page per audit. Contexts never outlive the audit that
opened them, so no two audits can see each other's cookies.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

from playwright.async_api import (
    Browser,
    Page,
    Playwright,
    async_playwright,
)

from ..errors import BrowserInitError

logger = logging.getLogger(__name__)


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Sandboxing is disabled for containerized execution.
DEFAULT_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--disable-features=TranslateUI",
    "--disable-extensions",
]


class BrowserConfig:
    """Configuration for browser launch and per-audit page setup."""

    def __init__(
        self,
        headless: bool = True,
        launch_timeout_ms: int = 60000,
        navigation_timeout_ms: int = 60000,
        operation_timeout_ms: int = 30000,
        user_agent: Optional[str] = DEFAULT_USER_AGENT,
        viewport: Optional[Dict[str, int]] = None,
        launch_args: Optional[List[str]] = None,
        ignore_https_errors: bool = False,
    ):
        """Initialize browser configuration.

        Args:
            headless: Run browser in headless mode
            launch_timeout_ms: Maximum time to wait for the browser to start
            navigation_timeout_ms: Default navigation timeout for each page
            operation_timeout_ms: Default timeout for other page operations
            user_agent: Fixed desktop User-Agent string
            viewport: Viewport size dict with 'width' and 'height'
            launch_args: Chromium command line flags
            ignore_https_errors: Ignore TLS certificate errors during navigation
        """
        self.headless = headless
        self.launch_timeout_ms = launch_timeout_ms
        self.navigation_timeout_ms = navigation_timeout_ms
        self.operation_timeout_ms = operation_timeout_ms
        self.user_agent = user_agent
        self.viewport = viewport or {'width': 1366, 'height': 768}
        self.launch_args = list(DEFAULT_LAUNCH_ARGS if launch_args is None else launch_args)
        self.ignore_https_errors = ignore_https_errors

    def to_browser_options(self) -> Dict[str, Any]:
        """Convert to Playwright browser launch options."""
        return {
            'headless': self.headless,
            'args': list(self.launch_args),
            'timeout': self.launch_timeout_ms,
        }

    def to_context_options(self) -> Dict[str, Any]:
        """Convert to Playwright browser context options."""
        options: Dict[str, Any] = {'viewport': dict(self.viewport)}

        if self.user_agent:
            options['user_agent'] = self.user_agent

        if self.ignore_https_errors:
            options['ignore_https_errors'] = True

        return options


class BrowserFactory:
    """Owns the single browser process shared by all audits."""

    def __init__(self, config: Optional[BrowserConfig] = None):
        """Initialize browser factory with configuration.

        Args:
            config: Browser configuration object
        """
        self.config = config or BrowserConfig()
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self._init_lock: Optional[asyncio.Lock] = None
        self._page_count = 0

    async def ensure_session(self) -> Browser:
        """Return the running browser, launching it on first use.

        Concurrent callers share one launch. A browser that has disconnected
        since the last call is relaunched.

        Returns:
            Connected Playwright Browser

        Raises:
            BrowserInitError: If Playwright or the browser fails to start
        """
        if self.is_running:
            return self.browser

        # Created on first use so it belongs to the loop running the audits.
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()

        async with self._init_lock:
            if self.is_running:
                return self.browser

            if self.browser is not None:
                logger.warning("Browser disconnected, relaunching")
                self.browser = None

            logger.info(f"Launching browser (headless={self.config.headless})")

            try:
                if self.playwright is None:
                    self.playwright = await async_playwright().start()
                self.browser = await self.playwright.chromium.launch(
                    **self.config.to_browser_options()
                )
            except Exception as e:
                logger.error(f"Failed to start browser: {e}")
                await self.close()
                raise BrowserInitError(f"Failed to launch browser: {e}") from e

            logger.info("Browser launched successfully")
            return self.browser

    @asynccontextmanager
    async def open_page(self) -> AsyncGenerator[Page, None]:
        """Open an isolated page for one audit.

        A fresh browser context is created for the page and closed with it.

        Yields:
            Page configured with the navigation and operation timeouts

        Raises:
            BrowserInitError: If the browser or context cannot be created
        """
        browser = await self.ensure_session()

        try:
            context = await browser.new_context(**self.config.to_context_options())
        except Exception as e:
            raise BrowserInitError(f"Failed to create browser context: {e}") from e

        self._page_count += 1
        try:
            page = await context.new_page()
            page.set_default_navigation_timeout(self.config.navigation_timeout_ms)
            page.set_default_timeout(self.config.operation_timeout_ms)
            logger.debug(f"Opened page (active pages: {self._page_count})")
            yield page
        finally:
            self._page_count -= 1
            try:
                await context.close()
            except Exception as e:
                logger.warning(f"Error closing browser context: {e}")

    async def close(self) -> None:
        """Release the browser process. Idempotent and never raises."""
        if self.browser is None and self.playwright is None:
            return

        logger.info("Closing browser")

        if self.browser is not None:
            try:
                await self.browser.close()
            except Exception as e:
                logger.error(f"Error closing browser: {e}")
            self.browser = None

        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except Exception as e:
                logger.error(f"Error stopping Playwright: {e}")
            self.playwright = None

    @property
    def is_running(self) -> bool:
        """Check if the browser process is up and connected."""
        if self.browser is None:
            return False
        try:
            return self.browser.is_connected()
        except Exception:
            return False

    @property
    def page_count(self) -> int:
        """Number of pages currently open."""
        return self._page_count

    def __repr__(self) -> str:
        return (
            f"BrowserFactory(headless={self.config.headless}, "
            f"running={self.is_running}, "
            f"pages={self.page_count})"
        )
