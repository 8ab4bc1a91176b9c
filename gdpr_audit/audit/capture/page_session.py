"""Page session: one navigation attempt with telemetry capture.

This module provides the PageSession class that attaches the telemetry
collector, navigates to the audited URL, waits out the settle window so
asynchronously injected trackers can fire, and snapshots the DOM and cookie
jar into a PageCapture. Any navigation failure is raised as NavigationError
for the engine's retry controller.
"""

import asyncio
import logging
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from ..errors import NavigationError
from ..models.capture import PageCapture, epoch_millis
from .cookie_collector import CookieCollector
from .network_observer import TelemetryCollector

logger = logging.getLogger(__name__)


class WaitStrategy:
    """Playwright load states accepted as navigation completion."""
    COMMIT = "commit"
    DOMCONTENTLOADED = "domcontentloaded"
    LOAD = "load"
    NETWORKIDLE = "networkidle"

    ALL = (COMMIT, DOMCONTENTLOADED, LOAD, NETWORKIDLE)


class PageSessionConfig:
    """Configuration for a single page capture."""

    def __init__(
        self,
        wait_until: str = WaitStrategy.DOMCONTENTLOADED,
        navigation_timeout_ms: int = 60000,
        settle_delay_ms: int = 3000,
    ):
        """Initialize page session configuration.

        Args:
            wait_until: Load state that completes navigation
            navigation_timeout_ms: Maximum time to wait for navigation
            settle_delay_ms: Delay after navigation before telemetry is finalized
        """
        if wait_until not in WaitStrategy.ALL:
            raise ValueError(f"wait_until must be one of: {WaitStrategy.ALL}")
        self.wait_until = wait_until
        self.navigation_timeout_ms = navigation_timeout_ms
        self.settle_delay_ms = settle_delay_ms


class PageSession:
    """Runs one capture attempt against an already opened page."""

    def __init__(self, page: Page, config: Optional[PageSessionConfig] = None):
        """Initialize page session.

        Args:
            page: Playwright page for capture
            config: Page session configuration
        """
        self.page = page
        self.config = config or PageSessionConfig()
        self.telemetry = TelemetryCollector(page)

    async def capture(self, url: str) -> PageCapture:
        """Navigate to ``url`` and capture the settled page.

        Args:
            url: URL to capture

        Returns:
            PageCapture with DOM, telemetry and cookie jar snapshot

        Raises:
            NavigationError: If navigation throws, times out, yields no
                response, or the response status is 400 or higher
        """
        self.telemetry.start()
        try:
            return await self._capture(url)
        finally:
            await self.telemetry.stop()

    async def _capture(self, url: str) -> PageCapture:
        navigation_started_ms = epoch_millis()
        logger.debug(f"Navigating to {url} (wait_until={self.config.wait_until})")

        try:
            response = await self.page.goto(
                url,
                wait_until=self.config.wait_until,
                timeout=self.config.navigation_timeout_ms,
            )
        except PlaywrightTimeoutError as e:
            raise NavigationError(
                f"Navigation timeout after {self.config.navigation_timeout_ms} ms: {url}"
            ) from e
        except PlaywrightError as e:
            raise NavigationError(f"Navigation failed: {e}") from e

        response_received_ms = epoch_millis()

        if response is None:
            raise NavigationError(f"No response received from {url}")

        status = response.status
        if status >= 400:
            raise NavigationError(f"HTTP {status}: {url}", status=status)

        logger.debug(f"Navigation complete ({status}), settling for {self.config.settle_delay_ms} ms")
        await asyncio.sleep(self.config.settle_delay_ms / 1000.0)
        settle_deadline_ms = epoch_millis()

        try:
            html = await self.page.content()
            cookies = await CookieCollector(self.page.context).collect_cookies(
                observed_at_ms=settle_deadline_ms
            )
        except PlaywrightError as e:
            raise NavigationError(f"Failed to capture page state: {e}") from e

        # Drain pending Set-Cookie reads before snapshotting telemetry.
        await self.telemetry.stop()

        return PageCapture(
            url=url,
            final_url=response.url,
            status_code=status,
            html=html or "",
            network_events=self.telemetry.network_events,
            cookie_captures=self.telemetry.cookie_captures,
            cookies=tuple(cookies),
            dropped_events=self.telemetry.dropped_events,
            navigation_started_ms=navigation_started_ms,
            response_received_ms=response_received_ms,
            settle_deadline_ms=settle_deadline_ms,
        )
