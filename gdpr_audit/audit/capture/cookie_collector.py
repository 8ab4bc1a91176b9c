"""Cookie jar snapshot for one audited page.

Reads every cookie from the page's browser context, including cookies set by
scripts, which never show up in a Set-Cookie header. Values are dropped;
only names, scope and flags are kept.
"""

import logging
from typing import List, Optional

from playwright.async_api import BrowserContext

from ..models.capture import BrowserCookie, epoch_millis

logger = logging.getLogger(__name__)


class CookieCollector:
    """Snapshots the browser context's cookie jar."""

    def __init__(self, context: BrowserContext):
        """Initialize cookie collector.

        Args:
            context: Playwright browser context
        """
        self.context = context
        self.cookies: List[BrowserCookie] = []

    async def collect_cookies(self, observed_at_ms: Optional[int] = None) -> List[BrowserCookie]:
        """Collect cookies from the browser context.

        Args:
            observed_at_ms: Time the snapshot represents (defaults to now)

        Returns:
            List of BrowserCookie records

        Raises:
            playwright.async_api.Error: If the context cannot be read
        """
        observed_at_ms = observed_at_ms if observed_at_ms is not None else epoch_millis()
        playwright_cookies = await self.context.cookies()

        self.cookies = []
        for pw_cookie in playwright_cookies:
            try:
                self.cookies.append(BrowserCookie.from_playwright_cookie(pw_cookie, observed_at_ms))
            except Exception as e:
                logger.warning(f"Failed to process cookie {pw_cookie.get('name', 'unknown')}: {e}")

        logger.debug(f"Collected {len(self.cookies)} cookies")
        return self.cookies.copy()

