"""Browser capture layer for GDPR audits.

This module drives Playwright through one page load per audit and records
the telemetry the detectors need.

Main Components:
- Browser Factory: lazily launched shared browser, one isolated page per audit
- Telemetry Collector: request and Set-Cookie capture during navigation
- Cookie Collector: cookie jar snapshot at the end of the settle window
- Page Session: navigation, settle delay and DOM/cookie capture
- Config: YAML settings with environment overrides

Usage:
    from gdpr_audit.audit.capture import BrowserFactory, PageSession

    factory = BrowserFactory()
    async with factory.open_page() as page:
        capture = await PageSession(page).capture("https://example.com")
"""

__all__ = [
    # Browser lifecycle
    "BrowserFactory",
    "BrowserConfig",
    "DEFAULT_USER_AGENT",
    "DEFAULT_LAUNCH_ARGS",

    # Capture
    "PageSession",
    "PageSessionConfig",
    "WaitStrategy",
    "TelemetryCollector",
    "CookieCollector",

    # Configuration
    "AuditSettings",
    "ConfigLoadError",
    "load_audit_settings",
]

from .browser_factory import (
    BrowserFactory,
    BrowserConfig,
    DEFAULT_USER_AGENT,
    DEFAULT_LAUNCH_ARGS,
)

from .page_session import (
    PageSession,
    PageSessionConfig,
    WaitStrategy,
)

from .network_observer import TelemetryCollector
from .cookie_collector import CookieCollector
from .config import AuditSettings, ConfigLoadError, load_audit_settings
