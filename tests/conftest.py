"""Shared test fixtures and configuration for GDPR audit tests."""

import pytest
from pathlib import Path
import sys

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gdpr_audit.audit.models.capture import (
    BrowserCookie,
    CookieCapture,
    NetworkEvent,
    PageCapture,
    ResourceType,
)


SETTLE_DEADLINE_MS = 1_700_000_010_000


@pytest.fixture
def settle_deadline_ms():
    """End of the settle window used by capture fixtures."""
    return SETTLE_DEADLINE_MS


@pytest.fixture
def compliant_html():
    """Page with a consent banner, both policies and contact details."""
    return """
    <html>
      <body>
        <div id="cookie-banner">
          We use cookies to improve your experience. Accept or reject them below.
          <button>Accept</button><button>Reject</button>
        </div>
        <main><h1>Welcome</h1></main>
        <footer>
          <a href="/privacy-policy">Privacy Policy</a>
          <a href="/cookie-policy">Cookie settings</a>
          <a href="mailto:dpo@example.com">Email us</a>
          <a href="tel:+421900123456">Call us</a>
        </footer>
      </body>
    </html>
    """


@pytest.fixture
def bare_html():
    """Page with none of the checked elements."""
    return "<html><body><h1>Hello</h1><p>Nothing to see here.</p></body></html>"


@pytest.fixture
def sample_cookies(settle_deadline_ms):
    """Cookie jar with one essential and two tracking cookies."""
    return (
        BrowserCookie(name="session_id", domain="example.com", secure=True,
                      http_only=True, same_site="Lax", observed_at_ms=settle_deadline_ms),
        BrowserCookie(name="_ga", domain=".example.com", expires=1800000000.0,
                      observed_at_ms=settle_deadline_ms),
        BrowserCookie(name="_fbp", domain=".example.com", expires=1800000000.0,
                      observed_at_ms=settle_deadline_ms),
    )


@pytest.fixture
def sample_network_events(settle_deadline_ms):
    """Requests captured during navigation, one of them to Google Analytics."""
    return (
        NetworkEvent(url="https://example.com/", resource_type=ResourceType.DOCUMENT,
                     captured_at_ms=settle_deadline_ms - 5000),
        NetworkEvent(url="https://example.com/app.js", resource_type=ResourceType.SCRIPT,
                     captured_at_ms=settle_deadline_ms - 4000),
        NetworkEvent(url="https://www.google-analytics.com/collect?v=2",
                     resource_type=ResourceType.PING,
                     captured_at_ms=settle_deadline_ms - 2000),
    )


@pytest.fixture
def make_capture(compliant_html, settle_deadline_ms):
    """Factory for PageCapture objects with sensible defaults."""
    def _make(**overrides):
        data = {
            'url': "https://example.com/",
            'final_url': "https://example.com/",
            'status_code': 200,
            'html': compliant_html,
            'network_events': (),
            'cookie_captures': (),
            'cookies': (),
            'navigation_started_ms': settle_deadline_ms - 6000,
            'response_received_ms': settle_deadline_ms - 4800,
            'settle_deadline_ms': settle_deadline_ms,
        }
        data.update(overrides)
        return PageCapture(**data)
    return _make


@pytest.fixture
def set_cookie_capture(settle_deadline_ms):
    """Response that set the _fbp cookie."""
    return CookieCapture(
        source_url="https://connect.facebook.net/en_US/fbevents.js",
        raw_set_cookie_header="_fbp=fb.1.123; Path=/; Secure\nother=1; Path=/",
        captured_at_ms=settle_deadline_ms - 1500,
    )


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
