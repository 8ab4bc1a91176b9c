"""Unit tests for capture and report models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from gdpr_audit.audit.errors import AuditError, ValidationError
from gdpr_audit.audit.models.capture import (
    AuditRequest,
    BrowserCookie,
    CookieCapture,
    NetworkEvent,
    ResourceType,
)
from gdpr_audit.audit.models.report import (
    ALL_DIMENSIONS,
    AuditDebug,
    AuditReport,
    CheckResult,
    CookieCheckResult,
    Dimension,
    Priority,
    Recommendation,
    SSLResult,
    TrackedService,
    ViolationCheckResult,
)


class TestAuditRequest:
    """Test AuditRequest validation."""

    @pytest.mark.parametrize("url,scheme,host", [
        ("https://example.com", "https", "example.com"),
        ("http://example.com/path?q=1", "http", "example.com"),
        ("  HTTPS://Example.COM/  ", "https", "example.com"),
    ])
    def test_valid_urls(self, url, scheme, host):
        request = AuditRequest.from_url(url)

        assert request.scheme == scheme
        assert request.host == host
        assert request.url == url.strip()

    @pytest.mark.parametrize("url", [None, "", "   "])
    def test_empty_url(self, url):
        with pytest.raises(ValidationError, match="required"):
            AuditRequest.from_url(url)

    @pytest.mark.parametrize("url", [
        "ftp://example.com/file",
        "javascript:alert(1)",
        "example.com",
        "file:///etc/passwd",
    ])
    def test_disallowed_scheme(self, url):
        with pytest.raises(ValidationError, match="HTTP and HTTPS"):
            AuditRequest.from_url(url)

    def test_missing_host(self):
        with pytest.raises(ValidationError, match="missing host"):
            AuditRequest.from_url("https:///path")

    def test_validation_error_is_audit_error(self):
        with pytest.raises(AuditError):
            AuditRequest.from_url("mailto:someone@example.com")

    def test_is_https(self):
        assert AuditRequest.from_url("https://example.com").is_https is True
        assert AuditRequest.from_url("http://example.com").is_https is False

    def test_received_at_is_utc_aware(self):
        request = AuditRequest.from_url("https://example.com")

        assert request.received_at.tzinfo is not None
        assert request.received_at.utcoffset().total_seconds() == 0

    def test_immutable(self):
        request = AuditRequest.from_url("https://example.com")
        with pytest.raises(PydanticValidationError):
            request.url = "https://other.com"


class TestTelemetryModels:
    """Test NetworkEvent, CookieCapture and BrowserCookie."""

    def test_resource_type_mapping(self):
        assert ResourceType.from_playwright("script") == ResourceType.SCRIPT
        assert ResourceType.from_playwright("ping") == ResourceType.PING
        assert ResourceType.from_playwright("cspviolationreport") == ResourceType.OTHER
        assert ResourceType.from_playwright(None) == ResourceType.OTHER

    def test_network_event_defaults(self):
        event = NetworkEvent(url="https://example.com/")

        assert event.resource_type == ResourceType.OTHER
        assert event.captured_at_ms > 0

    def test_cookie_names_from_joined_header(self, set_cookie_capture):
        assert set_cookie_capture.cookie_names == ["_fbp", "other"]

    def test_cookie_names_skip_malformed_lines(self):
        capture = CookieCapture(
            source_url="https://example.com/",
            raw_set_cookie_header="novalue\n=empty\nok=1; HttpOnly",
        )

        assert capture.cookie_names == ["ok"]

    def test_browser_cookie_from_playwright(self):
        cookie = BrowserCookie.from_playwright_cookie({
            'name': '_ga',
            'value': 'GA1.1.123',
            'domain': '.example.com',
            'path': '/',
            'expires': 1800000000,
            'httpOnly': False,
            'secure': True,
            'sameSite': 'Lax',
        }, observed_at_ms=42)

        assert cookie.name == '_ga'
        assert cookie.secure is True
        assert cookie.same_site == 'Lax'
        assert cookie.expires == 1800000000.0
        assert cookie.is_session is False
        assert cookie.observed_at_ms == 42
        assert not hasattr(cookie, 'value')

    def test_session_cookie(self):
        cookie = BrowserCookie.from_playwright_cookie({'name': 'sid', 'expires': -1})

        assert cookie.is_session is True


class TestPageCapture:
    """Test PageCapture."""

    def test_load_time(self, make_capture):
        capture = make_capture(navigation_started_ms=1000, response_received_ms=2350)

        assert capture.load_time_ms == 1350


class TestCheckResult:
    """Test CheckResult models."""

    def test_defaults(self):
        result = CheckResult()

        assert result.found is False
        assert result.score == 0
        assert result.evidence == []
        assert result.failed is False

    @pytest.mark.parametrize("score", [-1, 101])
    def test_score_bounds(self, score):
        with pytest.raises(PydanticValidationError):
            CheckResult(score=score)


class TestAuditReport:
    """Test AuditReport construction and serialisation."""

    def test_error_report_shape(self):
        report = AuditReport.error_report("https://example.com", "Navigation timeout", retry_count=2)
        data = report.to_dict()

        assert report.is_error is True
        assert data['url'] == "https://example.com"
        assert data['error'] == "Navigation timeout"
        assert data['checks'] == {}
        assert data['score'] == 0
        assert data['recommendations'] == [
            {'priority': 'ERROR', 'message': "Audit failed: Navigation timeout"}
        ]
        assert data['thirdPartyServices'] == []
        assert data['debug'] == {
            'networkRequestCount': 0,
            'retryCount': 2,
            'failed': True,
            'error': "Navigation timeout",
        }
        assert 'ssl' not in data

    def test_camel_case_serialisation(self):
        checks = {d.value: CheckResult(found=True, score=100) for d in ALL_DIMENSIONS}
        checks[Dimension.COOKIES.value] = CookieCheckResult(found=True, score=80, count=2)
        checks[Dimension.PRE_CONSENT_VIOLATIONS.value] = ViolationCheckResult(
            found=False,
            score=100,
            total_cookies=2,
            tracking_services=[TrackedService(name="Hotjar", category="analytics")],
        )
        report = AuditReport(
            url="https://example.com",
            timestamp=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
            checks=checks,
            score=96,
            recommendations=[Recommendation(priority=Priority.MEDIUM, message="Add a cookie policy")],
            third_party_services=[TrackedService(name="Hotjar", category="analytics")],
            ssl=SSLResult(valid=True, details="Valid until 2030-01-01"),
            debug=AuditDebug(load_time_millis=1200, network_request_count=14, retry_count=0),
        )

        data = report.to_dict()

        assert set(data['checks']) == {
            'cookieBanner', 'privacyPolicy', 'cookiePolicy',
            'contactInfo', 'cookies', 'preConsentViolations',
        }
        assert data['timestamp'].startswith("2024-01-02T03:04:05")
        assert data['checks']['cookies']['count'] == 2
        assert data['checks']['preConsentViolations']['totalCookies'] == 2
        assert data['checks']['preConsentViolations']['trackingServices'] == [
            {'name': 'Hotjar', 'category': 'analytics', 'detected': True}
        ]
        assert data['thirdPartyServices'][0]['name'] == "Hotjar"
        assert data['debug']['loadTimeMillis'] == 1200
        assert data['debug']['networkRequestCount'] == 14
        assert data['ssl'] == {'valid': True, 'details': "Valid until 2030-01-01"}
        assert data['recommendations'][0] == {
            'priority': 'MEDIUM',
            'message': "Add a cookie policy",
        }

    def test_check_lookup(self):
        report = AuditReport(
            url="https://example.com",
            checks={'cookies': CookieCheckResult(count=1, score=80, found=True)},
        )

        assert report.check(Dimension.COOKIES).count == 1
        assert report.check(Dimension.COOKIE_BANNER) is None
