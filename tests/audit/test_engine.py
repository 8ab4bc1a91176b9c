"""Tests for the audit engine: retry controller, report assembly and lifecycle.

The browser, page session and SSL inspector are replaced with mocks so no
real browser or network connection is used.
"""

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from gdpr_audit.audit.capture.browser_factory import BrowserConfig
from gdpr_audit.audit.capture.config import ConfigLoadError
from gdpr_audit.audit.capture.page_session import PageSessionConfig
from gdpr_audit.audit.engine import AuditEngine, AuditEngineConfig
from gdpr_audit.audit.errors import BrowserInitError, NavigationError
from gdpr_audit.audit.models.report import (
    ALL_DIMENSIONS,
    AuditReport,
    Dimension,
    Priority,
    SSLResult,
)
from gdpr_audit.audit.scoring import ScoringPolicy


class FakeBrowserFactory:
    """Hands out mock pages and records how many are open at once."""

    def __init__(self):
        self.opened = 0
        self.active = 0
        self.max_active = 0
        self.close = AsyncMock()

    @asynccontextmanager
    async def open_page(self):
        self.opened += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            yield MagicMock()
        finally:
            self.active -= 1


@pytest.fixture
def browser_factory():
    return FakeBrowserFactory()


@pytest.fixture
def ssl_inspector():
    inspector = MagicMock()
    inspector.check = AsyncMock(return_value=SSLResult(valid=True, details="Valid until 2030-01-01"))
    return inspector


@pytest.fixture
def engine_config():
    return AuditEngineConfig(
        session_config=PageSessionConfig(settle_delay_ms=0),
        max_retries=2,
        retry_delay_ms=3000,
    )


@pytest.fixture
def engine(engine_config, browser_factory, ssl_inspector):
    return AuditEngine(engine_config, browser_factory=browser_factory, ssl_inspector=ssl_inspector)


@pytest.fixture
def mock_session():
    """Patch PageSession so capture() outcomes can be scripted per test."""
    with patch('gdpr_audit.audit.engine.PageSession') as session_cls:
        session_cls.return_value.capture = AsyncMock()
        yield session_cls.return_value


@pytest.fixture
def mock_sleep():
    with patch('gdpr_audit.audit.engine.asyncio.sleep', new=AsyncMock()) as sleep:
        yield sleep


class TestAuditEngineConfig:
    """Tests for AuditEngineConfig."""

    def test_defaults(self):
        config = AuditEngineConfig()

        assert config.max_retries == 2
        assert config.retry_delay_ms == 3000
        assert config.max_concurrent_audits == 5
        assert config.session_config.navigation_timeout_ms == config.browser_config.navigation_timeout_ms

    def test_session_timeout_follows_browser(self):
        config = AuditEngineConfig(browser_config=BrowserConfig(navigation_timeout_ms=9000))

        assert config.session_config.navigation_timeout_ms == 9000

    @pytest.mark.parametrize("attempt,expected", [(0, 3.0), (1, 6.0), (2, 12.0)])
    def test_retry_delay_doubles(self, attempt, expected):
        assert AuditEngineConfig(retry_delay_ms=3000).retry_delay_seconds(attempt) == expected


class TestAuditSuccess:
    """Successful audits."""

    @pytest.mark.asyncio
    async def test_report_has_all_dimensions(self, engine, mock_session, make_capture):
        mock_session.capture.return_value = make_capture()

        report = await engine.audit("https://example.com/")

        assert isinstance(report, AuditReport)
        assert report.is_error is False
        assert list(report.checks) == [d.value for d in ALL_DIMENSIONS]
        assert 0 <= report.score <= 100
        assert report.debug.retry_count == 0
        assert report.ssl.valid is True

    @pytest.mark.asyncio
    async def test_compliant_page_scores_high(self, engine, mock_session, make_capture):
        mock_session.capture.return_value = make_capture()

        report = await engine.audit("https://example.com/")

        assert report.check(Dimension.COOKIE_BANNER).found is True
        assert report.check(Dimension.PRIVACY_POLICY).found is True
        assert report.check(Dimension.PRE_CONSENT_VIOLATIONS).found is False
        assert all(r.priority != Priority.CRITICAL for r in report.recommendations)
        assert report.third_party_services == []

    @pytest.mark.asyncio
    async def test_pre_consent_tracking(self, engine, mock_session, make_capture,
                                        sample_cookies, sample_network_events,
                                        set_cookie_capture):
        mock_session.capture.return_value = make_capture(
            cookies=sample_cookies,
            network_events=sample_network_events,
            cookie_captures=(set_cookie_capture,),
        )

        report = await engine.audit("https://example.com/")
        data = report.to_dict()

        violations = report.check(Dimension.PRE_CONSENT_VIOLATIONS)
        assert violations.found is True
        assert violations.total_cookies == 3
        # two non-essential cookies and one tracking request
        assert violations.score == 100 - 2 * 15 - 10
        assert [s.name for s in report.third_party_services] == ["Google Analytics"]
        assert data['thirdPartyServices'][0]['category'] == "analytics"
        assert report.recommendations[0].priority == Priority.CRITICAL
        assert report.recommendations[1].priority == Priority.CRITICAL

    @pytest.mark.asyncio
    async def test_debug_fields(self, engine, mock_session, make_capture,
                                sample_network_events, set_cookie_capture):
        mock_session.capture.return_value = make_capture(
            network_events=sample_network_events,
            cookie_captures=(set_cookie_capture,),
            dropped_events=1,
        )

        report = await engine.audit("https://example.com/")

        assert report.debug.load_time_millis == 1200
        assert report.debug.network_request_count == 3
        assert report.debug.set_cookie_response_count == 1
        assert report.debug.dropped_telemetry_events == 1
        assert report.debug.rules_version == engine.config.rules.version

    @pytest.mark.asyncio
    async def test_ssl_checked_with_audited_url(self, engine, mock_session, make_capture, ssl_inspector):
        mock_session.capture.return_value = make_capture()

        await engine.audit("https://example.com/")

        ssl_inspector.check.assert_awaited_once_with("https://example.com/")

    @pytest.mark.asyncio
    async def test_dimension_failure_is_isolated(self, engine, mock_session, make_capture):
        mock_session.capture.return_value = make_capture()

        with patch.object(engine.cookie_detector, 'detect', side_effect=RuntimeError("boom")):
            report = await engine.audit("https://example.com/")

        assert report.is_error is False
        assert len(report.checks) == 6
        cookies = report.check(Dimension.COOKIES)
        assert cookies.failed is True
        assert "boom" in cookies.error
        assert report.check(Dimension.COOKIE_BANNER).failed is False

    @pytest.mark.asyncio
    async def test_custom_scoring_policy(self, browser_factory, ssl_inspector, mock_session, make_capture,
                                         sample_cookies):
        config = AuditEngineConfig(scoring_policy=ScoringPolicy(cookie_penalty=40))
        engine = AuditEngine(config, browser_factory=browser_factory, ssl_inspector=ssl_inspector)
        mock_session.capture.return_value = make_capture(cookies=sample_cookies)

        report = await engine.audit("https://example.com/")

        assert report.check(Dimension.PRE_CONSENT_VIOLATIONS).score == 20


class TestRetry:
    """Retry controller behaviour."""

    @pytest.mark.asyncio
    async def test_succeeds_after_two_failures(self, engine, mock_session, mock_sleep,
                                               make_capture, browser_factory):
        mock_session.capture.side_effect = [
            NavigationError("Navigation timeout"),
            NavigationError("HTTP 503: https://example.com/", status=503),
            make_capture(),
        ]

        report = await engine.audit("https://example.com/")

        assert report.is_error is False
        assert report.debug.retry_count == 2
        assert browser_factory.opened == 3
        assert [c.args[0] for c in mock_sleep.await_args_list] == [3.0, 6.0]

    @pytest.mark.asyncio
    async def test_exhausted_retries(self, engine, mock_session, mock_sleep, ssl_inspector):
        mock_session.capture.side_effect = NavigationError("Navigation timeout after 60000 ms")

        report = await engine.audit("https://example.com/")
        data = report.to_dict()

        assert report.is_error is True
        assert report.score == 0
        assert report.checks == {}
        assert report.debug.retry_count == 2
        assert report.debug.failed is True
        assert data['error'] == "Navigation timeout after 60000 ms"
        assert data['recommendations'][0]['priority'] == "ERROR"
        assert mock_session.capture.await_count == 3
        assert mock_sleep.await_count == 2
        ssl_inspector.check.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_browser_launch_failure_is_retried(self, engine, mock_sleep, browser_factory):
        @asynccontextmanager
        async def failing_open_page():
            raise BrowserInitError("Failed to launch browser: missing executable")
            yield

        browser_factory.open_page = failing_open_page

        report = await engine.audit("https://example.com/")

        assert report.is_error is True
        assert "missing executable" in report.error
        assert engine.stats['attempts_failed'] == 3

    @pytest.mark.asyncio
    async def test_no_retries(self, browser_factory, ssl_inspector, mock_session, mock_sleep):
        engine = AuditEngine(
            AuditEngineConfig(max_retries=0),
            browser_factory=browser_factory,
            ssl_inspector=ssl_inspector,
        )
        mock_session.capture.side_effect = NavigationError("boom")

        report = await engine.audit("https://example.com/")

        assert report.is_error is True
        assert report.debug.retry_count == 0
        mock_sleep.assert_not_awaited()


class TestValidation:
    """Invalid URLs never reach the browser."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["", None, "ftp://example.com", "not a url", "https://"])
    async def test_invalid_url(self, engine, mock_session, browser_factory, url):
        report = await engine.audit(url)

        assert report.is_error is True
        assert report.score == 0
        assert report.debug.retry_count == 0
        assert browser_factory.opened == 0
        mock_session.capture.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stats(self, engine, mock_session, make_capture):
        mock_session.capture.return_value = make_capture()

        await engine.audit("https://example.com/")
        await engine.audit("javascript:alert(1)")

        assert engine.stats['audits_started'] == 2
        assert engine.stats['audits_completed'] == 1
        assert engine.stats['audits_failed'] == 1


class TestConcurrency:
    """Concurrent audits share the browser but are bounded."""

    @pytest.mark.asyncio
    async def test_concurrency_bound(self, browser_factory, ssl_inspector, mock_session, make_capture):
        engine = AuditEngine(
            AuditEngineConfig(max_concurrent_audits=2),
            browser_factory=browser_factory,
            ssl_inspector=ssl_inspector,
        )

        async def slow_capture(url):
            await asyncio.sleep(0.01)
            return make_capture(url=url)

        mock_session.capture.side_effect = slow_capture

        reports = await asyncio.gather(*(
            engine.audit(f"https://site{i}.example/") for i in range(6)
        ))

        assert [r.url for r in reports] == [f"https://site{i}.example/" for i in range(6)]
        assert all(not r.is_error for r in reports)
        assert browser_factory.max_active <= 2
        assert browser_factory.opened == 6

    def test_engine_built_outside_event_loop(self, browser_factory, ssl_inspector, mock_session, make_capture):
        """An engine created at import time works under a later event loop."""
        engine = AuditEngine(
            AuditEngineConfig(max_concurrent_audits=1),
            browser_factory=browser_factory,
            ssl_inspector=ssl_inspector,
        )
        mock_session.capture.return_value = make_capture()

        assert engine._semaphore is None

        async def run_two():
            return await asyncio.gather(
                engine.audit("https://a.example/"),
                engine.audit("https://b.example/"),
            )

        reports = asyncio.run(run_two())

        assert all(not r.is_error for r in reports)
        assert isinstance(engine._semaphore, asyncio.Semaphore)


class TestLifecycle:
    """Engine construction and shutdown."""

    @pytest.mark.asyncio
    async def test_shutdown_is_idempotent(self, engine, browser_factory):
        await engine.shutdown()
        await engine.shutdown()

        assert browser_factory.close.await_count == 2

    @pytest.mark.asyncio
    async def test_shutdown_never_raises(self, engine, browser_factory):
        browser_factory.close.side_effect = RuntimeError("already closed")

        await engine.shutdown()

    @pytest.mark.asyncio
    async def test_async_context_manager(self, engine, browser_factory):
        async with engine as running:
            assert running is engine

        browser_factory.close.assert_awaited_once()

    def test_from_config(self, tmp_path):
        path = tmp_path / "audit.yaml"
        path.write_text(
            "audit:\n  max_retries: 1\n  max_concurrent_audits: 3\n"
            "scoring:\n  cookie_penalty: 20\n",
            encoding="utf-8",
        )

        engine = AuditEngine.from_config(path)

        assert engine.config.max_retries == 1
        assert engine.config.max_concurrent_audits == 3
        assert engine.violation_analyzer.cookie_penalty == 20

    def test_from_config_bad_rules_file(self, tmp_path):
        path = tmp_path / "audit.yaml"
        path.write_text("rules_file: missing-rules.yaml\n", encoding="utf-8")

        with pytest.raises(ConfigLoadError):
            AuditEngine.from_config(path)

    def test_repr(self, engine):
        assert "max_retries=2" in repr(engine)
