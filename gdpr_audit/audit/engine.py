"""Audit orchestrator and retry controller.

This module provides the AuditEngine class, the single entry point of the
package. ``audit(url)`` sequences browser capture, content and violation
analysis, scoring and recommendations into an AuditReport, retrying the
whole capture with exponential backoff on transient failure. It always
returns a report and never raises. ``shutdown()`` releases the browser.
"""

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

from .capture.browser_factory import BrowserConfig, BrowserFactory
from .capture.config import AuditSettings, ConfigLoadError, load_audit_settings
from .capture.page_session import PageSession, PageSessionConfig
from .detectors.content import ContentAnalyzer
from .detectors.cookies import CookieJarDetector
from .detectors.rules import DEFAULT_RULES, DetectorRuleSet, RuleLoadError
from .detectors.ssl_inspector import SSLInspector
from .detectors.violations import ViolationAnalyzer
from .errors import ValidationError
from .models.capture import AuditRequest, PageCapture
from .models.report import (
    ALL_DIMENSIONS,
    AuditDebug,
    AuditReport,
    CheckResult,
    Dimension,
    ViolationCheckResult,
)
from .scoring import RecommendationEngine, Scorer, ScoringPolicy

logger = logging.getLogger(__name__)


class AuditState(str, Enum):
    """Lifecycle states of a single audit."""
    IDLE = "idle"
    NAVIGATING = "navigating"
    ANALYZING = "analyzing"
    SCORED = "scored"
    FAILED = "failed"
    RETRYING = "retrying"
    ERROR_REPORT = "error_report"


class AuditEngineConfig:
    """Configuration for the audit engine."""

    def __init__(
        self,
        browser_config: Optional[BrowserConfig] = None,
        session_config: Optional[PageSessionConfig] = None,
        scoring_policy: Optional[ScoringPolicy] = None,
        rules: DetectorRuleSet = DEFAULT_RULES,
        max_retries: int = 2,
        retry_delay_ms: int = 3000,
        max_concurrent_audits: int = 5,
        ssl_timeout_ms: int = 10000,
        ssl_port: int = 443,
    ):
        """Initialize audit engine configuration.

        Args:
            browser_config: Browser factory configuration
            session_config: Navigation and settle configuration
            scoring_policy: Weights, penalties and thresholds
            rules: Detector rule set and tracking signatures
            max_retries: Retries after the first failed attempt
            retry_delay_ms: Base delay, doubled after every failed attempt
            max_concurrent_audits: Maximum audits holding a page at once
            ssl_timeout_ms: TLS handshake timeout
            ssl_port: Port used for the certificate inspection
        """
        self.browser_config = browser_config or BrowserConfig()
        self.session_config = session_config or PageSessionConfig(
            navigation_timeout_ms=self.browser_config.navigation_timeout_ms
        )
        self.scoring_policy = scoring_policy or ScoringPolicy()
        self.rules = rules
        self.max_retries = max_retries
        self.retry_delay_ms = retry_delay_ms
        self.max_concurrent_audits = max_concurrent_audits
        self.ssl_timeout_ms = ssl_timeout_ms
        self.ssl_port = ssl_port

    @classmethod
    def from_settings(cls, settings: AuditSettings) -> "AuditEngineConfig":
        """Build engine configuration from loaded settings.

        Raises:
            ConfigLoadError: If the configured rules file cannot be loaded
        """
        try:
            rules = settings.get_rule_set()
        except RuleLoadError as e:
            raise ConfigLoadError(str(e)) from e

        return cls(
            browser_config=settings.get_browser_config(),
            session_config=settings.get_session_config(),
            scoring_policy=settings.scoring,
            rules=rules,
            max_retries=settings.audit.max_retries,
            retry_delay_ms=settings.audit.retry_delay_ms,
            max_concurrent_audits=settings.audit.max_concurrent_audits,
            ssl_timeout_ms=settings.audit.ssl_timeout_ms,
            ssl_port=settings.audit.ssl_port,
        )

    def retry_delay_seconds(self, attempt: int) -> float:
        """Backoff before the retry that follows failed ``attempt`` (0-based)."""
        return self.retry_delay_ms / 1000.0 * (2 ** attempt)


class AuditEngine:
    """Runs GDPR compliance audits against single URLs."""

    def __init__(
        self,
        config: Optional[AuditEngineConfig] = None,
        browser_factory: Optional[BrowserFactory] = None,
        ssl_inspector: Optional[SSLInspector] = None,
    ):
        """Initialize audit engine.

        Args:
            config: Engine configuration (uses defaults if None)
            browser_factory: Shared browser owner (created from config if None)
            ssl_inspector: Certificate inspector (created from config if None)
        """
        self.config = config or AuditEngineConfig()
        self.browser_factory = browser_factory or BrowserFactory(self.config.browser_config)
        self.ssl_inspector = ssl_inspector or SSLInspector(
            timeout_ms=self.config.ssl_timeout_ms,
            port=self.config.ssl_port,
        )

        rules = self.config.rules
        policy = self.config.scoring_policy
        self.content_analyzer = ContentAnalyzer(rules)
        self.cookie_detector = CookieJarDetector(rules)
        self.violation_analyzer = ViolationAnalyzer(
            rules,
            cookie_penalty=policy.cookie_penalty,
            tracking_request_penalty=policy.tracking_request_penalty,
            error_score=policy.violation_error_score,
        )
        self.scorer = Scorer(policy)
        self.recommendation_engine = RecommendationEngine(policy)

        self._semaphore: Optional[asyncio.Semaphore] = None

        self.stats = {
            'audits_started': 0,
            'audits_completed': 0,
            'audits_failed': 0,
            'attempts_failed': 0,
        }

    @classmethod
    def from_config(
        cls,
        config_path: Optional[Union[str, Path]] = None,
        environment: Optional[str] = None,
    ) -> "AuditEngine":
        """Create an engine from a YAML configuration file.

        Args:
            config_path: Path to the config file (defaults to config/audit.yaml)
            environment: Environment override name

        Returns:
            Configured AuditEngine

        Raises:
            ConfigLoadError: If the configuration or rules file is invalid
        """
        settings = load_audit_settings(config_path, environment)
        return cls(AuditEngineConfig.from_settings(settings))

    async def __aenter__(self) -> "AuditEngine":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    async def audit(self, url: str) -> AuditReport:
        """Audit one URL.

        Never raises: invalid URLs and exhausted retries both produce an
        error report with ``score=0``.

        Args:
            url: Absolute http(s) URL

        Returns:
            AuditReport for the URL
        """
        self.stats['audits_started'] += 1

        try:
            request = AuditRequest.from_url(url)
        except ValidationError as e:
            logger.warning(f"Rejected audit request for {url!r}: {e}")
            self.stats['audits_failed'] += 1
            return AuditReport.error_report(str(url or ""), str(e))

        logger.info(f"Starting GDPR audit: {request.url}")

        try:
            report = await self._audit_with_retry(request)
        except Exception as e:
            logger.exception(f"Unexpected audit failure for {request.url}: {e}")
            report = AuditReport.error_report(request.url, str(e))

        if report.is_error:
            self.stats['audits_failed'] += 1
        else:
            self.stats['audits_completed'] += 1
            logger.info(
                f"Audit completed: {request.url} score={report.score} "
                f"recommendations={len(report.recommendations)} retries={report.debug.retry_count}"
            )
        return report

    async def _audit_with_retry(self, request: AuditRequest) -> AuditReport:
        """Run capture attempts until one succeeds or retries are exhausted."""
        last_error: Optional[BaseException] = None

        for attempt in range(self.config.max_retries + 1):
            self._transition(request, AuditState.NAVIGATING, attempt)
            try:
                async with self._audit_slots():
                    capture = await self._capture(request)
            except Exception as e:
                last_error = e
                self.stats['attempts_failed'] += 1
                self._transition(request, AuditState.FAILED, attempt)
                logger.warning(f"Audit attempt {attempt + 1} failed for {request.url}: {e}")

                if attempt < self.config.max_retries:
                    delay = self.config.retry_delay_seconds(attempt)
                    self._transition(request, AuditState.RETRYING, attempt)
                    logger.info(f"Retrying {request.url} in {delay:.1f}s")
                    await asyncio.sleep(delay)
                continue

            return await self._build_report(request, capture, retry_count=attempt)

        logger.error(f"All audit attempts failed for {request.url}: {last_error}")
        self._transition(request, AuditState.ERROR_REPORT, self.config.max_retries)
        return AuditReport.error_report(
            request.url,
            str(last_error) or last_error.__class__.__name__,
            retry_count=self.config.max_retries,
        )

    def _audit_slots(self) -> asyncio.Semaphore:
        """Semaphore bounding concurrent captures, created inside the running loop."""
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.config.max_concurrent_audits)
        return self._semaphore

    async def _capture(self, request: AuditRequest) -> PageCapture:
        """One attempt: fresh page, fresh telemetry."""
        async with self.browser_factory.open_page() as page:
            session = PageSession(page, self.config.session_config)
            return await session.capture(request.url)

    def analyze(self, capture: PageCapture) -> Dict[str, CheckResult]:
        """Run every detector over a capture.

        Returns:
            Check results keyed by all six dimension names
        """
        results: Dict[Dimension, CheckResult] = dict(self.content_analyzer.analyze(capture.html))
        results[Dimension.COOKIES] = self.cookie_detector.run(capture.cookies)
        results[Dimension.PRE_CONSENT_VIOLATIONS] = self.violation_analyzer.run(
            capture.cookies,
            capture.network_events,
            html_content=capture.html,
            settle_deadline_ms=capture.settle_deadline_ms,
            cookie_captures=capture.cookie_captures,
        )
        return {dimension.value: results[dimension] for dimension in ALL_DIMENSIONS}

    async def _build_report(
        self,
        request: AuditRequest,
        capture: PageCapture,
        retry_count: int,
    ) -> AuditReport:
        self._transition(request, AuditState.ANALYZING, retry_count)

        checks = self.analyze(capture)
        score = self.scorer.score(checks)
        recommendations = self.recommendation_engine.recommend(checks)

        violations = checks[Dimension.PRE_CONSENT_VIOLATIONS.value]
        services = violations.tracking_services if isinstance(violations, ViolationCheckResult) else []

        ssl_result = await self.ssl_inspector.check(request.url)

        self._transition(request, AuditState.SCORED, retry_count)
        return AuditReport(
            url=request.url,
            checks=checks,
            score=score,
            recommendations=recommendations,
            third_party_services=list(services),
            ssl=ssl_result,
            debug=AuditDebug(
                load_time_millis=capture.load_time_ms,
                network_request_count=len(capture.network_events),
                retry_count=retry_count,
                set_cookie_response_count=len(capture.cookie_captures),
                dropped_telemetry_events=capture.dropped_events,
                rules_version=self.config.rules.version,
            ),
        )

    def _transition(self, request: AuditRequest, state: AuditState, attempt: int) -> None:
        logger.debug(f"{request.url} [attempt {attempt + 1}] -> {state.value}")

    async def shutdown(self) -> None:
        """Release the browser. Idempotent, never raises."""
        try:
            await self.browser_factory.close()
        except Exception as e:
            logger.error(f"Error during engine shutdown: {e}")

    def __repr__(self) -> str:
        return (
            f"AuditEngine(max_retries={self.config.max_retries}, "
            f"max_concurrent={self.config.max_concurrent_audits}, "
            f"rules={self.config.rules.version}, "
            f"browser={self.browser_factory!r})"
        )
