"""Pre-consent violation analyzer.

Cross-references the telemetry captured before the page finished settling
against the essential-cookie allow-list and the tracking signature registry.
No consent interaction ever happens during an audit, so every non-essential
cookie and every tracking request inside the capture window was triggered
without consent.

Scoring starts at 100 and subtracts a fixed penalty per non-essential cookie
and per tracking request, floored at 0. If the analysis itself fails the
dimension gets a neutral score instead of 0, so a detector error is never
reported as confirmed non-compliance.
"""

import logging
from typing import Dict, List, Optional, Sequence

from ..models.capture import BrowserCookie, CookieCapture, NetworkEvent
from ..models.report import (
    Dimension,
    Severity,
    TrackedService,
    Violation,
    ViolationCheckResult,
    ViolationType,
)
from .base import BaseDetector
from .rules import DEFAULT_RULES, DetectorRuleSet

logger = logging.getLogger(__name__)


class ViolationAnalyzer(BaseDetector):
    """Flags cookies and tracking requests observed before consent."""

    dimension = Dimension.PRE_CONSENT_VIOLATIONS
    result_type = ViolationCheckResult

    def __init__(
        self,
        rules: DetectorRuleSet = DEFAULT_RULES,
        cookie_penalty: int = 15,
        tracking_request_penalty: int = 10,
        error_score: int = 50,
    ):
        super().__init__(rules)
        self.cookie_penalty = cookie_penalty
        self.tracking_request_penalty = tracking_request_penalty
        self.fallback_score = error_score

    def partition_cookies(self, cookies: Sequence[BrowserCookie]):
        """Split cookies into (essential, non_essential) lists."""
        essential: List[BrowserCookie] = []
        non_essential: List[BrowserCookie] = []
        for cookie in cookies:
            if self.rules.is_essential_cookie(cookie.name):
                essential.append(cookie)
            else:
                non_essential.append(cookie)
        return essential, non_essential

    @staticmethod
    def _cookie_setters(cookie_captures: Sequence[CookieCapture]) -> Dict[str, str]:
        setters: Dict[str, str] = {}
        for capture in cookie_captures:
            for name in capture.cookie_names:
                setters.setdefault(name, capture.source_url)
        return setters

    def detect(
        self,
        cookies: Sequence[BrowserCookie],
        network_events: Sequence[NetworkEvent],
        html_content: str = "",
        settle_deadline_ms: Optional[int] = None,
        cookie_captures: Sequence[CookieCapture] = (),
    ) -> ViolationCheckResult:
        """Analyze pre-consent telemetry.

        Args:
            cookies: Cookie jar snapshot taken at the end of the settle window
            network_events: Requests captured during navigation
            html_content: Serialized DOM, scanned for inline tracker snippets
            settle_deadline_ms: Events observed after this are ignored
            cookie_captures: Set-Cookie responses, used to attribute cookies

        Returns:
            ViolationCheckResult with violations and detected services
        """
        def in_window(observed_at_ms: int) -> bool:
            return settle_deadline_ms is None or observed_at_ms <= settle_deadline_ms

        registry = self.rules.tracking
        setters = self._cookie_setters(cookie_captures)

        _, non_essential = self.partition_cookies(
            [cookie for cookie in cookies if in_window(cookie.observed_at_ms)]
        )

        cookie_details = []
        for cookie in non_essential:
            detail = {
                'name': cookie.name,
                'domain': cookie.domain,
                'secure': cookie.secure,
                'httpOnly': cookie.http_only,
            }
            service = registry.match_cookie(cookie.name)
            if service:
                detail['service'] = service.name
            if cookie.name in setters:
                detail['setBy'] = setters[cookie.name]
            cookie_details.append(detail)

        tracking_requests = []
        services: Dict[str, TrackedService] = {}
        for event in network_events:
            if not in_window(event.captured_at_ms):
                continue
            for signature in registry.match_url(event.url):
                tracking_requests.append({
                    'service': signature.name,
                    'category': signature.category,
                    'url': event.url,
                    'type': event.resource_type.value,
                })
                if signature.name not in services:
                    services[signature.name] = TrackedService(
                        name=signature.name,
                        category=signature.category,
                    )

        violations = []
        if cookie_details:
            violations.append(Violation(
                type=ViolationType.PRE_CONSENT_COOKIES,
                severity=Severity.HIGH,
                message=f"{len(cookie_details)} cookies set before consent",
                details=cookie_details,
            ))
        if tracking_requests:
            violations.append(Violation(
                type=ViolationType.TRACKING_REQUESTS,
                severity=Severity.HIGH,
                message=f"{len(tracking_requests)} tracking requests before consent",
                details=tracking_requests,
            ))

        penalty = (
            len(cookie_details) * self.cookie_penalty
            + len(tracking_requests) * self.tracking_request_penalty
        )

        logger.debug(
            f"Pre-consent analysis: {len(cookies)} cookies, {len(network_events)} requests, "
            f"{len(cookie_details)} non-essential, {len(tracking_requests)} tracking"
        )

        return ViolationCheckResult(
            found=bool(violations),
            score=max(0, 100 - penalty),
            violations=violations,
            evidence=[
                {'type': violation.type.value, 'count': len(violation.details)}
                for violation in violations
            ],
            total_cookies=len(cookies),
            tracking_services=list(services.values()),
            inline_signatures=registry.match_script_markers(html_content or ""),
        )
