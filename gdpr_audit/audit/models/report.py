"""Pydantic models for audit results.

CheckResult is the per-dimension outcome produced by the detectors, and
AuditReport is the single externally visible artifact of an audit. Field
names are snake_case in Python and camelCase when serialized with
``AuditReport.to_dict()``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny
from pydantic.alias_generators import to_camel


class Dimension(str, Enum):
    """Independently scored compliance dimensions."""
    COOKIE_BANNER = "cookieBanner"
    PRIVACY_POLICY = "privacyPolicy"
    COOKIE_POLICY = "cookiePolicy"
    CONTACT_INFO = "contactInfo"
    COOKIES = "cookies"
    PRE_CONSENT_VIOLATIONS = "preConsentViolations"


ALL_DIMENSIONS = tuple(Dimension)


class Priority(str, Enum):
    """Recommendation priority, most urgent first."""
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    ERROR = "ERROR"


class Severity(str, Enum):
    """Violation severity."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ViolationType(str, Enum):
    """Kinds of pre-consent violations."""
    PRE_CONSENT_COOKIES = "pre-consent-cookies"
    TRACKING_REQUESTS = "tracking-requests"


class ReportModel(BaseModel):
    """Base for report models serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Violation(ReportModel):
    """A privacy violation observed before any consent interaction."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    type: ViolationType = Field(description="Violation kind")
    severity: Severity = Field(default=Severity.HIGH, description="Violation severity")
    message: str = Field(description="Human-readable summary")
    details: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Offending cookies or requests"
    )


class TrackedService(ReportModel):
    """A third-party tracking service seen in the page's network traffic."""

    name: str
    category: str
    detected: bool = True


class CheckResult(ReportModel):
    """Outcome of one compliance dimension."""

    found: bool = Field(default=False, description="Whether the item was found")
    score: int = Field(default=0, ge=0, le=100, description="Dimension score 0-100")
    evidence: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Elements, links or values supporting the result"
    )
    error: Optional[str] = Field(
        default=None,
        description="Error message when the detector failed"
    )

    @property
    def failed(self) -> bool:
        return self.error is not None


class CookieCheckResult(CheckResult):
    """Cookie jar summary for the cookies dimension."""

    count: int = Field(default=0, description="Number of cookies in the jar")


class ViolationCheckResult(CheckResult):
    """Pre-consent violation analysis."""

    violations: List[Violation] = Field(default_factory=list)
    total_cookies: int = Field(default=0, description="Cookies inspected")
    tracking_services: List[TrackedService] = Field(default_factory=list)
    inline_signatures: List[str] = Field(
        default_factory=list,
        description="Tracker script markers found inline in the HTML (not scored)"
    )

    def violations_of(self, violation_type: ViolationType) -> List[Violation]:
        return [v for v in self.violations if v.type == violation_type]


class Recommendation(ReportModel):
    """A prioritized remediation message."""

    priority: Priority
    message: str
    dimension: Optional[Dimension] = None


class SSLResult(ReportModel):
    """Result of the TLS certificate inspection."""

    valid: bool = False
    details: str = ""
    expires_at: Optional[datetime] = None


class AuditDebug(ReportModel):
    """Diagnostic counters attached to every report."""

    load_time_millis: Optional[int] = None
    network_request_count: int = 0
    retry_count: int = 0
    set_cookie_response_count: Optional[int] = None
    dropped_telemetry_events: Optional[int] = None
    rules_version: Optional[str] = None
    failed: Optional[bool] = None
    error: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditReport(ReportModel):
    """Complete result of auditing one URL."""

    url: str
    timestamp: datetime = Field(default_factory=_utcnow)
    checks: Dict[str, SerializeAsAny[CheckResult]] = Field(default_factory=dict)
    score: int = Field(default=0, ge=0, le=100)
    recommendations: List[Recommendation] = Field(default_factory=list)
    third_party_services: List[TrackedService] = Field(default_factory=list)
    ssl: Optional[SSLResult] = None
    error: Optional[str] = None
    debug: AuditDebug = Field(default_factory=AuditDebug)

    @classmethod
    def error_report(cls, url: str, message: str, retry_count: int = 0) -> "AuditReport":
        """Build the terminal report returned when an audit cannot complete."""
        return cls(
            url=url,
            error=message,
            checks={},
            score=0,
            recommendations=[
                Recommendation(priority=Priority.ERROR, message=f"Audit failed: {message}")
            ],
            debug=AuditDebug(failed=True, retry_count=retry_count, error=message),
        )

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def check(self, dimension: Dimension) -> Optional[CheckResult]:
        return self.checks.get(dimension.value)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase JSON shape consumed by API clients."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
