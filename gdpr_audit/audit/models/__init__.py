"""Audit data models package."""

from .capture import (
    AuditRequest,
    NetworkEvent,
    CookieCapture,
    BrowserCookie,
    PageCapture,
    ResourceType,
    epoch_millis,
)

from .report import (
    Dimension,
    ALL_DIMENSIONS,
    Priority,
    Severity,
    ViolationType,
    Violation,
    TrackedService,
    CheckResult,
    CookieCheckResult,
    ViolationCheckResult,
    Recommendation,
    SSLResult,
    AuditDebug,
    AuditReport,
)

__all__ = [
    # Capture models
    'AuditRequest',
    'NetworkEvent',
    'CookieCapture',
    'BrowserCookie',
    'PageCapture',
    'ResourceType',
    'epoch_millis',

    # Report models
    'Dimension',
    'ALL_DIMENSIONS',
    'Priority',
    'Severity',
    'ViolationType',
    'Violation',
    'TrackedService',
    'CheckResult',
    'CookieCheckResult',
    'ViolationCheckResult',
    'Recommendation',
    'SSLResult',
    'AuditDebug',
    'AuditReport',
]
