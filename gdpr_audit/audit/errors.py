"""Error taxonomy for the audit engine.

Audit-level errors (browser launch, navigation) fail an attempt and are
retried by the engine. Dimension-level errors are recovered into degraded
check results. Telemetry errors never leave the listener that raised them.
"""

from typing import Optional


class AuditError(Exception):
    """Base class for all audit engine errors."""
    pass


class ValidationError(AuditError):
    """Raised when an audit URL is malformed or uses a disallowed scheme."""
    pass


class BrowserInitError(AuditError):
    """Raised when the browser process cannot be launched."""
    pass


class NavigationError(AuditError):
    """Raised when page navigation fails, times out or returns an error status."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class DimensionError(AuditError):
    """Failure of a single detector, isolated to its own dimension."""

    def __init__(self, dimension: str, cause: BaseException):
        super().__init__(f"{dimension} check failed: {cause}")
        self.dimension = dimension
        self.cause = cause


class TelemetryError(AuditError):
    """Failure while recording a browser event. Never propagated."""
    pass
