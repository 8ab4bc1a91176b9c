"""Audit engine package for GDPR compliance checks.

This package provides the audit engine and the capture, detector and
scoring layers it orchestrates.
"""

from .engine import AuditEngine, AuditEngineConfig, AuditState
from .errors import (
    AuditError,
    ValidationError,
    BrowserInitError,
    NavigationError,
    DimensionError,
    TelemetryError,
)
from .models.capture import AuditRequest
from .models.report import AuditReport, CheckResult, Dimension, Priority, Recommendation
from .scoring import RecommendationEngine, Scorer, ScoringPolicy

__all__ = [
    # Engine
    'AuditEngine',
    'AuditEngineConfig',
    'AuditState',

    # Errors
    'AuditError',
    'ValidationError',
    'BrowserInitError',
    'NavigationError',
    'DimensionError',
    'TelemetryError',

    # Models
    'AuditRequest',
    'AuditReport',
    'CheckResult',
    'Dimension',
    'Priority',
    'Recommendation',

    # Scoring
    'Scorer',
    'ScoringPolicy',
    'RecommendationEngine',
]
