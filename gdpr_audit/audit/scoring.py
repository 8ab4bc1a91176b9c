"""Weighted scoring and prioritized recommendations.

The overall score is the weighted sum of the six dimension scores, rounded
half-up and clamped to [0, 100]. Recommendations are emitted in a fixed,
priority-descending order: CRITICAL pre-consent violations first, then HIGH
for a missing banner or privacy policy, then MEDIUM for secondary items.
"""

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, field_validator

from .models.report import (
    CheckResult,
    CookieCheckResult,
    Dimension,
    Priority,
    Recommendation,
    ViolationCheckResult,
    ViolationType,
)

logger = logging.getLogger(__name__)

CheckLike = Union[CheckResult, Mapping[str, Any], None]

DEFAULT_WEIGHTS: Dict[Dimension, float] = {
    Dimension.COOKIE_BANNER: 0.20,
    Dimension.PRIVACY_POLICY: 0.20,
    Dimension.COOKIE_POLICY: 0.15,
    Dimension.CONTACT_INFO: 0.10,
    Dimension.COOKIES: 0.10,
    Dimension.PRE_CONSENT_VIOLATIONS: 0.25,
}


class ScoringPolicy(BaseModel):
    """Tunable heuristics for scoring and recommendations."""

    weights: Dict[Dimension, float] = Field(
        default_factory=lambda: dict(DEFAULT_WEIGHTS),
        description="Weight per dimension"
    )
    cookie_penalty: int = Field(default=15, ge=0, description="Penalty per pre-consent cookie")
    tracking_request_penalty: int = Field(default=10, ge=0, description="Penalty per tracking request")
    violation_error_score: int = Field(
        default=50, ge=0, le=100,
        description="Neutral score when the violation analysis fails"
    )
    excessive_cookie_threshold: int = Field(
        default=10, ge=0,
        description="Cookie count above which a reduction is recommended"
    )

    @field_validator('weights')
    @classmethod
    def validate_weights(cls, v):
        for dimension, weight in v.items():
            if weight < 0:
                raise ValueError(f"Weight for {dimension.value} must be non-negative")
        merged = dict(DEFAULT_WEIGHTS)
        merged.update(v)
        return merged


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _numeric_score(check: CheckLike) -> float:
    """Extract a usable score, treating missing or malformed values as 0."""
    if check is None:
        return 0.0
    if isinstance(check, CheckResult):
        score = check.score
    elif isinstance(check, Mapping):
        score = check.get('score')
    else:
        return 0.0

    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return 0.0
    if not math.isfinite(score):
        return 0.0
    return float(score)


class Scorer:
    """Aggregates dimension scores into the overall compliance score."""

    def __init__(self, policy: Optional[ScoringPolicy] = None):
        self.policy = policy or ScoringPolicy()

    def score(self, checks: Mapping[str, CheckLike]) -> int:
        """Compute the weighted score.

        Args:
            checks: Mapping of dimension key to CheckResult (or a dict with a
                ``score`` entry). Missing dimensions contribute zero.

        Returns:
            Integer score in [0, 100]
        """
        checks = checks or {}
        total = 0.0
        for dimension, weight in self.policy.weights.items():
            total += _numeric_score(checks.get(dimension.value)) * weight
        return max(0, min(100, round_half_up(total)))


class RecommendationEngine:
    """Derives priority-ranked remediation messages from check results."""

    def __init__(self, policy: Optional[ScoringPolicy] = None):
        self.policy = policy or ScoringPolicy()

    def recommend(self, checks: Mapping[str, CheckResult]) -> List[Recommendation]:
        """Build the ordered recommendation list.

        Never raises; an internal failure yields a single ERROR entry.
        """
        try:
            return self._recommend(checks or {})
        except Exception as e:
            logger.error(f"Error generating recommendations: {e}")
            return [Recommendation(
                priority=Priority.ERROR,
                message="Failed to generate recommendations",
            )]

    def _recommend(self, checks: Mapping[str, CheckResult]) -> List[Recommendation]:
        recommendations: List[Recommendation] = []

        def found(dimension: Dimension) -> bool:
            check = checks.get(dimension.value)
            return bool(check is not None and check.found)

        violations = checks.get(Dimension.PRE_CONSENT_VIOLATIONS.value)
        if isinstance(violations, ViolationCheckResult) and violations.found:
            cookie_violations = violations.violations_of(ViolationType.PRE_CONSENT_COOKIES)
            if cookie_violations:
                count = sum(len(v.details) for v in cookie_violations)
                recommendations.append(Recommendation(
                    priority=Priority.CRITICAL,
                    dimension=Dimension.PRE_CONSENT_VIOLATIONS,
                    message=(
                        f"CRITICAL: {count} cookies are set before user consent. "
                        "This is a serious GDPR violation!"
                    ),
                ))
            if violations.violations_of(ViolationType.TRACKING_REQUESTS):
                recommendations.append(Recommendation(
                    priority=Priority.CRITICAL,
                    dimension=Dimension.PRE_CONSENT_VIOLATIONS,
                    message="CRITICAL: Tracking services are triggered automatically without consent!",
                ))

        if not found(Dimension.COOKIE_BANNER):
            recommendations.append(Recommendation(
                priority=Priority.HIGH,
                dimension=Dimension.COOKIE_BANNER,
                message="Add a cookie banner that lets visitors accept or reject cookies",
            ))

        if not found(Dimension.PRIVACY_POLICY):
            recommendations.append(Recommendation(
                priority=Priority.HIGH,
                dimension=Dimension.PRIVACY_POLICY,
                message="Publish a privacy policy describing how personal data is processed",
            ))

        if not found(Dimension.COOKIE_POLICY):
            recommendations.append(Recommendation(
                priority=Priority.MEDIUM,
                dimension=Dimension.COOKIE_POLICY,
                message="Add a cookie policy",
            ))

        if not found(Dimension.CONTACT_INFO):
            recommendations.append(Recommendation(
                priority=Priority.MEDIUM,
                dimension=Dimension.CONTACT_INFO,
                message="Publish the data controller's contact details",
            ))

        cookies = checks.get(Dimension.COOKIES.value)
        if isinstance(cookies, CookieCheckResult) and cookies.count > self.policy.excessive_cookie_threshold:
            recommendations.append(Recommendation(
                priority=Priority.MEDIUM,
                dimension=Dimension.COOKIES,
                message="Reduce the number of cookies to the minimum the site needs",
            ))

        return recommendations
