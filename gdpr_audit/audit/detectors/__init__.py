"""Compliance detectors.

Each detector scores one dimension from captured page data. The rule tables
and tracking signatures they consult are immutable data in ``rules`` and
``signatures``.
"""

from .base import BaseDetector, isolate
from .rules import (
    DEFAULT_RULES,
    RULES_VERSION,
    DetectorRuleSet,
    DimensionRules,
    RuleLoadError,
    load_rule_set,
)
from .signatures import (
    DEFAULT_TRACKING_SIGNATURES,
    TrackingSignature,
    TrackingSignatureRegistry,
)
from .content import (
    ContentAnalyzer,
    CookieBannerDetector,
    PrivacyPolicyDetector,
    CookiePolicyDetector,
    ContactInfoDetector,
)
from .cookies import CookieJarDetector, score_cookie_count
from .violations import ViolationAnalyzer
from .ssl_inspector import SSLInspector, check_ssl

__all__ = [
    # Base framework
    "BaseDetector",
    "isolate",

    # Rule tables
    "DEFAULT_RULES",
    "RULES_VERSION",
    "DetectorRuleSet",
    "DimensionRules",
    "RuleLoadError",
    "load_rule_set",
    "DEFAULT_TRACKING_SIGNATURES",
    "TrackingSignature",
    "TrackingSignatureRegistry",

    # Detectors
    "ContentAnalyzer",
    "CookieBannerDetector",
    "PrivacyPolicyDetector",
    "CookiePolicyDetector",
    "ContactInfoDetector",
    "CookieJarDetector",
    "score_cookie_count",
    "ViolationAnalyzer",
    "SSLInspector",
    "check_ssl",
]
