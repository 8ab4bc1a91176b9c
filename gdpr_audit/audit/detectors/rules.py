"""Detector rule set: selectors, link keywords and allow-lists per dimension.

The tables here are configuration, not logic. They are immutable and carry a
version string that is reported in every audit's debug block. A YAML rules
file can replace them without touching any detector.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .signatures import (
    DEFAULT_TRACKING_SIGNATURES,
    TrackingSignature,
    TrackingSignatureRegistry,
)

logger = logging.getLogger(__name__)

RULES_VERSION = "2024.1"


class RuleLoadError(Exception):
    """Raised when a rules file cannot be read or validated."""
    pass


class DimensionRules(BaseModel):
    """Selectors and keywords for one content dimension."""

    model_config = ConfigDict(frozen=True)

    selectors: Tuple[str, ...] = Field(
        default_factory=tuple,
        description="CSS/attribute selectors matched against the DOM"
    )
    keywords: Tuple[str, ...] = Field(
        default_factory=tuple,
        description="Case-insensitive substrings matched against text or links"
    )


class DetectorRuleSet(BaseModel):
    """All static detection tables used by one audit."""

    model_config = ConfigDict(frozen=True)

    version: str = Field(default=RULES_VERSION)
    cookie_banner: DimensionRules
    privacy_policy: DimensionRules
    cookie_policy: DimensionRules
    contact_info: DimensionRules
    essential_cookie_patterns: Tuple[str, ...] = Field(
        description="Cookie name substrings presumed necessary for basic site function"
    )
    banner_min_text_length: int = Field(
        default=10,
        description="Banner elements need more trimmed text than this to count"
    )
    tracking: TrackingSignatureRegistry = Field(default=DEFAULT_TRACKING_SIGNATURES)

    def is_essential_cookie(self, cookie_name: str) -> bool:
        lowered = (cookie_name or "").lower()
        return any(pattern.lower() in lowered for pattern in self.essential_cookie_patterns)


DEFAULT_RULES = DetectorRuleSet(
    cookie_banner=DimensionRules(
        selectors=(
            '[id*="cookie"]',
            '[class*="cookie"]',
            '[id*="consent"]',
            '[class*="consent"]',
            '[data-consent]',
            '.cookie-notice',
            '.cookie-banner',
            '#cookie-policy',
            '.gdpr-banner',
            '[class*="gdpr"]',
        ),
        keywords=(
            'cookie', 'súhlas', 'consent', 'gdpr', 'ochrana údajov',
            'privacy', 'cookies policy',
        ),
    ),
    privacy_policy=DimensionRules(
        keywords=(
            'privacy', 'ochrana-udajov', 'ochrana-osobnych-udajov', 'zasady-ochrany',
            'gdpr', 'privacy-policy', 'osobne-udaje',
            'privacy policy', 'ochrana údajov', 'ochrana osobných údajov', 'zásady ochrany',
        ),
    ),
    cookie_policy=DimensionRules(
        keywords=(
            'cookie', 'cookies', 'cookie-policy', 'zasady-cookies', 'cookies-policy',
            'cookie policy', 'zásady cookies', 'o cookies', 'cookies information',
        ),
    ),
    contact_info=DimensionRules(
        selectors=(
            '[href^="mailto:"]',
            '[class*="contact"]',
            '[id*="contact"]',
            '[class*="email"]',
            '[id*="email"]',
        ),
    ),
    essential_cookie_patterns=(
        'session', 'csrf', 'xsrf', 'auth', 'login', 'security',
        'lang', 'language', 'timezone', 'currency', 'theme', 'wordpress',
        'wp-', 'phpsessid',
    ),
)


def _dimension_rules(data: Optional[Dict[str, Any]], default: DimensionRules) -> DimensionRules:
    if data is None:
        return default
    return DimensionRules(
        selectors=tuple(data.get('selectors', default.selectors)),
        keywords=tuple(data.get('keywords', default.keywords)),
    )


def load_rule_set(path: Union[str, Path], base: DetectorRuleSet = DEFAULT_RULES) -> DetectorRuleSet:
    """Load a rule set from YAML, falling back to ``base`` for omitted tables.

    Tracking services listed under ``tracking_services`` are merged into the
    base registry by key; a listed key replaces the built-in entry.

    Args:
        path: Path to the YAML rules file
        base: Rule set supplying defaults for omitted sections

    Returns:
        New immutable DetectorRuleSet

    Raises:
        RuleLoadError: If the file is missing, unparsable or invalid
    """
    path = Path(path)
    if not path.exists():
        raise RuleLoadError(f"Rules file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise RuleLoadError(f"Failed to parse rules file {path}: {e}")

    if not isinstance(data, dict):
        raise RuleLoadError("Rules file must contain a YAML dictionary")

    try:
        tracking = base.tracking
        services = data.get('tracking_services')
        if services:
            tracking = tracking.extended(
                TrackingSignature(key=key, **entry) for key, entry in services.items()
            )

        rule_set = DetectorRuleSet(
            version=str(data.get('version', f"{base.version}+{path.stem}")),
            cookie_banner=_dimension_rules(data.get('cookie_banner'), base.cookie_banner),
            privacy_policy=_dimension_rules(data.get('privacy_policy'), base.privacy_policy),
            cookie_policy=_dimension_rules(data.get('cookie_policy'), base.cookie_policy),
            contact_info=_dimension_rules(data.get('contact_info'), base.contact_info),
            essential_cookie_patterns=tuple(
                data.get('essential_cookie_patterns', base.essential_cookie_patterns)
            ),
            banner_min_text_length=data.get('banner_min_text_length', base.banner_min_text_length),
            tracking=tracking,
        )
    except Exception as e:
        raise RuleLoadError(f"Invalid rules file {path}: {e}")

    logger.info(f"Loaded detector rules {rule_set.version} from {path}")
    return rule_set
