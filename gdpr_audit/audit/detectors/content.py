"""Content analyzer: presence checks over the loaded DOM.

Runs the cookie banner, privacy policy, cookie policy and contact detectors
against the serialized page HTML using BeautifulSoup's CSS selector support.
Each detector runs isolated, so a failure only degrades its own dimension.
"""

import logging
from typing import Dict, List

from bs4 import BeautifulSoup

from ..models.report import CheckResult, Dimension
from .base import BaseDetector
from .rules import DEFAULT_RULES, DetectorRuleSet, DimensionRules

logger = logging.getLogger(__name__)

# Caps report size on pages with deeply nested banner markup.
MAX_EVIDENCE_ITEMS = 25


class CookieBannerDetector(BaseDetector):
    """Detects a cookie/consent banner by selector or body keyword."""

    dimension = Dimension.COOKIE_BANNER

    def detect(self, soup: BeautifulSoup) -> CheckResult:
        rules = self.rules.cookie_banner
        result = CheckResult()

        for selector in rules.selectors:
            try:
                elements = soup.select(selector)
            except Exception as e:
                logger.debug(f"Skipping banner selector {selector}: {e}")
                continue

            for element in elements:
                text = element.get_text().strip()
                if len(text) > self.rules.banner_min_text_length:
                    result.found = True
                    if len(result.evidence) < MAX_EVIDENCE_ITEMS:
                        result.evidence.append({'selector': selector, 'text': text[:100]})

        body = soup.body or soup
        body_text = body.get_text(" ").lower()
        for keyword in rules.keywords:
            if keyword.lower() in body_text:
                result.found = True
                result.evidence.append({'keyword': keyword})
                break

        result.score = 100 if result.found else 0
        return result


class PolicyLinkDetector(BaseDetector):
    """Detects a policy link by keyword in an anchor's href or text."""

    link_type: str
    found_score: int

    def _keywords(self) -> DimensionRules:
        raise NotImplementedError

    def detect(self, soup: BeautifulSoup) -> CheckResult:
        keywords = [(keyword, keyword.lower()) for keyword in self._keywords().keywords]
        result = CheckResult()

        for anchor in soup.find_all('a'):
            href = anchor.get('href') or ''
            text = anchor.get_text().strip()
            href_lower = href.lower()
            text_lower = text.lower()

            for keyword, lowered in keywords:
                if lowered in href_lower or lowered in text_lower:
                    result.found = True
                    if len(result.evidence) < MAX_EVIDENCE_ITEMS:
                        result.evidence.append({
                            'href': href,
                            'text': text,
                            'type': self.link_type,
                            'keyword': keyword,
                        })
                    break

        result.score = self.found_score if result.found else 0
        return result


class PrivacyPolicyDetector(PolicyLinkDetector):
    dimension = Dimension.PRIVACY_POLICY
    link_type = 'privacy-policy'
    found_score = 100

    def _keywords(self) -> DimensionRules:
        return self.rules.privacy_policy


class CookiePolicyDetector(PolicyLinkDetector):
    dimension = Dimension.COOKIE_POLICY
    link_type = 'cookie-policy'
    found_score = 80

    def _keywords(self) -> DimensionRules:
        return self.rules.cookie_policy


class ContactInfoDetector(BaseDetector):
    """Detects mailto:/tel: links and contact sections."""

    dimension = Dimension.CONTACT_INFO
    found_score = 80

    _LINK_TYPES = (('mailto:', 'email'), ('tel:', 'phone'))

    def detect(self, soup: BeautifulSoup) -> CheckResult:
        result = CheckResult()

        for prefix, contact_type in self._LINK_TYPES:
            for anchor in soup.select(f'a[href^="{prefix}"]'):
                href = anchor.get('href') or ''
                result.found = True
                result.evidence.append({
                    'type': contact_type,
                    'value': href[len(prefix):],
                    'text': anchor.get_text().strip(),
                })

        for selector in self.rules.contact_info.selectors:
            try:
                matches = soup.select(selector)
            except Exception as e:
                logger.debug(f"Skipping contact selector {selector}: {e}")
                continue
            if matches:
                result.found = True
                result.evidence.append({'type': 'selector', 'selector': selector, 'count': len(matches)})

        result.score = self.found_score if result.found else 0
        return result


class ContentAnalyzer:
    """Runs the four DOM presence detectors over one page."""

    def __init__(self, rules: DetectorRuleSet = DEFAULT_RULES):
        self.rules = rules
        self.detectors: List[BaseDetector] = [
            CookieBannerDetector(rules),
            PrivacyPolicyDetector(rules),
            CookiePolicyDetector(rules),
            ContactInfoDetector(rules),
        ]

    def analyze(self, html: str) -> Dict[Dimension, CheckResult]:
        """Analyze serialized page HTML.

        Args:
            html: DOM snapshot taken after the settle window

        Returns:
            One CheckResult per content dimension, never raising
        """
        soup = BeautifulSoup(html or "", "html.parser")
        results = {detector.dimension: detector.run(soup) for detector in self.detectors}
        logger.debug(f"Content analysis complete: {[(d.value, r.found) for d, r in results.items()]}")
        return results
