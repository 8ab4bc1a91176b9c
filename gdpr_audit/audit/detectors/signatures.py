"""Tracking signature registry.

Maps known third-party tracking and analytics services to the URL
substrings, cookie-name prefixes and inline script markers that reveal
them. The registry is immutable data; detectors only query it.
"""

from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class TrackingSignature(BaseModel):
    """Patterns identifying one tracking service."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(description="Stable identifier, e.g. 'google-analytics'")
    name: str = Field(description="Display name, e.g. 'Google Analytics'")
    category: str = Field(description="analytics, marketing, advertising, media, ...")
    url_patterns: Tuple[str, ...] = Field(
        default_factory=tuple,
        description="Case-insensitive substrings matched against request URLs"
    )
    cookie_patterns: Tuple[str, ...] = Field(
        default_factory=tuple,
        description="Case-insensitive cookie name prefixes set by the service"
    )
    script_markers: Tuple[str, ...] = Field(
        default_factory=tuple,
        description="Inline script snippets that load the service"
    )

    def matches_url(self, url: str) -> bool:
        lowered = url.lower()
        return any(pattern.lower() in lowered for pattern in self.url_patterns)

    def matches_cookie(self, cookie_name: str) -> bool:
        lowered = cookie_name.lower()
        return any(lowered.startswith(pattern.lower()) for pattern in self.cookie_patterns)


class TrackingSignatureRegistry(BaseModel):
    """Ordered, immutable collection of tracking signatures."""

    model_config = ConfigDict(frozen=True)

    signatures: Tuple[TrackingSignature, ...] = Field(default_factory=tuple)

    def get(self, key: str) -> Optional[TrackingSignature]:
        for signature in self.signatures:
            if signature.key == key:
                return signature
        return None

    def match_url(self, url: str) -> List[TrackingSignature]:
        """All services whose URL patterns occur in ``url``, in registry order."""
        return [signature for signature in self.signatures if signature.matches_url(url)]

    def match_cookie(self, cookie_name: str) -> Optional[TrackingSignature]:
        """First service whose cookie prefixes match ``cookie_name``."""
        for signature in self.signatures:
            if signature.matches_cookie(cookie_name):
                return signature
        return None

    def match_script_markers(self, html: str) -> List[str]:
        """Names of services whose inline script markers appear in ``html``."""
        found = []
        for signature in self.signatures:
            if any(marker in html for marker in signature.script_markers):
                found.append(signature.name)
        return found

    def extended(self, extra: Iterable[TrackingSignature]) -> "TrackingSignatureRegistry":
        """Return a new registry with ``extra`` appended, replacing same-key entries."""
        extra = list(extra)
        replaced = {signature.key for signature in extra}
        kept = [signature for signature in self.signatures if signature.key not in replaced]
        return TrackingSignatureRegistry(signatures=tuple(kept + extra))


DEFAULT_TRACKING_SIGNATURES = TrackingSignatureRegistry(signatures=(
    TrackingSignature(
        key="google-analytics",
        name="Google Analytics",
        category="analytics",
        url_patterns=("google-analytics.com", "googletagmanager.com", "gtag", "_ga", "_gid", "_gat"),
        cookie_patterns=("_ga", "_gid", "_gat"),
        script_markers=("gtag(", "GoogleAnalyticsObject"),
    ),
    TrackingSignature(
        key="facebook-pixel",
        name="Facebook Pixel",
        category="marketing",
        url_patterns=("facebook.com/tr", "connect.facebook.net", "fbq", "_fbp", "_fbc"),
        cookie_patterns=("_fbp", "_fbc"),
        script_markers=("fbq(",),
    ),
    TrackingSignature(
        key="google-ads",
        name="Google Ads",
        category="advertising",
        url_patterns=("googleadservices.com", "googlesyndication.com", "_gcl_"),
        cookie_patterns=("_gcl_",),
    ),
    TrackingSignature(
        key="hotjar",
        name="Hotjar",
        category="analytics",
        url_patterns=("hotjar.com", "_hjid", "_hjIncludedInSample"),
        cookie_patterns=("_hjid", "_hjincludedinsample"),
        script_markers=("hjSiteSettings", "_hjSettings"),
    ),
    TrackingSignature(
        key="youtube",
        name="YouTube Embedded",
        category="media",
        url_patterns=("youtube.com/embed", "ytimg.com", "VISITOR_INFO1_LIVE", "YSC"),
        cookie_patterns=("VISITOR_INFO1_LIVE", "YSC"),
    ),
))
