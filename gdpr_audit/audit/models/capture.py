"""Pydantic models for the telemetry captured during one audited page load.

This module defines the audit request, the network and cookie events
recorded by the telemetry collector, the browser cookie jar snapshot, and
the PageCapture that bundles them for the detectors.
"""

import time
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ValidationError

ALLOWED_SCHEMES = ("http", "https")


def epoch_millis() -> int:
    """Current wall-clock time in integer milliseconds."""
    return int(time.time() * 1000)


class ResourceType(str, Enum):
    """Types of network resources."""
    DOCUMENT = "document"
    STYLESHEET = "stylesheet"
    IMAGE = "image"
    MEDIA = "media"
    FONT = "font"
    SCRIPT = "script"
    TEXTTRACK = "texttrack"
    XHR = "xhr"
    FETCH = "fetch"
    EVENTSOURCE = "eventsource"
    WEBSOCKET = "websocket"
    MANIFEST = "manifest"
    PING = "ping"
    OTHER = "other"

    @classmethod
    def from_playwright(cls, resource_type: Optional[str]) -> "ResourceType":
        try:
            return cls(resource_type)
        except ValueError:
            return cls.OTHER


class AuditRequest(BaseModel):
    """A validated, immutable request to audit one absolute http(s) URL."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(description="Absolute URL to audit")
    scheme: str = Field(description="URL scheme, http or https")
    host: str = Field(description="Host name of the URL")
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the request was created"
    )

    @classmethod
    def from_url(cls, url: Optional[str]) -> "AuditRequest":
        """Validate a raw URL string and build an AuditRequest.

        Args:
            url: Raw URL supplied by the caller

        Returns:
            Validated AuditRequest

        Raises:
            ValidationError: If the URL is empty, malformed, has no host, or
                uses a scheme other than http/https
        """
        if not url or not isinstance(url, str) or not url.strip():
            raise ValidationError("URL is required")

        candidate = url.strip()
        try:
            parsed = urlparse(candidate)
            host = parsed.hostname
        except ValueError as e:
            raise ValidationError(f"Invalid URL: {e}")

        scheme = (parsed.scheme or "").lower()
        if scheme not in ALLOWED_SCHEMES:
            raise ValidationError("Only HTTP and HTTPS URLs are supported")
        if not host:
            raise ValidationError(f"Invalid URL, missing host: {candidate}")

        return cls(url=candidate, scheme=scheme, host=host)

    @property
    def is_https(self) -> bool:
        return self.scheme == "https"


class NetworkEvent(BaseModel):
    """One outgoing request observed during navigation."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(description="Request URL")
    resource_type: ResourceType = Field(
        default=ResourceType.OTHER,
        description="Playwright resource type of the request"
    )
    captured_at_ms: int = Field(
        default_factory=epoch_millis,
        description="Capture timestamp in epoch milliseconds"
    )


class CookieCapture(BaseModel):
    """A response that carried a Set-Cookie header."""

    model_config = ConfigDict(frozen=True)

    source_url: str = Field(description="URL of the response that set cookies")
    raw_set_cookie_header: str = Field(description="Raw Set-Cookie header value")
    captured_at_ms: int = Field(
        default_factory=epoch_millis,
        description="Capture timestamp in epoch milliseconds"
    )

    @property
    def cookie_names(self) -> List[str]:
        """Names of the cookies set by this header.

        Playwright joins repeated Set-Cookie headers with newlines.
        """
        names = []
        for line in self.raw_set_cookie_header.splitlines():
            pair = line.split(";", 1)[0]
            if "=" not in pair:
                continue
            name = pair.split("=", 1)[0].strip()
            if name:
                names.append(name)
        return names


class BrowserCookie(BaseModel):
    """A cookie from the browser context's cookie jar. Values are never stored."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Cookie name")
    domain: str = Field(default="", description="Cookie domain")
    path: str = Field(default="/", description="Cookie path")
    secure: bool = Field(default=False, description="Secure flag")
    http_only: bool = Field(default=False, description="HttpOnly flag")
    same_site: Optional[str] = Field(
        default=None,
        description="SameSite attribute (Strict, Lax, None)"
    )
    expires: Optional[float] = Field(
        default=None,
        description="Expiry as epoch seconds, None for session cookies"
    )
    observed_at_ms: int = Field(
        default_factory=epoch_millis,
        description="When the cookie was read from the jar"
    )

    @property
    def is_session(self) -> bool:
        return self.expires is None

    @classmethod
    def from_playwright_cookie(cls, cookie: dict, observed_at_ms: Optional[int] = None) -> "BrowserCookie":
        """Create BrowserCookie from a Playwright cookie dict."""
        expires = cookie.get('expires', -1)
        return cls(
            name=cookie.get('name', ''),
            domain=cookie.get('domain', ''),
            path=cookie.get('path', '/'),
            secure=cookie.get('secure', False),
            http_only=cookie.get('httpOnly', False),
            same_site=cookie.get('sameSite'),
            expires=None if expires is None or expires == -1 else float(expires),
            observed_at_ms=observed_at_ms if observed_at_ms is not None else epoch_millis(),
        )


class PageCapture(BaseModel):
    """Everything captured during one successful navigation attempt."""

    url: str = Field(description="Requested URL")
    final_url: Optional[str] = Field(
        default=None,
        description="Final URL after redirects"
    )
    status_code: Optional[int] = Field(default=None, description="Main document status")
    html: str = Field(default="", description="Serialized DOM after the settle window")

    network_events: Tuple[NetworkEvent, ...] = Field(default_factory=tuple)
    cookie_captures: Tuple[CookieCapture, ...] = Field(default_factory=tuple)
    cookies: Tuple[BrowserCookie, ...] = Field(default_factory=tuple)
    dropped_events: int = Field(
        default=0,
        description="Telemetry events lost to listener errors"
    )

    navigation_started_ms: int = Field(description="When navigation began")
    response_received_ms: int = Field(description="When the navigation response arrived")
    settle_deadline_ms: int = Field(
        description="End of the settle window; telemetry up to here is pre-consent"
    )

    @property
    def load_time_ms(self) -> int:
        return self.response_received_ms - self.navigation_started_ms
