"""Cookie jar detector for the ``cookies`` dimension."""

from typing import Sequence

from ..models.capture import BrowserCookie
from ..models.report import CookieCheckResult, Dimension
from .base import BaseDetector


def score_cookie_count(count: int) -> int:
    """Fewer cookies score higher: 0 -> 100, <=3 -> 80, <=10 -> 60, else 30."""
    if count == 0:
        return 100
    if count <= 3:
        return 80
    if count <= 10:
        return 60
    return 30


class CookieJarDetector(BaseDetector):
    """Summarizes the cookies present once the page has settled."""

    dimension = Dimension.COOKIES
    fallback_score = 50
    result_type = CookieCheckResult

    def detect(self, cookies: Sequence[BrowserCookie]) -> CookieCheckResult:
        return CookieCheckResult(
            found=bool(cookies),
            count=len(cookies),
            score=score_cookie_count(len(cookies)),
            evidence=[
                {
                    'name': cookie.name,
                    'domain': cookie.domain,
                    'secure': cookie.secure,
                    'httpOnly': cookie.http_only,
                    'sameSite': cookie.same_site or 'None',
                }
                for cookie in cookies
            ],
        )
