"""Base detector class and the per-dimension isolation combinator.

Every detector produces one CheckResult for one dimension. ``isolate`` runs
a detector so that any failure is converted into a degraded CheckResult
carrying the error message, which keeps one broken detector from aborting
the audit or hiding the results of the others.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Type, TypeVar

from ..errors import DimensionError
from ..models.report import CheckResult, Dimension
from .rules import DEFAULT_RULES, DetectorRuleSet

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=CheckResult)


def isolate(
    dimension: Dimension,
    detector: Callable[..., R],
    *args: Any,
    fallback_score: int = 0,
    result_type: Type[CheckResult] = CheckResult,
    **kwargs: Any,
) -> CheckResult:
    """Run ``detector`` and convert any exception into a degraded result.

    Args:
        dimension: Dimension the detector scores
        detector: Callable returning a CheckResult
        *args: Positional arguments for the detector
        fallback_score: Score assigned when the detector fails
        result_type: CheckResult subclass used for the degraded result
        **kwargs: Keyword arguments for the detector

    Returns:
        The detector's result, or ``result_type(found=False,
        score=fallback_score, error=...)`` if it raised
    """
    try:
        result = detector(*args, **kwargs)
    except Exception as e:
        error = DimensionError(dimension.value, e)
        logger.warning(str(error))
        return result_type(found=False, score=fallback_score, error=str(e))

    logger.debug(f"{dimension.value}: found={result.found} score={result.score}")
    return result


class BaseDetector(ABC):
    """Abstract base class for single-dimension detectors."""

    dimension: Dimension
    fallback_score: int = 0
    result_type: Type[CheckResult] = CheckResult

    def __init__(self, rules: DetectorRuleSet = DEFAULT_RULES):
        self.rules = rules

    @abstractmethod
    def detect(self, *args: Any, **kwargs: Any) -> CheckResult:
        """Analyze captured data and return the dimension's result."""
        ...

    def run(self, *args: Any, **kwargs: Any) -> CheckResult:
        """Run ``detect`` isolated, degrading to the fallback score on failure."""
        return isolate(
            self.dimension,
            self.detect,
            *args,
            fallback_score=self.fallback_score,
            result_type=self.result_type,
            **kwargs,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(dimension={self.dimension.value}, rules={self.rules.version})"
