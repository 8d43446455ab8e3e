"""
Difference between two percentile estimates of the same fitted model.

Both estimates are functions of one coefficient vector, so their errors are
correlated. The variance of the difference keeps the cross term:

    Var(g1 - g2) = grad1' S grad1 + grad2' S grad2 - 2 grad1' S grad2
                 = (grad1 - grad2)' S (grad1 - grad2).

Sign convention: difference = estimate(first) - estimate(second).
"""

from __future__ import annotations

from typing import NamedTuple, Optional

from ..config import DEFAULT_SETTINGS, FitSettings
from ..errors import InvalidPercentileError
from ..ordered_probit.ordered_probit import FittedModel
from .transform import delta_method_se, percentile_gradient, validate_percentile


class PercentileDifference(NamedTuple):
    difference: float
    standard_error: float


def percentile_difference(
    model: FittedModel,
    first: float,
    second: float,
    *,
    settings: Optional[FitSettings] = None,
) -> PercentileDifference:
    """estimate(first) - estimate(second) with its delta-method standard error.

    Raises InvalidPercentileError if either percentile is outside (0, 100) or
    if they are equal.
    """
    settings = settings or DEFAULT_SETTINGS
    p1 = validate_percentile(first)
    p2 = validate_percentile(second)
    if p1 == p2:
        raise InvalidPercentileError(f"the two percentiles must differ, got {first!r} twice")
    v1, g1 = percentile_gradient(model, p1, method=settings.gradient, step=settings.numerical_step)
    v2, g2 = percentile_gradient(model, p2, method=settings.gradient, step=settings.numerical_step)
    return PercentileDifference(v1 - v2, delta_method_se(g1 - g2, model.covariance))


__all__ = ["PercentileDifference", "percentile_difference"]
