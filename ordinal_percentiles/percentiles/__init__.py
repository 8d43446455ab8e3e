"""
Percentile transform and percentile differences

- `transform`: continuous-scale value at a latent percentile, with
  delta-method standard errors (analytic gradient, numerical fallback).
- `difference`: signed difference of two percentile estimates, keeping the
  covariance between them.
"""

from .difference import PercentileDifference, percentile_difference
from .transform import (
    PercentileEstimate,
    delta_method_se,
    estimate_percentile,
    estimate_percentiles,
    percentile_gradient,
    validate_percentile,
)

__all__ = [
    "PercentileDifference",
    "PercentileEstimate",
    "delta_method_se",
    "estimate_percentile",
    "estimate_percentiles",
    "percentile_difference",
    "percentile_gradient",
    "validate_percentile",
]
