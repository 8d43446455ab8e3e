"""
ordinal_percentiles -- percentile statistics for an ordered categorical variable.

A variable of interest (e.g. income or education) is often observed only as
ordered brackets, alongside a continuous measurement (e.g. a test score).
Treating the brackets as thresholds on a latent continuous variable, this
package fits a weighted ordered probit of the brackets on the measurement and
maps latent percentiles back onto the measurement's scale, with delta-method
standard errors.

Key exports
-----------
estimate_percentile_difference : function
    Difference in the continuous variable between two latent percentiles
    (default 90 vs 10), with a standard error that keeps the covariance
    between the two estimates.
estimate_percentile_distribution : function
    Full percentile-to-value mapping (default percentiles 1..99).
estimate_percentile_difference_table, estimate_percentile_distribution_table : function
    The same results as pandas DataFrames.
fit_percentile_model : function
    The shared fit, returning a FittedModel with `summary()`.
PercentileDifference, PercentileEstimate : namedtuples
    Result containers.
FitSettings : dataclass
    Per-call tolerance, iteration bound and gradient method.

Dependencies: numpy, scipy, pandas, statsmodels
"""

from .api import (
    estimate_percentile_difference,
    estimate_percentile_difference_table,
    estimate_percentile_distribution,
    estimate_percentile_distribution_table,
    fit_percentile_model,
)
from .config import FitSettings
from .errors import (
    ConvergenceError,
    InsufficientDataError,
    InsufficientLevelsError,
    InvalidPercentileError,
    OrderingError,
    OrdinalPercentileError,
    SeparationError,
    UnknownLevelError,
    WeightError,
)
from .ordered_probit import FittedModel
from .percentiles import PercentileDifference, PercentileEstimate

__all__ = [
    "estimate_percentile_difference",
    "estimate_percentile_difference_table",
    "estimate_percentile_distribution",
    "estimate_percentile_distribution_table",
    "fit_percentile_model",
    "FitSettings",
    "FittedModel",
    "PercentileDifference",
    "PercentileEstimate",
    "ConvergenceError",
    "InsufficientDataError",
    "InsufficientLevelsError",
    "InvalidPercentileError",
    "OrderingError",
    "OrdinalPercentileError",
    "SeparationError",
    "UnknownLevelError",
    "WeightError",
]
