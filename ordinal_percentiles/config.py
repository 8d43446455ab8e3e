"""Package-wide constants and fitting settings.

Every tuneable number used by the estimation pipeline lives here -- the
Newton-Raphson tolerance and iteration bounds, the numerical-gradient step,
the default percentile grid -- so that the fitter, the percentile transform
and the public calls share a single source of truth.

`FitSettings` bundles the subset a caller may want to override per call.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Tuple

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Numerical floor for denominators.  The percentile mapping divides by the
# fitted slope and refuses a slope this close to zero; weak but non-zero
# slopes are caught by SLOPE_WARNING_ZSCORE instead.
EPS = 1e-12

# A fitted slope with |beta| / se(beta) below this triggers a UserWarning:
# percentile estimates scale with 1 / |beta| and run far outside the range of
# the continuous variable when the association is weak.
SLOPE_WARNING_ZSCORE = 2.0

# Smallest category probability allowed inside the log-likelihood.  Values
# below this only occur for parameters far from the optimum; flooring keeps
# the log finite so that step halving can reject the trial point.
PROB_FLOOR = 1e-300

# Newton-Raphson stops once the largest absolute coefficient change in one
# iteration falls below this tolerance.
TOLERANCE = 1e-8

# Upper bound on Newton-Raphson iterations before ConvergenceError.
MAX_ITER = 100

# Upper bound on step halvings inside one Newton iteration.  Each halving
# shrinks the step by 2, so 50 halvings reach ~1e-15 of the full step.
MAX_STEP_HALVINGS = 50

# Relative step for central-difference gradients of the percentile mapping:
# h_k = NUMERICAL_STEP * max(1, |theta_k|).  Small enough that the
# truncation error (O(h^2)) is negligible, large enough that rounding error
# (O(eps / h)) stays around 1e-10.
NUMERICAL_STEP = 1e-6

# A cutpoint with fewer observations than this on either side triggers a
# UserWarning: the threshold is estimable but imprecise.
SPARSE_CUTPOINT_WARNING = 5

# Percentiles used by estimate_percentile_difference when none are given.
DEFAULT_PERCENTILES: Tuple[float, float] = (90, 10)

# Step of the default percentile grid: 1 -> 1, 2, ..., 99.
DEFAULT_GRANULARITY = 1

GRADIENT_METHODS = ("analytic", "numerical")


@dataclass(frozen=True)
class FitSettings:
    """Per-call overrides for fitting and standard-error computation.

    Parameters
    - tol: convergence tolerance on the maximum absolute coefficient change.
    - max_iter: Newton-Raphson iteration bound.
    - max_step_halvings: step-halving bound inside a single iteration.
    - gradient: "analytic" (exact, default) or "numerical" (central
      differences, an approximation) for delta-method gradients.
    - numerical_step: relative step used when gradient="numerical".
    """

    tol: float = TOLERANCE
    max_iter: int = MAX_ITER
    max_step_halvings: int = MAX_STEP_HALVINGS
    gradient: str = "analytic"
    numerical_step: float = NUMERICAL_STEP

    def __post_init__(self) -> None:
        if not self.tol > 0:
            raise ValueError("tol must be positive")
        if int(self.max_iter) != self.max_iter or self.max_iter < 1:
            raise ValueError("max_iter must be a positive integer")
        if int(self.max_step_halvings) != self.max_step_halvings or self.max_step_halvings < 0:
            raise ValueError("max_step_halvings must be a non-negative integer")
        if self.gradient not in GRADIENT_METHODS:
            raise ValueError(f"gradient must be one of {GRADIENT_METHODS}, got {self.gradient!r}")
        if not self.numerical_step > 0:
            raise ValueError("numerical_step must be positive")

    def get_config(self) -> Dict[str, Any]:
        return asdict(self)


DEFAULT_SETTINGS = FitSettings()
