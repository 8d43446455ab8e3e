"""
Percentile transform: from a fitted ordered probit to continuous-scale values.

Each cutpoint j sits at two coordinates:
- its probit position z_j = Phi^{-1}(q_j), q_j being the weighted share of
  observations with rank <= j, i.e. where the threshold falls in the latent
  distribution;
- its latent value alpha_j.
For a target percentile p the latent value a(z) at z = Phi^{-1}(p / 100) is
interpolated linearly in z between the two bracketing cutpoints, and the
estimate is the continuous value whose conditional latent median equals it:

    g(theta; p) = a(z) / beta.

Orientation
- The curve is always non-decreasing in p. With a negative slope (higher
  categories go with lower x) the latent scale runs against x, so the
  probit position is mirrored, z = -Phi^{-1}(p / 100), before interpolating.
  The mirror depends only on the sign of beta, so the gradient formulas are
  unchanged.

Edge policy
- Below the first or above the last cutpoint, the nearest two cutpoints are
  extrapolated linearly. Estimates stay finite, but they lean entirely on the
  probit tail shape and should be read as low-confidence.
- With a single cutpoint (K = 2) there is no second threshold to interpolate
  against; the latent slope per unit z is then the model-implied latent
  standard deviation s = sqrt(beta^2 Var(x) + 1), giving
  a(z) = alpha_1 + s (z - z_1).

Standard errors use the delta method, sqrt(grad' Sigma grad), with the
analytic gradient of g by default. The numerical gradient (central
differences, relative step FitSettings.numerical_step) is an approximation
kept as a cross-check. The cumulative shares q_j are treated as known
constants.
"""

from __future__ import annotations

import math
from numbers import Real
from typing import Iterable, List, NamedTuple, Optional, Tuple

import numpy as np
from scipy.stats import norm

from ..config import DEFAULT_SETTINGS, EPS, FitSettings
from ..errors import ConvergenceError, InvalidPercentileError
from ..ordered_probit.ordered_probit import FittedModel


class PercentileEstimate(NamedTuple):
    percentile: float
    estimate: float
    standard_error: float


def validate_percentile(p: object) -> float:
    """Return p as float, or raise InvalidPercentileError unless 0 < p < 100."""
    if isinstance(p, bool) or not isinstance(p, Real):
        raise InvalidPercentileError(f"percentile must be a real number, got {p!r}")
    value = float(p)
    if not math.isfinite(value) or not 0.0 < value < 100.0:
        raise InvalidPercentileError(f"percentile must lie strictly between 0 and 100, got {p!r}")
    return value


def _segment(z_cut: np.ndarray, z: float) -> int:
    """Index j of the cutpoint pair (j, j+1) used for z; clamped at the ends for extrapolation."""
    j = int(np.searchsorted(z_cut, z, side="right")) - 1
    return min(max(j, 0), z_cut.shape[0] - 2)


def _value(theta: np.ndarray, z_cut: np.ndarray, z: float, variance: float) -> float:
    alphas, beta = theta[:-1], theta[-1]
    if z_cut.shape[0] == 1:
        s = math.sqrt(beta ** 2 * variance + 1.0)
        a = alphas[0] + s * (z - z_cut[0])
    else:
        j = _segment(z_cut, z)
        t = (z - z_cut[j]) / (z_cut[j + 1] - z_cut[j])
        a = (1.0 - t) * alphas[j] + t * alphas[j + 1]
    return float(a / beta)


def _analytic_gradient(theta: np.ndarray, z_cut: np.ndarray, z: float, variance: float) -> np.ndarray:
    alphas, beta = theta[:-1], theta[-1]
    grad = np.zeros(theta.shape[0])
    if z_cut.shape[0] == 1:
        dz = z - z_cut[0]
        s = math.sqrt(beta ** 2 * variance + 1.0)
        a = alphas[0] + s * dz
        grad[0] = 1.0 / beta
        # d/dbeta [(alpha_1 + s dz) / beta], with ds/dbeta = beta Var(x) / s
        grad[-1] = variance * dz / s - a / beta ** 2
    else:
        j = _segment(z_cut, z)
        t = (z - z_cut[j]) / (z_cut[j + 1] - z_cut[j])
        a = (1.0 - t) * alphas[j] + t * alphas[j + 1]
        grad[j] = (1.0 - t) / beta
        grad[j + 1] = t / beta
        grad[-1] = -a / beta ** 2
    return grad


def _numerical_gradient(
    theta: np.ndarray, z_cut: np.ndarray, z: float, variance: float, step: float
) -> np.ndarray:
    grad = np.zeros(theta.shape[0])
    for k in range(theta.shape[0]):
        h = step * max(1.0, abs(theta[k]))
        up = theta.copy()
        dn = theta.copy()
        up[k] += h
        dn[k] -= h
        grad[k] = (_value(up, z_cut, z, variance) - _value(dn, z_cut, z, variance)) / (2.0 * h)
    return grad


def percentile_gradient(
    model: FittedModel,
    p: float,
    method: str = "analytic",
    step: Optional[float] = None,
) -> Tuple[float, np.ndarray]:
    """Estimate at percentile p and its gradient with respect to model.params."""
    p = validate_percentile(p)
    if abs(model.slope) <= EPS:
        raise ConvergenceError("Fitted slope is zero; thresholds cannot be placed on the continuous scale.")
    theta = model.params
    z_cut = model.threshold_z
    z = float(norm.ppf(p / 100.0))
    if model.slope < 0:
        z = -z
    value = _value(theta, z_cut, z, model.continuous_variance)
    if method == "analytic":
        grad = _analytic_gradient(theta, z_cut, z, model.continuous_variance)
    elif method == "numerical":
        grad = _numerical_gradient(
            theta, z_cut, z, model.continuous_variance, DEFAULT_SETTINGS.numerical_step if step is None else step
        )
    else:
        raise ValueError(f"Unsupported gradient method: {method}")
    return value, grad


def delta_method_se(grad: np.ndarray, covariance: np.ndarray) -> float:
    """sqrt(grad' Sigma grad), floored at zero against rounding."""
    var = float(grad @ covariance @ grad)
    return math.sqrt(max(var, 0.0))


def estimate_percentile(
    model: FittedModel, p: float, *, settings: Optional[FitSettings] = None
) -> PercentileEstimate:
    """Continuous-scale value at latent percentile p, with its delta-method standard error."""
    settings = settings or DEFAULT_SETTINGS
    value, grad = percentile_gradient(model, p, method=settings.gradient, step=settings.numerical_step)
    return PercentileEstimate(p, value, delta_method_se(grad, model.covariance))


def estimate_percentiles(
    model: FittedModel, percentiles: Iterable[float], *, settings: Optional[FitSettings] = None
) -> List[PercentileEstimate]:
    return [estimate_percentile(model, p, settings=settings) for p in percentiles]


__all__ = [
    "PercentileEstimate",
    "delta_method_se",
    "estimate_percentile",
    "estimate_percentiles",
    "percentile_gradient",
    "validate_percentile",
]
