"""
Weighted ordered probit with a single continuous predictor.

Model
    P(rank <= j | x) = Phi(alpha_j - beta * x),   j = 1..K-1,
with strictly increasing cutpoints alpha_1 < ... < alpha_{K-1} and one slope
beta shared by all cutpoints (parallel lines). Equivalently, a latent index
U* = beta * x + e, e ~ N(0, 1), falls in category j when
alpha_{j-1} < U* <= alpha_j.

Estimation
- Weighted maximum likelihood by Newton-Raphson with the analytic score and
  Hessian. The ordered probit log-likelihood is concave, so Newton steps with
  step halving (until the likelihood does not decrease and the cutpoints stay
  ordered) converge from the null-model start alpha_j = Phi^{-1}(q_j),
  beta = 0, where q_j is the weighted share of observations with rank <= j.
- Convergence: largest absolute coefficient change below `tol`.
- Covariance: inverse of the negative Hessian at the optimum, ordered as
  [alpha_1, ..., alpha_{K-1}, beta].
- A slope within SLOPE_WARNING_ZSCORE standard errors of zero is reported
  with a UserWarning; the fit itself is still returned.
- Weights are rescaled to mean 1 before use, so multiplying all weights by a
  constant leaves estimates and covariance unchanged.

The slope is shared: every threshold is placed on the continuous scale
through the same beta, so threshold locations keep the cutpoint order.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Optional, Sequence, Tuple

import numpy as np
from scipy.linalg import LinAlgError, cho_factor, cho_solve
from scipy.stats import norm
from statsmodels.stats.weightstats import DescrStatsW

from ..config import DEFAULT_SETTINGS, PROB_FLOOR, SLOPE_WARNING_ZSCORE, SPARSE_CUTPOINT_WARNING, FitSettings
from ..errors import (
    ConvergenceError,
    InsufficientDataError,
    InsufficientLevelsError,
    SeparationError,
)


# -------------------------------
# Results container
# -------------------------------


@dataclass(frozen=True)
class FittedModel:
    """Fitted ordered probit. Immutable: array attributes are read-only copies.

    Attributes
    - levels: category labels in order (K of them).
    - thresholds: cutpoints alpha_1..alpha_{K-1} on the latent scale.
    - slope: coefficient beta on the continuous variable.
    - covariance: (K, K) covariance of [thresholds..., slope].
    - cumulative_shares: weighted share of observations with rank <= j.
    - continuous_mean, continuous_variance: weighted moments of x.
    - n_obs: number of observations used.
    - log_likelihood: weighted log-likelihood at the optimum.
    - n_iter: Newton-Raphson iterations used.
    - converged: always True for a returned model (failures raise).
    """

    levels: Tuple[Hashable, ...]
    thresholds: np.ndarray
    slope: float
    covariance: np.ndarray
    cumulative_shares: np.ndarray
    continuous_mean: float
    continuous_variance: float
    n_obs: int
    log_likelihood: float
    n_iter: int
    converged: bool = True
    weighted: bool = False

    def __post_init__(self) -> None:
        for name in ("thresholds", "covariance", "cumulative_shares"):
            arr = np.array(getattr(self, name), dtype=float, copy=True)
            arr.flags.writeable = False
            object.__setattr__(self, name, arr)
        object.__setattr__(self, "slope", float(self.slope))
        object.__setattr__(self, "levels", tuple(self.levels))

    @property
    def n_levels(self) -> int:
        return self.thresholds.shape[0] + 1

    @property
    def n_params(self) -> int:
        return self.thresholds.shape[0] + 1

    @property
    def params(self) -> np.ndarray:
        """Coefficient vector in covariance order: [thresholds..., slope]."""
        return np.concatenate([self.thresholds, [self.slope]])

    @property
    def threshold_z(self) -> np.ndarray:
        """Probit position of each threshold: Phi^{-1}(cumulative share)."""
        return norm.ppf(self.cumulative_shares)

    def standard_errors(self) -> np.ndarray:
        return np.sqrt(np.clip(np.diag(self.covariance), 0.0, None))

    def threshold_locations(self) -> np.ndarray:
        """Thresholds on the continuous scale: the x at which P(rank <= j | x) = 1/2."""
        return self.thresholds / self.slope

    def cumulative_probabilities(self, x: Sequence[float]) -> np.ndarray:
        """P(rank <= j | x) for each x (rows) and cutpoint j (columns)."""
        xv = np.asarray(x, dtype=float).reshape(-1)
        return norm.cdf(self.thresholds[None, :] - self.slope * xv[:, None])

    def predict_proba(self, x: Sequence[float]) -> np.ndarray:
        """Category probabilities, shape (n, K)."""
        F = self.cumulative_probabilities(x)
        n = F.shape[0]
        F = np.hstack([np.zeros((n, 1)), F, np.ones((n, 1))])
        return np.diff(F, axis=1)

    def params_as_dict(self) -> Dict[str, Any]:
        """Return parameters in a friendly dict format for inspection."""
        se = self.standard_errors()
        k = self.thresholds.shape[0]
        names = [f"{self.levels[j]}|{self.levels[j + 1]}" for j in range(k)]
        return {
            "thresholds": dict(zip(names, self.thresholds.tolist())),
            "threshold_se": dict(zip(names, se[:k].tolist())),
            "slope": self.slope,
            "slope_se": float(se[k]),
        }

    def summary(self) -> str:
        """Return a formatted summary of the fitted model."""
        se = self.standard_errors()
        k = self.thresholds.shape[0]
        lines = []
        lines.append("=" * 70)
        lines.append("Ordered Probit Results (shared slope)")
        lines.append("=" * 70)
        lines.append(f"Levels: {list(self.levels)}")
        lines.append(f"Observations: {self.n_obs}{' (weighted)' if self.weighted else ''}")
        lines.append(f"Convergence: {'Yes' if self.converged else 'No'}")
        lines.append(f"Iterations: {self.n_iter}")
        lines.append(f"Log-Likelihood: {self.log_likelihood:.6f}")
        lines.append("")
        lines.append("Cutpoints (latent scale):")
        lines.append("-" * 56)
        lines.append(f"  {'':20s} {'coef':>10s} {'std err':>10s} {'share<=':>10s}")
        for j in range(k):
            name = f"{self.levels[j]}|{self.levels[j + 1]}"
            lines.append(
                f"  {name[:20]:20s} {self.thresholds[j]:10.6f} {se[j]:10.6f} {self.cumulative_shares[j]:10.4f}"
            )
        lines.append("")
        lines.append("Slope:")
        lines.append("-" * 56)
        lines.append(f"  {'x':20s} {self.slope:10.6f} {se[k]:10.6f}")
        lines.append("")
        lines.append("Thresholds on the continuous scale (alpha_j / beta):")
        for j, loc in enumerate(self.threshold_locations()):
            lines.append(f"  cut {j + 1:2d} = {loc:10.6f}")
        lines.append("=" * 70)
        return "\n".join(lines)


# -------------------------------
# Likelihood helpers
# -------------------------------


def _bounds(alphas: np.ndarray, slope: float, x: np.ndarray, ranks: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Upper and lower standardized bounds of each observation's category interval."""
    cuts = np.concatenate(([-np.inf], alphas, [np.inf]))
    xb = slope * x
    return cuts[ranks] - xb, cuts[ranks - 1] - xb


def _interval_prob(upper: np.ndarray, lower: np.ndarray) -> np.ndarray:
    """Phi(upper) - Phi(lower), using survival functions in the right tail."""
    right_tail = lower > 0
    p = np.where(
        right_tail,
        norm.sf(lower) - norm.sf(upper),
        norm.cdf(upper) - norm.cdf(lower),
    )
    return np.maximum(p, PROB_FLOOR)


def _log_likelihood(theta: np.ndarray, x: np.ndarray, ranks: np.ndarray, w: np.ndarray) -> float:
    upper, lower = _bounds(theta[:-1], theta[-1], x, ranks)
    return float(np.sum(w * np.log(_interval_prob(upper, lower))))


def _derivatives(
    theta: np.ndarray, x: np.ndarray, ranks: np.ndarray, w: np.ndarray
) -> Tuple[float, np.ndarray, np.ndarray]:
    """Weighted log-likelihood, score and Hessian at theta = [alphas..., beta].

    With u = alpha_y - beta*x and l = alpha_{y-1} - beta*x, the category
    probability is P = Phi(u) - Phi(l) and
        dP/d alpha_y     =  phi(u)          d2P/d alpha_y^2     = -u phi(u)
        dP/d alpha_{y-1} = -phi(l)          d2P/d alpha_{y-1}^2 =  l phi(l)
        dP/d beta        = -x (phi(u) - phi(l))
        d2P/d alpha_y d beta     =  x u phi(u)
        d2P/d alpha_{y-1} d beta = -x l phi(l)
        d2P/d beta^2             =  x^2 (l phi(l) - u phi(u))
    The Hessian of log P is d2P / P - (dP)(dP)' / P^2.
    """
    n_params = theta.shape[0]
    n = x.shape[0]
    b = n_params - 1

    upper, lower = _bounds(theta[:-1], theta[-1], x, ranks)
    prob = _interval_prob(upper, lower)
    ll = float(np.sum(w * np.log(prob)))

    phi_u = norm.pdf(upper)
    phi_l = norm.pdf(lower)
    # infinite bounds contribute nothing: phi(+-inf) = 0 and t*phi(t) -> 0
    uphi = np.where(np.isfinite(upper), upper, 0.0) * phi_u
    lphi = np.where(np.isfinite(lower), lower, 0.0) * phi_l

    has_up = ranks < n_params
    has_lo = ranks > 1
    up_idx = ranks - 1
    lo_idx = ranks - 2
    rows = np.arange(n)

    dP = np.zeros((n, n_params))
    dP[rows[has_up], up_idx[has_up]] = phi_u[has_up]
    dP[rows[has_lo], lo_idx[has_lo]] = -phi_l[has_lo]
    dP[:, b] = -x * (phi_u - phi_l)

    G = dP / prob[:, None]
    grad = G.T @ w
    hess = -(G * w[:, None]).T @ G

    c = w / prob
    np.add.at(hess, (up_idx[has_up], up_idx[has_up]), -(c * uphi)[has_up])
    np.add.at(hess, (lo_idx[has_lo], lo_idx[has_lo]), (c * lphi)[has_lo])
    cross_up = (c * x * uphi)[has_up]
    np.add.at(hess, (up_idx[has_up], np.full(cross_up.shape, b)), cross_up)
    np.add.at(hess, (np.full(cross_up.shape, b), up_idx[has_up]), cross_up)
    cross_lo = (-c * x * lphi)[has_lo]
    np.add.at(hess, (lo_idx[has_lo], np.full(cross_lo.shape, b)), cross_lo)
    np.add.at(hess, (np.full(cross_lo.shape, b), lo_idx[has_lo]), cross_lo)
    hess[b, b] += np.sum(c * x ** 2 * (lphi - uphi))

    return ll, grad, hess


def _solve_information(neg_hess: np.ndarray, rhs: np.ndarray) -> np.ndarray:
    """Solve (-H) v = rhs, Cholesky first, then a general solve."""
    neg_hess = 0.5 * (neg_hess + neg_hess.T)
    try:
        c, lower = cho_factor(neg_hess, check_finite=False)
        return cho_solve((c, lower), rhs, check_finite=False)
    except (LinAlgError, ValueError):
        try:
            return np.linalg.solve(neg_hess, rhs)
        except np.linalg.LinAlgError as exc:
            raise SeparationError(
                "Information matrix is singular: the thresholds and slope are not identified "
                "(near-separation or no variation in the continuous variable)."
            ) from exc


def _strictly_increasing(a: np.ndarray) -> bool:
    return bool(np.all(np.isfinite(a))) and (a.shape[0] < 2 or bool(np.all(np.diff(a) > 0)))


# -------------------------------
# Data checks
# -------------------------------


def _check_design(x: np.ndarray, ranks: np.ndarray, n_levels: int, verbose: bool) -> None:
    """Reject designs whose likelihood has no finite maximum; warn on sparse cutpoints."""
    n = x.shape[0]
    if n < n_levels:
        raise InsufficientDataError(
            f"{n} observations for {n_levels} parameters ({n_levels - 1} thresholds + slope)"
        )
    if np.ptp(x) == 0:
        raise InsufficientDataError("The continuous variable has no variation; the slope is not identified.")

    counts = np.bincount(ranks - 1, minlength=n_levels)
    for k in range(n_levels):
        if counts[k] == 0:
            if k == 0 or k == n_levels - 1:
                side = "below" if k == 0 else "above"
                j = 1 if k == 0 else n_levels - 1
                raise SeparationError(
                    f"Cutpoint {j} has no observations {side} it; its threshold diverges."
                )
            raise SeparationError(
                f"Level {k + 1} has no observations; cutpoints {k} and {k + 1} coincide and are not identified."
            )

    lo_max = np.empty(n_levels - 1)
    lo_min = np.empty(n_levels - 1)
    hi_max = np.empty(n_levels - 1)
    hi_min = np.empty(n_levels - 1)
    for j in range(1, n_levels):
        below = ranks <= j
        xb, xa = x[below], x[~below]
        lo_max[j - 1], lo_min[j - 1] = xb.max(), xb.min()
        hi_max[j - 1], hi_min[j - 1] = xa.max(), xa.min()
        n_below, n_above = int(below.sum()), int((~below).sum())
        if verbose:
            print(f"[ordinal_percentiles]   cutpoint {j}: {n_below} below, {n_above} above "
                  f"(balance: {n_above / n:.2f})")
        if min(n_below, n_above) < SPARSE_CUTPOINT_WARNING:
            warnings.warn(
                f"Cutpoint {j} has very few observations on one side "
                f"({n_below} below, {n_above} above); its threshold will be imprecise."
            )

    if np.all(lo_max <= hi_min) or np.all(lo_min >= hi_max):
        raise SeparationError(
            "The continuous variable separates the categories (quasi-)perfectly at every cutpoint; "
            "the slope diverges and the likelihood has no finite maximum."
        )


# -------------------------------
# Fitting
# -------------------------------


def fit_ordered_probit(
    continuous: Sequence[float],
    ranks: Sequence[int],
    n_levels: int,
    weights: Optional[Sequence[float]] = None,
    *,
    levels: Optional[Sequence[Hashable]] = None,
    settings: Optional[FitSettings] = None,
    verbose: bool = False,
) -> FittedModel:
    """Fit the shared-slope ordered probit by weighted maximum likelihood.

    Inputs
    - continuous: x, shape (n,).
    - ranks: integer categories 1..n_levels, shape (n,).
    - n_levels: K, the number of ordered levels (every level must occur).
    - weights: optional positive weights, shape (n,). Rescaled to mean 1.
    - levels: labels for reporting; defaults to 1..K.
    - settings: FitSettings (tolerance, iteration and step-halving bounds).
    - verbose: print progress.

    Raises InsufficientLevelsError, InsufficientDataError, SeparationError,
    ConvergenceError.
    """
    settings = settings or DEFAULT_SETTINGS
    x = np.asarray(continuous, dtype=float).reshape(-1)
    r = np.asarray(ranks).reshape(-1)
    if not np.allclose(r, np.round(r)):
        raise ValueError("ranks must be integer-valued categories 1..K")
    r = np.round(r).astype(int)
    K = int(n_levels)
    n = x.shape[0]

    if K < 2:
        raise InsufficientLevelsError(f"At least 2 levels are required, got {K}")
    if r.shape[0] != n:
        raise ValueError("continuous and ranks have incompatible shapes")
    if n and (r.min() < 1 or r.max() > K):
        raise ValueError(f"ranks must lie in 1..{K}")
    if weights is None:
        w = np.ones(n, dtype=float)
    else:
        w = np.asarray(weights, dtype=float).reshape(-1)
        if w.shape[0] != n:
            raise ValueError("weights length must match n")
    if levels is None:
        levels = tuple(range(1, K + 1))
    elif len(levels) != K:
        raise ValueError(f"levels has {len(levels)} labels for {K} levels")

    if verbose:
        print(f"[ordinal_percentiles] Preparing ordered probit: n={n}, levels={list(levels)} (K={K})")
    _check_design(x, r, K, verbose)

    # Normalize weights to mean 1 so that the information matrix is on the sample-size scale
    w = w * (n / np.sum(w))
    stats_x = DescrStatsW(x, weights=w, ddof=0)

    below = (r[:, None] <= np.arange(1, K)[None, :]).astype(float)
    shares = (w @ below) / np.sum(w)

    theta = np.concatenate([norm.ppf(shares), [0.0]])
    ll, grad, hess = _derivatives(theta, x, r, w)
    if verbose:
        print(f"[ordinal_percentiles] Newton-Raphson from null model (LL={ll:.6f})...")

    converged = False
    n_iter = 0
    for n_iter in range(1, settings.max_iter + 1):
        step = _solve_information(-hess, grad)
        accepted = False
        for _ in range(settings.max_step_halvings + 1):
            trial = theta + step
            if _strictly_increasing(trial[:-1]) and np.isfinite(trial[-1]):
                ll_trial = _log_likelihood(trial, x, r, w)
                if np.isfinite(ll_trial) and ll_trial >= ll - 1e-10 * (1.0 + abs(ll)):
                    accepted = True
                    break
            step = step / 2.0
        if not accepted:
            raise ConvergenceError(
                f"Step halving failed to improve the likelihood at iteration {n_iter} "
                f"after {settings.max_step_halvings} halvings."
            )
        delta = float(np.max(np.abs(trial - theta)))
        theta = trial
        ll, grad, hess = _derivatives(theta, x, r, w)
        if verbose:
            print(f"[ordinal_percentiles]   iter {n_iter:3d}: LL={ll:.8f}, max|step|={delta:.3e}")
        if delta < settings.tol:
            converged = True
            break

    if not converged:
        raise ConvergenceError(
            f"Newton-Raphson did not converge in {settings.max_iter} iterations (tol={settings.tol:g})."
        )

    cov = _solve_information(-hess, np.eye(theta.shape[0]))
    cov = 0.5 * (cov + cov.T)
    slope_se = float(np.sqrt(max(cov[-1, -1], 0.0)))
    if abs(theta[-1]) < SLOPE_WARNING_ZSCORE * slope_se:
        warnings.warn(
            f"Slope {theta[-1]:.4g} is not significantly different from zero "
            f"(z = {abs(theta[-1]) / slope_se:.2f}); percentile estimates scale with 1/|slope| "
            "and will be unstable."
        )
    if verbose:
        print(f"[ordinal_percentiles] Converged after {n_iter} iterations. LL={ll:.6f}")

    return FittedModel(
        levels=tuple(levels),
        thresholds=theta[:-1],
        slope=float(theta[-1]),
        covariance=cov,
        cumulative_shares=shares,
        continuous_mean=float(stats_x.mean),
        continuous_variance=float(stats_x.var),
        n_obs=n,
        log_likelihood=ll,
        n_iter=n_iter,
        converged=True,
        weighted=weights is not None,
    )


__all__ = [
    "FittedModel",
    "fit_ordered_probit",
]
