"""
Weighted ordered probit with a shared slope

Provides `fit_ordered_probit`, a Newton-Raphson maximum-likelihood fit of
P(rank <= j | x) = Phi(alpha_j - beta x), and the immutable `FittedModel`
holding cutpoints, slope and their covariance (inverse negative Hessian).

Dependencies: numpy, scipy, statsmodels
"""

from .ordered_probit import FittedModel, fit_ordered_probit

__all__ = ["FittedModel", "fit_ordered_probit"]
