"""
Error taxonomy for percentile estimation.

Every failure raised by the package derives from `OrdinalPercentileError`.
Input problems additionally derive from `ValueError` and fitting problems
from `RuntimeError`, so callers that already catch the builtin exceptions
keep working.

Nothing here is retried: each error reflects either bad input or a model that
cannot be fitted on the data supplied.
"""

from __future__ import annotations


class OrdinalPercentileError(Exception):
    """Base class for all errors raised by ordinal_percentiles."""


class OrderingError(OrdinalPercentileError, ValueError):
    """The category ordering is missing, not inferable, or malformed."""


class UnknownLevelError(OrderingError):
    """An observed categorical value does not appear in the declared ordering."""


class InsufficientLevelsError(OrdinalPercentileError, ValueError):
    """Fewer than two distinct category levels were observed."""


class InsufficientDataError(OrdinalPercentileError, ValueError):
    """Too few usable observations for the number of estimable parameters."""


class InvalidPercentileError(OrdinalPercentileError, ValueError):
    """Percentile outside (0, 100), or equal percentiles requested for a difference."""


class WeightError(OrdinalPercentileError, ValueError):
    """Weights are non-positive, non-finite, or of the wrong length."""


class SeparationError(OrdinalPercentileError, RuntimeError):
    """(Quasi-)perfect separation: the likelihood has no finite maximum."""


class ConvergenceError(OrdinalPercentileError, RuntimeError):
    """Newton-Raphson did not converge within the iteration bound."""


__all__ = [
    "OrdinalPercentileError",
    "OrderingError",
    "UnknownLevelError",
    "InsufficientLevelsError",
    "InsufficientDataError",
    "InvalidPercentileError",
    "WeightError",
    "SeparationError",
    "ConvergenceError",
]
