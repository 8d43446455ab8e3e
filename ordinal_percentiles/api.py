"""
Public calls: percentile differences and percentile distributions.

Every call runs the whole pipeline on the data it is given -- typed table,
category encoding, ordered probit fit, percentile transform -- and returns
plain values. Nothing is cached between calls; calling twice on the same data
refits from scratch.

Usage (quick start):
    >>> import pandas as pd
    >>> from ordinal_percentiles import estimate_percentile_difference
    >>> df = pd.DataFrame({"educ": [...], "score": [...]})
    >>> diff = estimate_percentile_difference(
    ...     df, "educ", "score", percentiles=(90, 10),
    ...     levels=["primary", "secondary", "tertiary"],
    ... )
    >>> diff.difference, diff.standard_error
"""

from __future__ import annotations

from typing import Hashable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import DEFAULT_GRANULARITY, DEFAULT_PERCENTILES, FitSettings
from .data.table import TableLike, WeightsLike, build_observation_table
from .encoding.encoder import encode_categories
from .errors import InvalidPercentileError
from .formatting import Granularity, difference_table, distribution_rows, distribution_table, percentile_grid
from .ordered_probit.ordered_probit import FittedModel, fit_ordered_probit
from .percentiles.difference import PercentileDifference, percentile_difference
from .percentiles.transform import PercentileEstimate, estimate_percentiles, validate_percentile


def _percentile_pair(percentiles: Sequence[float]) -> Tuple[float, float]:
    try:
        first, second = percentiles
    except (TypeError, ValueError) as exc:
        raise InvalidPercentileError(f"percentiles must be a pair (p1, p2), got {percentiles!r}") from exc
    if validate_percentile(first) == validate_percentile(second):
        raise InvalidPercentileError(f"the two percentiles must differ, got {first!r} twice")
    return first, second


def fit_percentile_model(
    data: TableLike,
    categorical_var: str,
    continuous_var: str,
    weights: WeightsLike = None,
    levels: Optional[Sequence[Hashable]] = None,
    *,
    settings: Optional[FitSettings] = None,
    verbose: bool = False,
) -> FittedModel:
    """Build the typed table, encode the categories and fit the ordered probit.

    This is the shared first half of every public call, exposed so that the
    fit can be inspected (e.g. `fit_percentile_model(...).summary()`).
    """
    table = build_observation_table(data, categorical_var, continuous_var, weights)
    if verbose:
        print(f"[ordinal_percentiles] {len(table)} usable rows ({table.n_dropped} dropped for missing values)")
    encoded = encode_categories(table, levels)
    if verbose:
        counts = dict(zip(encoded.levels, encoded.counts().tolist()))
        print(f"[ordinal_percentiles] Level counts: {counts}")
    w = table.weights()
    return fit_ordered_probit(
        table.continuous(),
        encoded.ranks,
        encoded.n_levels,
        None if np.all(w == 1.0) else w,
        levels=encoded.levels,
        settings=settings,
        verbose=verbose,
    )


def estimate_percentile_difference(
    data: TableLike,
    categorical_var: str,
    continuous_var: str,
    percentiles: Sequence[float] = DEFAULT_PERCENTILES,
    weights: WeightsLike = None,
    levels: Optional[Sequence[Hashable]] = None,
    *,
    settings: Optional[FitSettings] = None,
    verbose: bool = False,
) -> PercentileDifference:
    """Difference in the continuous variable between two latent percentiles.

    Returns PercentileDifference(difference, standard_error) with
    difference = estimate(percentiles[0]) - estimate(percentiles[1]); the
    standard error accounts for the covariance between the two estimates.
    """
    first, second = _percentile_pair(percentiles)
    model = fit_percentile_model(
        data, categorical_var, continuous_var, weights, levels, settings=settings, verbose=verbose
    )
    result = percentile_difference(model, first, second, settings=settings)
    if verbose:
        print(f"[ordinal_percentiles] P{first} - P{second} = {result.difference:.6f} "
              f"(se {result.standard_error:.6f})")
    return result


def estimate_percentile_difference_table(
    data: TableLike,
    categorical_var: str,
    continuous_var: str,
    percentiles: Sequence[float] = DEFAULT_PERCENTILES,
    weights: WeightsLike = None,
    levels: Optional[Sequence[Hashable]] = None,
    *,
    settings: Optional[FitSettings] = None,
    verbose: bool = False,
) -> pd.DataFrame:
    """Same as estimate_percentile_difference, as a one-row DataFrame."""
    result = estimate_percentile_difference(
        data, categorical_var, continuous_var, percentiles, weights, levels, settings=settings, verbose=verbose
    )
    return difference_table(result)


def estimate_percentile_distribution(
    data: TableLike,
    categorical_var: str,
    continuous_var: str,
    weights: WeightsLike = None,
    levels: Optional[Sequence[Hashable]] = None,
    granularity: Granularity = DEFAULT_GRANULARITY,
    *,
    settings: Optional[FitSettings] = None,
    verbose: bool = False,
) -> List[PercentileEstimate]:
    """Percentile-to-value mapping with standard errors.

    granularity: integer step (default 1 -> percentiles 1..99) or an explicit
    sequence of percentiles in (0, 100). Rows are ordered by percentile.
    Percentiles beyond the outermost cutpoints are extrapolated (finite, low
    confidence).
    """
    grid = percentile_grid(granularity)
    model = fit_percentile_model(
        data, categorical_var, continuous_var, weights, levels, settings=settings, verbose=verbose
    )
    if verbose:
        print(f"[ordinal_percentiles] Evaluating {len(grid)} percentiles...")
    return distribution_rows(estimate_percentiles(model, grid, settings=settings))


def estimate_percentile_distribution_table(
    data: TableLike,
    categorical_var: str,
    continuous_var: str,
    weights: WeightsLike = None,
    levels: Optional[Sequence[Hashable]] = None,
    granularity: Granularity = DEFAULT_GRANULARITY,
    *,
    settings: Optional[FitSettings] = None,
    verbose: bool = False,
) -> pd.DataFrame:
    """Same as estimate_percentile_distribution, as a DataFrame."""
    rows = estimate_percentile_distribution(
        data, categorical_var, continuous_var, weights, levels, granularity, settings=settings, verbose=verbose
    )
    return distribution_table(rows)


__all__ = [
    "estimate_percentile_difference",
    "estimate_percentile_difference_table",
    "estimate_percentile_distribution",
    "estimate_percentile_distribution_table",
    "fit_percentile_model",
]
