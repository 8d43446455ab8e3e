"""
Result assembly for the public calls.

No computation happens here: percentile grids are built and validated, and
the NamedTuple results of the estimators are reshaped into records or pandas
DataFrames.
"""

from __future__ import annotations

from numbers import Integral
from typing import Dict, Iterable, List, Sequence, Union

import pandas as pd

from .errors import InvalidPercentileError
from .percentiles.difference import PercentileDifference
from .percentiles.transform import PercentileEstimate, validate_percentile

Granularity = Union[int, Sequence[float]]


def percentile_grid(granularity: Granularity = 1) -> List[float]:
    """Percentiles for a distribution call.

    - integer step s in 1..99: s, 2s, ... below 100 (1 -> 1..99, 10 -> 10..90).
      0 and 100 are never included: they sit at -inf / +inf in probit space.
    - explicit sequence: each value validated, duplicates removed, sorted.
    """
    if isinstance(granularity, bool):
        raise InvalidPercentileError("granularity must be an integer step or a sequence of percentiles")
    if isinstance(granularity, Integral):
        step = int(granularity)
        if not 1 <= step <= 99:
            raise InvalidPercentileError(f"granularity step must be between 1 and 99, got {step}")
        return list(range(step, 100, step))
    values = list(granularity)
    for p in values:
        validate_percentile(p)
    if not values:
        raise InvalidPercentileError("at least one percentile must be requested")
    # keep the caller's values (ints stay ints) but order and dedupe by numeric value
    unique = {float(p): p for p in values}
    return [unique[k] for k in sorted(unique)]


def difference_record(result: PercentileDifference) -> Dict[str, float]:
    return {"difference": float(result.difference), "standard_error": float(result.standard_error)}


def difference_table(result: PercentileDifference) -> pd.DataFrame:
    """One-row DataFrame with columns difference, standard_error."""
    return pd.DataFrame([difference_record(result)], columns=list(PercentileDifference._fields))


def distribution_rows(estimates: Iterable[PercentileEstimate]) -> List[PercentileEstimate]:
    """Rows ordered by percentile."""
    return sorted(estimates, key=lambda row: float(row.percentile))


def distribution_table(estimates: Iterable[PercentileEstimate]) -> pd.DataFrame:
    """DataFrame with columns percentile, estimate, standard_error (one row per percentile)."""
    rows = distribution_rows(estimates)
    return pd.DataFrame([row._asdict() for row in rows], columns=list(PercentileEstimate._fields))


__all__ = [
    "difference_record",
    "difference_table",
    "distribution_rows",
    "distribution_table",
    "percentile_grid",
]
