"""
Typed observation table used at the boundary of the estimation core.

Callers hand the public functions a pandas DataFrame or a sequence of
row mappings. Both are converted here into an `ObservationTable`: an
immutable, ordered sequence of fixed-shape `Observation` records. Nothing
downstream of this module touches a DataFrame.

Conversion rules
- Rows with a missing categorical or continuous value (None, NaN, pandas NA)
  are dropped, together with their weight.
- Weights are validated on the full input (before dropping rows): one entry
  per row, finite and strictly positive. Violations raise WeightError.
- When the categorical column of a DataFrame has an ordered pandas
  CategoricalDtype, its categories are kept as the declared level ordering.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Hashable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..errors import WeightError


@dataclass(frozen=True)
class Observation:
    """One usable row: category label, continuous measurement and weight."""

    categorical_value: Hashable
    continuous_value: float
    weight: float = 1.0


@dataclass(frozen=True)
class ObservationTable:
    """Immutable ordered collection of observations.

    Attributes
    - observations: the usable rows, in input order.
    - levels: category ordering declared upstream (ordered Categorical), or
      None when the source carried no ordering.
    - n_dropped: number of input rows excluded for missing values.
    """

    observations: Tuple[Observation, ...]
    levels: Optional[Tuple[Hashable, ...]] = None
    n_dropped: int = 0

    def __len__(self) -> int:
        return len(self.observations)

    def __iter__(self) -> Iterator[Observation]:
        return iter(self.observations)

    def __getitem__(self, idx: int) -> Observation:
        return self.observations[idx]

    def categorical(self) -> List[Hashable]:
        return [o.categorical_value for o in self.observations]

    def continuous(self) -> np.ndarray:
        return np.array([o.continuous_value for o in self.observations], dtype=float)

    def weights(self) -> np.ndarray:
        return np.array([o.weight for o in self.observations], dtype=float)


TableLike = Union[pd.DataFrame, Sequence[Mapping[str, Any]], ObservationTable]
WeightsLike = Union[None, str, Sequence[float], np.ndarray, pd.Series]


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        missing = pd.isna(value)
    except (TypeError, ValueError):
        return False
    # pd.isna returns an array for list-like input; such values are not missing scalars
    return bool(missing) if np.ndim(missing) == 0 else False


def _as_float(value: Any, name: str) -> float:
    if isinstance(value, (bool, np.bool_)):
        raise TypeError(f"continuous variable '{name}' must be numeric, got a boolean")
    try:
        out = float(value)
    except (TypeError, ValueError) as exc:
        raise TypeError(f"continuous variable '{name}' must be numeric, got {value!r}") from exc
    if not np.isfinite(out):
        raise ValueError(f"continuous variable '{name}' contains a non-finite value ({out})")
    return out


def _validate_weights(weights: Sequence[float], n_rows: int) -> np.ndarray:
    try:
        w = np.asarray(weights, dtype=float).reshape(-1)
    except (TypeError, ValueError) as exc:
        raise WeightError("weights must be numeric") from exc
    if w.shape[0] != n_rows:
        raise WeightError(f"weights must have one entry per row: got {w.shape[0]}, expected {n_rows}")
    if not np.all(np.isfinite(w)):
        raise WeightError("weights must be finite")
    if np.any(w <= 0):
        bad = int(np.sum(w <= 0))
        raise WeightError(f"weights must be strictly positive ({bad} non-positive entries)")
    return w


def _columns_from_frame(
    data: pd.DataFrame, categorical_var: str, continuous_var: str, weights: WeightsLike
) -> Tuple[List[Any], List[Any], Optional[np.ndarray], Optional[Tuple[Hashable, ...]]]:
    for col in (categorical_var, continuous_var):
        if col not in data.columns:
            raise KeyError(f"column '{col}' not found in data")
    cat_series = data[categorical_var]
    levels = None
    if isinstance(cat_series.dtype, pd.CategoricalDtype) and cat_series.cat.ordered:
        levels = tuple(cat_series.cat.categories.tolist())
    if isinstance(weights, str):
        if weights not in data.columns:
            raise KeyError(f"weight column '{weights}' not found in data")
        w = _validate_weights(data[weights].to_numpy(dtype=float), len(data))
    elif weights is not None:
        w = _validate_weights(weights, len(data))
    else:
        w = None
    return cat_series.tolist(), data[continuous_var].tolist(), w, levels


def _columns_from_records(
    data: Sequence[Mapping[str, Any]], categorical_var: str, continuous_var: str, weights: WeightsLike
) -> Tuple[List[Any], List[Any], Optional[np.ndarray], None]:
    rows = list(data)
    cats, conts = [], []
    for i, row in enumerate(rows):
        try:
            cats.append(row[categorical_var])
            conts.append(row[continuous_var])
        except KeyError as exc:
            raise KeyError(f"row {i} has no field {exc.args[0]!r}") from exc
    if isinstance(weights, str):
        try:
            w = _validate_weights([row[weights] for row in rows], len(rows))
        except KeyError as exc:
            raise KeyError(f"weight field '{weights}' missing from at least one row") from exc
    elif weights is not None:
        w = _validate_weights(weights, len(rows))
    else:
        w = None
    return cats, conts, w, None


def build_observation_table(
    data: TableLike,
    categorical_var: str,
    continuous_var: str,
    weights: WeightsLike = None,
) -> ObservationTable:
    """Convert tabular input into an ObservationTable.

    Inputs
    - data: pandas DataFrame, sequence of row mappings, or an ObservationTable
      (returned unchanged unless new weights are supplied; the column names
      are then ignored).
    - categorical_var / continuous_var: names of the two columns.
    - weights: None, a column name, or one positive weight per row of `data`.
    """
    if isinstance(data, ObservationTable):
        if weights is None:
            return data
        if isinstance(weights, str):
            raise WeightError("weights must be a sequence when data is an ObservationTable")
        w = _validate_weights(weights, len(data))
        return ObservationTable(
            observations=tuple(
                Observation(o.categorical_value, o.continuous_value, float(wi)) for o, wi in zip(data, w)
            ),
            levels=data.levels,
            n_dropped=data.n_dropped,
        )

    if isinstance(data, pd.DataFrame):
        cats, conts, w, levels = _columns_from_frame(data, categorical_var, continuous_var, weights)
    else:
        cats, conts, w, levels = _columns_from_records(data, categorical_var, continuous_var, weights)

    observations: List[Observation] = []
    n_dropped = 0
    for i, (c, x) in enumerate(zip(cats, conts)):
        if _is_missing(c) or _is_missing(x):
            n_dropped += 1
            continue
        weight = float(w[i]) if w is not None else 1.0
        observations.append(Observation(c, _as_float(x, continuous_var), weight))

    return ObservationTable(observations=tuple(observations), levels=levels, n_dropped=n_dropped)


__all__ = [
    "Observation",
    "ObservationTable",
    "build_observation_table",
]
