"""
Category encoding for the ordered categorical variable.

Maps category labels to consecutive integer ranks 1..K following a declared
ordering, and builds the cumulative indicator design used by the ordinal
fit: for each cutpoint j = 1..K-1 the binary outcome z_j = 1 if rank > j,
else 0.

Ordering rules
- An explicit `levels` sequence always wins.
- Otherwise the ordering carried by the ObservationTable (an ordered pandas
  Categorical upstream) is used.
- Otherwise the ordering cannot be inferred and OrderingError is raised; we
  never fall back to alphabetical or numeric sorting.

Declared levels that never occur in the data are dropped (with a warning),
so that every rank 1..K is observed and every cutpoint has data on both
sides.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Dict, Hashable, Optional, Sequence, Tuple

import numpy as np

from ..data.table import ObservationTable
from ..errors import InsufficientLevelsError, OrderingError, UnknownLevelError


@dataclass(frozen=True)
class EncodedCategories:
    """Ranks and cumulative design for one ObservationTable.

    Attributes
    - levels: observed levels in declared order (length K).
    - ranks: int array of shape (n,), values in 1..K.
    """

    levels: Tuple[Hashable, ...]
    ranks: np.ndarray

    @property
    def n_levels(self) -> int:
        return len(self.levels)

    @property
    def indicators(self) -> np.ndarray:
        """Cumulative binary outcomes, shape (n, K-1); column j-1 is 1{rank > j}."""
        cut = np.arange(1, self.n_levels)
        return (self.ranks[:, None] > cut[None, :]).astype(int)

    def counts(self) -> np.ndarray:
        """Number of observations per level, in level order."""
        return np.bincount(self.ranks - 1, minlength=self.n_levels)

    def cumulative_shares(self, weights: Optional[np.ndarray] = None) -> np.ndarray:
        """Weighted share of observations with rank <= j, for j = 1..K-1."""
        n = self.ranks.shape[0]
        w = np.ones(n, dtype=float) if weights is None else np.asarray(weights, dtype=float)
        below = 1 - self.indicators
        return (w @ below) / np.sum(w)


def resolve_levels(table: ObservationTable, levels: Optional[Sequence[Hashable]] = None) -> Tuple[Hashable, ...]:
    """Return the declared category ordering for `table`.

    Raises OrderingError if no ordering is supplied or inferable, or if the
    ordering repeats a label.
    """
    if levels is not None:
        ordered = tuple(levels)
    elif table.levels is not None:
        ordered = tuple(table.levels)
    else:
        raise OrderingError(
            "No category ordering available. Pass levels=[...] explicitly or give the "
            "categorical column an ordered pandas Categorical dtype."
        )
    if len(set(ordered)) != len(ordered):
        dupes = sorted({str(v) for v in ordered if ordered.count(v) > 1})
        raise OrderingError(f"levels contains duplicated labels: {dupes}")
    return ordered


def encode_categories(
    table: ObservationTable, levels: Optional[Sequence[Hashable]] = None
) -> EncodedCategories:
    """Encode the categorical column of `table` as ranks 1..K.

    Raises
    - OrderingError: ordering missing or malformed.
    - UnknownLevelError: a value is absent from the ordering.
    - InsufficientLevelsError: fewer than 2 distinct levels observed.
    """
    ordered = resolve_levels(table, levels)
    position: Dict[Hashable, int] = {lvl: i for i, lvl in enumerate(ordered)}

    values = table.categorical()
    unknown = []
    for v in values:
        if v not in position and v not in unknown:
            unknown.append(v)
    if unknown:
        raise UnknownLevelError(f"Categories {unknown} are not in the declared ordering {list(ordered)}")

    idx = np.array([position[v] for v in values], dtype=int)
    observed = np.unique(idx)
    if observed.size < 2:
        raise InsufficientLevelsError(
            f"At least 2 distinct category levels are required, observed {observed.size}"
        )

    if observed.size < len(ordered):
        seen = set(observed.tolist())
        missing = [ordered[i] for i in range(len(ordered)) if i not in seen]
        warnings.warn(
            f"Levels {missing} are declared but never observed; they are dropped from the ordering."
        )

    # dense re-ranking over observed levels keeps declared order
    dense = {int(old): new for new, old in enumerate(observed, start=1)}
    ranks = np.array([dense[int(i)] for i in idx], dtype=int)
    kept = tuple(ordered[int(i)] for i in observed)
    return EncodedCategories(levels=kept, ranks=ranks)


__all__ = [
    "EncodedCategories",
    "encode_categories",
    "resolve_levels",
]
