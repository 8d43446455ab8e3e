"""Shared simulated datasets for the test suite."""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd
import pytest

EDUC_LEVELS = ["primary", "secondary", "college", "graduate"]


def simulate_brackets(
    n: int,
    cuts: Sequence[float] = (-0.5, 0.3, 1.0),
    labels: Sequence[str] = EDUC_LEVELS,
    rho: float = 0.8,
    seed: int = 0,
    loc: float = 50.0,
    scale: float = 10.0,
    ordered: bool = True,
) -> pd.DataFrame:
    """Latent U ~ N(0, 1) cut into brackets; score = loc + scale * (rho U + sqrt(1 - rho^2) e)."""
    rng = np.random.default_rng(seed)
    latent = rng.standard_normal(n)
    noise = rng.standard_normal(n)
    score = loc + scale * (rho * latent + np.sqrt(1.0 - rho ** 2) * noise)
    codes = np.searchsorted(np.asarray(cuts), latent)
    values = [labels[c] for c in codes]
    if ordered:
        educ = pd.Categorical(values, categories=list(labels), ordered=True)
    else:
        educ = values
    return pd.DataFrame({"educ": educ, "score": score, "w": rng.uniform(0.5, 2.0, size=n)})


@pytest.fixture
def bracket_data() -> pd.DataFrame:
    return simulate_brackets(1500, seed=11)


@pytest.fixture
def two_level_data() -> pd.DataFrame:
    return simulate_brackets(1000, cuts=(0.0,), labels=["low", "high"], seed=5, loc=0.0, scale=1.0)
