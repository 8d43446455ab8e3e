"""Tests for the percentile transform, percentile differences and result formatting."""

from __future__ import annotations

import math

import numpy as np
import pandas as pd
import pytest
from scipy.stats import norm

from ordinal_percentiles.config import FitSettings
from ordinal_percentiles.errors import ConvergenceError, InvalidPercentileError
from ordinal_percentiles.formatting import (
    difference_table,
    distribution_rows,
    distribution_table,
    percentile_grid,
)
from ordinal_percentiles.ordered_probit import FittedModel, fit_ordered_probit
from ordinal_percentiles.percentiles import (
    PercentileDifference,
    PercentileEstimate,
    estimate_percentile,
    estimate_percentiles,
    percentile_difference,
    percentile_gradient,
    validate_percentile,
)


def _model(thresholds, slope, covariance, shares, variance=1.0) -> FittedModel:
    k = len(thresholds) + 1
    return FittedModel(
        levels=tuple(range(1, k + 1)),
        thresholds=thresholds,
        slope=slope,
        covariance=covariance,
        cumulative_shares=shares,
        continuous_mean=0.0,
        continuous_variance=variance,
        n_obs=100,
        log_likelihood=-100.0,
        n_iter=5,
    )


@pytest.fixture
def four_level_model() -> FittedModel:
    # threshold z positions are exactly -1, 0, 1
    return _model([-1.0, 0.0, 2.0], 2.0, 0.01 * np.eye(4), [norm.cdf(-1.0), 0.5, norm.cdf(1.0)])


@pytest.fixture
def two_level_model() -> FittedModel:
    # s = sqrt(2^2 * 0.75 + 1) = 2
    return _model([0.5], 2.0, np.diag([0.04, 0.01]), [0.5], variance=0.75)


@pytest.fixture
def fitted_model() -> FittedModel:
    rng = np.random.default_rng(21)
    x = rng.standard_normal(1200)
    ranks = np.searchsorted([-0.8, 0.0, 0.9], 1.2 * x + rng.standard_normal(1200)) + 1
    return fit_ordered_probit(x, ranks, 4)


# ---------------------------------------------------------------------------
# Transform on hand-built models


def test_median_falls_on_middle_threshold(four_level_model) -> None:
    est = estimate_percentile(four_level_model, 50)
    assert est.percentile == 50
    assert est.estimate == pytest.approx(0.0, abs=1e-12)
    # only d/d alpha_2 = 1/beta is non-zero
    assert est.standard_error == pytest.approx(0.05)


def test_interpolates_between_bracketing_thresholds(four_level_model) -> None:
    est = estimate_percentile(four_level_model, 100 * norm.cdf(0.5))
    assert est.estimate == pytest.approx(0.5)
    # grad = [0, 1/4, 1/4, -1/4]
    assert est.standard_error == pytest.approx(math.sqrt(0.001875))


def test_extrapolates_beyond_outer_thresholds(four_level_model) -> None:
    upper = estimate_percentile(four_level_model, 100 * norm.cdf(2.0))
    lower = estimate_percentile(four_level_model, 100 * norm.cdf(-2.0))
    assert upper.estimate == pytest.approx(2.0)
    assert lower.estimate == pytest.approx(-1.0)
    assert np.isfinite(upper.standard_error) and np.isfinite(lower.standard_error)


def test_two_levels_use_latent_scale(two_level_model) -> None:
    est = estimate_percentile(two_level_model, 100 * norm.cdf(1.0))
    assert est.estimate == pytest.approx(1.25)
    # grad = [1/beta, Var(x) dz / s - a / beta^2] = [0.5, -0.25]
    assert est.standard_error == pytest.approx(math.sqrt(0.010625))


def test_two_level_median_at_threshold_location(two_level_model) -> None:
    est = estimate_percentile(two_level_model, 50)
    assert est.estimate == pytest.approx(two_level_model.threshold_locations()[0])


def test_negative_slope_mirrors_the_curve(four_level_model) -> None:
    flipped = _model([-1.0, 0.0, 2.0], -2.0, 0.01 * np.eye(4), [norm.cdf(-1.0), 0.5, norm.cdf(1.0)])
    grid = [5, 25, 50, 75, 95]
    rows = estimate_percentiles(flipped, grid)
    values = [r.estimate for r in rows]
    assert values == sorted(values)
    for row, p in zip(rows, grid):
        mirror = estimate_percentile(four_level_model, 100 - p)
        assert row.estimate == pytest.approx(-mirror.estimate, abs=1e-12)
        assert row.standard_error == pytest.approx(mirror.standard_error)


@pytest.mark.parametrize("p", [3, 40, 97])
def test_negative_slope_gradient_matches_numerical(p) -> None:
    model = _model([-0.3, 0.4], -0.7, np.eye(3), [0.35, 0.7], variance=2.0)
    _, g_a = percentile_gradient(model, p)
    _, g_n = percentile_gradient(model, p, method="numerical")
    np.testing.assert_allclose(g_a, g_n, rtol=1e-5, atol=1e-7)


def test_zero_slope_rejected() -> None:
    model = _model([-0.5, 0.5], 0.0, np.eye(3), [0.3, 0.7])
    with pytest.raises(ConvergenceError):
        estimate_percentile(model, 50)


@pytest.mark.parametrize("p", [0, 100, -5, 150, float("nan"), float("inf"), True, "50", None])
def test_invalid_percentiles(four_level_model, p) -> None:
    with pytest.raises(InvalidPercentileError):
        estimate_percentile(four_level_model, p)


def test_validate_percentile_accepts_interior_values() -> None:
    assert validate_percentile(0.5) == 0.5
    assert validate_percentile(np.int64(99)) == 99.0


# ---------------------------------------------------------------------------
# Gradients


@pytest.mark.parametrize("p", [2, 15, 50, 77.5, 98])
def test_analytic_gradient_matches_numerical(fitted_model, p) -> None:
    v_a, g_a = percentile_gradient(fitted_model, p, method="analytic")
    v_n, g_n = percentile_gradient(fitted_model, p, method="numerical")
    assert v_a == pytest.approx(v_n)
    np.testing.assert_allclose(g_a, g_n, rtol=1e-5, atol=1e-7)


@pytest.mark.parametrize("p", [5, 50, 95])
def test_two_level_gradient_matches_numerical(two_level_model, p) -> None:
    _, g_a = percentile_gradient(two_level_model, p)
    _, g_n = percentile_gradient(two_level_model, p, method="numerical")
    np.testing.assert_allclose(g_a, g_n, rtol=1e-5, atol=1e-7)


def test_numerical_settings_give_close_standard_errors(fitted_model) -> None:
    exact = estimate_percentile(fitted_model, 30)
    approx = estimate_percentile(fitted_model, 30, settings=FitSettings(gradient="numerical"))
    assert approx.estimate == pytest.approx(exact.estimate)
    assert approx.standard_error == pytest.approx(exact.standard_error, rel=1e-5)


def test_unknown_gradient_method(four_level_model) -> None:
    with pytest.raises(ValueError):
        percentile_gradient(four_level_model, 50, method="symbolic")


# ---------------------------------------------------------------------------
# Shape of the percentile curve on a fitted model


def test_estimates_increase_with_percentile(fitted_model) -> None:
    rows = estimate_percentiles(fitted_model, range(1, 100))
    values = np.array([r.estimate for r in rows])
    assert np.all(np.diff(values) > 0)
    ses = np.array([r.standard_error for r in rows])
    assert np.all(np.isfinite(ses)) and np.all(ses >= 0)


def test_two_level_fit_curve_is_finite_and_increasing() -> None:
    rng = np.random.default_rng(22)
    x = rng.standard_normal(800)
    ranks = (0.9 * x + rng.standard_normal(800) > 0.1).astype(int) + 1
    model = fit_ordered_probit(x, ranks, 2)
    rows = estimate_percentiles(model, [1, 10, 50, 90, 99])
    values = [r.estimate for r in rows]
    assert values == sorted(values)
    assert all(np.isfinite(r.standard_error) and r.standard_error > 0 for r in rows)


# ---------------------------------------------------------------------------
# Differences


def test_difference_keeps_cross_covariance() -> None:
    cov = np.array(
        [
            [0.020, 0.005, 0.002, -0.001],
            [0.005, 0.030, 0.004, 0.002],
            [0.002, 0.004, 0.025, 0.003],
            [-0.001, 0.002, 0.003, 0.010],
        ]
    )
    model = _model([-1.0, 0.0, 2.0], 2.0, cov, [norm.cdf(-1.0), 0.5, norm.cdf(1.0)])
    v1, g1 = percentile_gradient(model, 90)
    v2, g2 = percentile_gradient(model, 10)
    var = g1 @ cov @ g1 + g2 @ cov @ g2 - 2.0 * g1 @ cov @ g2

    result = percentile_difference(model, 90, 10)
    assert isinstance(result, PercentileDifference)
    assert result.difference == pytest.approx(v1 - v2)
    assert result.standard_error == pytest.approx(math.sqrt(var))


def test_difference_is_antisymmetric(fitted_model) -> None:
    forward = percentile_difference(fitted_model, 75, 25)
    backward = percentile_difference(fitted_model, 25, 75)
    assert forward.difference > 0
    assert backward.difference == pytest.approx(-forward.difference)
    assert backward.standard_error == pytest.approx(forward.standard_error)


def test_difference_matches_individual_estimates(fitted_model) -> None:
    hi = estimate_percentile(fitted_model, 90)
    lo = estimate_percentile(fitted_model, 10)
    diff = percentile_difference(fitted_model, 90, 10)
    assert diff.difference == pytest.approx(hi.estimate - lo.estimate)


def test_equal_percentiles_rejected(four_level_model) -> None:
    with pytest.raises(InvalidPercentileError):
        percentile_difference(four_level_model, 50, 50.0)


# ---------------------------------------------------------------------------
# Grids and tables


def test_default_grid() -> None:
    assert percentile_grid() == list(range(1, 100))
    assert percentile_grid(10) == [10, 20, 30, 40, 50, 60, 70, 80, 90]
    assert percentile_grid(99) == [99]


def test_explicit_grid_sorted_and_deduplicated() -> None:
    assert percentile_grid([75, 25, 50, 25.0]) == [25.0, 50, 75]
    assert percentile_grid(iter([5, 95])) == [5, 95]


@pytest.mark.parametrize("granularity", [0, 100, -1, True, [], [0, 50], [50, 100]])
def test_invalid_grids(granularity) -> None:
    with pytest.raises(InvalidPercentileError):
        percentile_grid(granularity)


def test_tables() -> None:
    diff = difference_table(PercentileDifference(1.5, 0.25))
    assert list(diff.columns) == ["difference", "standard_error"]
    assert diff.shape == (1, 2)
    assert diff.loc[0, "difference"] == 1.5

    rows = [PercentileEstimate(90, 2.0, 0.2), PercentileEstimate(10, -2.0, 0.2), PercentileEstimate(50, 0.0, 0.1)]
    assert [r.percentile for r in distribution_rows(rows)] == [10, 50, 90]
    table = distribution_table(rows)
    assert list(table.columns) == ["percentile", "estimate", "standard_error"]
    pd.testing.assert_series_equal(
        table["estimate"], pd.Series([-2.0, 0.0, 2.0], name="estimate"), check_dtype=False
    )
