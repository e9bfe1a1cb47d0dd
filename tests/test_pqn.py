import logging
import warnings

import numpy as np
import pandas as pd
import pytest

from imsalign.config import PQNConfig
from imsalign.errors import InsufficientSamplesWarning, SingleSampleWarning
from imsalign.pqn import pqn, area_factors, drop_unassigned, normalize_peak_table, peak_table_matrix


X_SMALL = np.array([[10.0, 20.0, 30.0], [20.0, 40.0, 90.0]])


def test_worked_example():
    with pytest.warns(InsufficientSamplesWarning):
        result = pqn(X_SMALL)

    np.testing.assert_allclose(result.area_factor, [60 / 105, 150 / 105])
    np.testing.assert_allclose(result.dilution_factor, [10 / 9, 8 / 9])
    np.testing.assert_allclose(
        result.normalized, [[15.75, 31.5, 47.25], [15.75, 31.5, 70.875]]
    )
    np.testing.assert_allclose(result.norm_factor, result.area_factor * result.dilution_factor)


def test_row_sums_scale_with_factors():
    with pytest.warns(InsufficientSamplesWarning):
        result = pqn(X_SMALL)

    np.testing.assert_allclose(
        result.normalized.sum(axis=1) * result.norm_factor, X_SMALL.sum(axis=1)
    )
    assert np.all(np.isfinite(result.normalized))
    assert np.all(result.normalized >= 0)
    assert result.normalized.shape == X_SMALL.shape


def test_single_sample_is_unchanged():
    X = np.array([[3.0, 5.0, 7.0]])
    with pytest.warns(SingleSampleWarning):
        result = pqn(X)

    np.testing.assert_array_equal(result.normalized, X)
    np.testing.assert_array_equal(result.norm_factor, [1.0])
    assert len(result.warnings) == 1
    assert isinstance(result.warnings[0], SingleSampleWarning)


def test_no_warning_with_enough_samples():
    rng = np.random.default_rng(0)
    X = rng.uniform(1, 100, size=(12, 8))
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        result = pqn(X)
    assert result.warnings == ()


def test_min_samples_configurable():
    with pytest.warns(InsufficientSamplesWarning):
        pqn(np.ones((4, 3)), min_samples=5)
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        pqn(np.ones((4, 3)), min_samples=4)


@pytest.mark.parametrize("n_samples", [2, 7, 12])
def test_area_factor_median_is_one(n_samples):
    rng = np.random.default_rng(n_samples)
    X = rng.uniform(0, 50, size=(n_samples, 6))
    assert np.median(area_factors(X)) == pytest.approx(1.0)


def test_area_normalized_matrix_has_unit_factors():
    rng = np.random.default_rng(3)
    X = rng.uniform(0, 50, size=(9, 5))
    area_normalized = X / area_factors(X)[:, np.newaxis]
    np.testing.assert_allclose(area_factors(area_normalized), 1.0)


def test_dilution_is_recovered():
    rng = np.random.default_rng(1)
    base = rng.uniform(10, 100, size=20)
    dilution = np.array([0.5, 1.0, 2.0, 1.0, 4.0, 1.0, 0.25, 1.0, 1.0, 1.0, 3.0])
    X = dilution[:, np.newaxis] * base
    result = pqn(X)
    np.testing.assert_allclose(result.normalized, np.tile(result.normalized[1], (11, 1)))


def test_zero_median_columns_stay_finite():
    X = np.array([[0.0, 1.0, 2.0], [0.0, 2.0, 2.0], [5.0, 1.0, 3.0]])
    with pytest.warns(InsufficientSamplesWarning):
        result = pqn(X)
    assert np.all(np.isfinite(result.normalized))
    assert np.all(np.isfinite(result.norm_factor))


def test_missing_values_rejected():
    X = np.array([[1.0, np.nan], [2.0, 3.0]])
    with pytest.raises(ValueError, match="impute"):
        pqn(X)


def test_negative_values_rejected():
    with pytest.raises(ValueError, match="negative"):
        pqn(np.array([[1.0, -1.0], [2.0, 3.0]]))


def test_empty_rejected():
    with pytest.raises(ValueError):
        pqn(np.empty((0, 3)))


def test_dataframe_in_dataframe_out():
    table = pd.DataFrame(X_SMALL, index=["s1", "s2"], columns=["c1", "c2", "c3"])
    with pytest.warns(InsufficientSamplesWarning):
        result = pqn(table)

    assert isinstance(result.normalized, pd.DataFrame)
    assert list(result.normalized.index) == ["s1", "s2"]
    assert list(result.normalized.columns) == ["c1", "c2", "c3"]
    assert result.norm_factor.index.tolist() == ["s1", "s2"]
    assert result.normalized.loc["s2", "c3"] == pytest.approx(70.875)


def test_drop_unassigned():
    table = pd.DataFrame({"NA": [1.0, 2.0], "c1": [3.0, 4.0]})
    assert list(drop_unassigned(table).columns) == ["c1"]
    assert list(drop_unassigned(table, exclude=()).columns) == ["NA", "c1"]


def test_normalize_peak_table_excludes_unassigned():
    table = pd.DataFrame(X_SMALL, columns=["c1", "c2", "c3"])
    table["NA"] = [1000.0, 0.0]
    with pytest.warns(InsufficientSamplesWarning):
        result = normalize_peak_table(table, PQNConfig(min_samples=10))

    assert "NA" not in result.normalized.columns
    np.testing.assert_allclose(result.normalized.to_numpy()[0], [15.75, 31.5, 47.25])


def test_peak_table_matrix():
    peaks = pd.DataFrame(
        {
            "SampleID": ["a", "a", "a", "b"],
            "Cluster": ["c1", "c1", "c2", "c2"],
            "Intensity": [1.0, 2.0, 5.0, 4.0],
        }
    )
    table = peak_table_matrix(peaks)
    assert table.loc["a", "c1"] == 3.0
    assert table.loc["b", "c2"] == 4.0
    assert np.isnan(table.loc["b", "c1"])


def test_mostly_empty_samples_rejected():
    X = np.array([[0.0, 0.0], [0.0, 0.0], [1.0, 2.0]])
    with pytest.raises(ValueError, match="zero"):
        area_factors(X)
    with pytest.raises(ValueError, match="zero"):
        pqn(X)


def test_empty_sample_gets_zero_factor(caplog):
    X = np.array([[0.0, 0.0], [1.0, 2.0], [2.0, 4.0]])
    with caplog.at_level(logging.WARNING, logger="imsalign.pqn"):
        with pytest.warns(InsufficientSamplesWarning):
            result = pqn(X)

    assert result.norm_factor[0] == 0
    assert np.all(np.isfinite(result.norm_factor))
    assert np.all(np.isfinite(result.normalized[1:]))
    np.testing.assert_allclose(result.normalized[1:], [[1.0, 2.0], [1.0, 2.0]])
    assert "Normalization factor is zero" in caplog.text
