"""Tests for run-pair normalisation."""

import math

import numpy as np
import pandas as pd
import pytest

from robust_fold.config import FoldChangeConfig
from robust_fold.data_io import AbundanceDataset, parse_abundance_table
from robust_fold.normalization import (
    log_ratio,
    normalize_run_pair,
    normalize_run_pairs,
    scale_run,
    summarize_run_pairs,
)


def make_dataset(group_a: dict, group_b: dict, labels=None) -> AbundanceDataset:
    group_a = pd.DataFrame(group_a, dtype=float)
    group_b = pd.DataFrame(group_b, dtype=float)
    if labels is None:
        labels = [f'P{i}' for i in range(len(group_a))]
    return AbundanceDataset(group_a=group_a, group_b=group_b, labels=pd.Series(labels))


class TestElementwise:
    """Tests for log ratio and scaling helpers."""

    def test_log_ratio(self):
        np.testing.assert_allclose(log_ratio([4, 1], [2, 4]), [1.0, -2.0])

    def test_log_ratio_degenerate_is_not_an_error(self):
        result = log_ratio([0.0, -1.0], [1.0, 1.0])
        assert result[0] == -np.inf
        assert np.isnan(result[1])

    def test_scale_run(self):
        np.testing.assert_array_equal(scale_run([1, 2, 3], 2), [2, 4, 6])


class TestNormalizeRunPair:
    """Tests for scaling a single B run onto an A run."""

    def test_two_row_example(self):
        """Log ratios [-1, 0] have MAD 1; neither row is filtered out."""
        text = "Gene,A,B\ngeneA,10,20\ngeneB,5,5\n"
        config = FoldChangeConfig(set_a_columns=(2,), set_b_columns=(3,), gene_column=1)
        dataset = parse_abundance_table(text, config)

        pair = normalize_run_pair(dataset.group_a.iloc[:, 0], dataset.group_b.iloc[:, 0])

        assert pair.n_retained == 2
        assert pair.n_outliers == 0
        assert pair.scale_factor == pytest.approx(2 ** -0.5)
        np.testing.assert_allclose(pair.scaled_b, [20 * 2 ** -0.5, 5 * 2 ** -0.5])
        np.testing.assert_array_equal(pair.raw_a, [10.0, 5.0])

    def test_identical_ratios_zero_mad(self):
        """B is exactly twice A: every ratio is -1, MAD is 0 and all rows are used."""
        a = pd.Series([10.0, 20.0, 40.0, 80.0], name='A')
        b = pd.Series([20.0, 40.0, 80.0, 160.0], name='B')

        pair = normalize_run_pair(a, b)

        assert pair.n_retained == 4
        assert pair.scale_factor == 0.5
        np.testing.assert_array_equal(pair.scaled_b, a.to_numpy())

    @pytest.fixture
    def runs_with_outlier(self):
        ratios = np.array([-1.1, -1.0, -0.9, -1.05, -0.95, 5.0])
        a = pd.Series(np.full(6, 100.0), name='A1')
        b = pd.Series(100.0 / np.power(2.0, ratios), name='B1')
        return a, b

    def test_outlier_excluded_from_mean(self, runs_with_outlier):
        a, b = runs_with_outlier

        pair = normalize_run_pair(a, b)

        assert pair.n_outliers == 1
        assert pair.n_retained == 5
        assert pair.scale_factor == pytest.approx(0.5)

    def test_median_estimator(self, runs_with_outlier):
        a, b = runs_with_outlier

        pair = normalize_run_pair(a, b, use_median=True)

        assert pair.scale_factor == pytest.approx(0.5)
        assert pair.run_a == 'A1'
        assert pair.run_b == 'B1'

    def test_no_rows_gives_nan_factor(self):
        a = pd.Series([], dtype=float, name='A')
        b = pd.Series([], dtype=float, name='B')

        pair = normalize_run_pair(a, b)

        assert math.isnan(pair.scale_factor)
        assert pair.scaled_b.size == 0


class TestNormalizeRunPairs:
    """Tests for the all-pairs normalisation."""

    @pytest.fixture
    def two_by_two(self):
        return make_dataset(
            {'A1': [10.0, 20.0, 30.0], 'A2': [11.0, 19.0, 33.0]},
            {'B1': [5.0, 10.0, 15.0], 'B2': [40.0, 80.0, 120.0]},
        )

    def test_pair_order_a_major(self, two_by_two):
        result = normalize_run_pairs(two_by_two)

        assert [(p.run_a, p.run_b) for p in result.pairs] == [
            ('A1', 'B1'), ('A1', 'B2'), ('A2', 'B1'), ('A2', 'B2'),
        ]

    def test_result_list_alternates_raw_and_scaled(self, two_by_two):
        result = normalize_run_pairs(two_by_two)
        entries = result.result_list()

        assert len(entries) == 2 * 2 * 2
        np.testing.assert_array_equal(entries[0], two_by_two.group_a['A1'])
        np.testing.assert_array_equal(entries[2], two_by_two.group_a['A1'])
        np.testing.assert_array_equal(entries[4], two_by_two.group_a['A2'])
        np.testing.assert_allclose(entries[1], two_by_two.group_a['A1'])
        np.testing.assert_allclose(entries[3], two_by_two.group_a['A1'])

    def test_scaled_b_matches_a_scale(self, two_by_two):
        result = normalize_run_pairs(two_by_two)
        assert result.pairs[0].scale_factor == pytest.approx(2.0)
        assert result.pairs[1].scale_factor == pytest.approx(0.25)

    def test_as_frame_shape(self, two_by_two):
        frame = normalize_run_pairs(two_by_two).as_frame()
        assert frame.shape == (3, 8)

    def test_estimator_recorded(self, two_by_two):
        assert normalize_run_pairs(two_by_two).estimator == 'mean'
        result = normalize_run_pairs(two_by_two, use_median=True)
        assert result.estimator == 'median'
        assert result.method_log


class TestSummarizeRunPairs:
    """Tests for per-pair diagnostics."""

    def test_residual_near_zero_after_scaling(self):
        dataset = make_dataset(
            {'A1': [10.0, 20.0, 40.0, 80.0, 160.0]},
            {'B1': [21.0, 39.0, 80.0, 165.0, 310.0]},
        )

        summary = summarize_run_pairs(normalize_run_pairs(dataset))

        assert list(summary.columns) == [
            'run_a', 'run_b', 'scale_factor', 'n_retained',
            'n_outliers', 'residual_median_log2',
        ]
        assert len(summary) == 1
        assert abs(summary.loc[0, 'residual_median_log2']) < 0.1
