"""
Test Suite for Correlation Module
==================================
"""

import pytest
import numpy as np
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gold_report.correlation import (
    complete_columns,
    correlation_matrix,
    mask_triangle,
    correlation_pairs,
    overview_pairs,
    target_pairs,
    indicator_correlations,
)


@pytest.fixture
def sample_data():
    """Ten rows with known missingness per column."""
    np.random.seed(42)
    base = np.arange(10, dtype=float)
    return pd.DataFrame({
        'year': np.arange(2000, 2010),
        'a': base,
        'b': base * 2 + np.random.randn(10) * 0.1,
        'c': np.random.randn(10),
        'half_missing': [1.0, 2, 3, 4, 5] + [np.nan] * 5,
        'mostly_present': [np.nan] * 4 + [1.0, 3, 2, 5, 4, 6],
        'label': list('abcdefghij'),
    })


class TestCompleteColumns:
    """Tests for the completeness filter."""

    def test_strictly_below_threshold(self, sample_data):
        columns = complete_columns(sample_data, max_missing=0.5)

        assert 'half_missing' not in columns
        assert 'mostly_present' in columns

    def test_only_numeric_and_exclusions(self, sample_data):
        columns = complete_columns(sample_data, exclude=['year'])

        assert 'label' not in columns
        assert 'year' not in columns
        assert columns == ['a', 'b', 'c', 'mostly_present']


class TestCorrelationMatrix:
    """Tests for pairwise-complete correlation."""

    def test_range_and_symmetry(self, sample_data):
        corr = correlation_matrix(sample_data, ['a', 'b', 'c', 'half_missing', 'mostly_present'])
        values = corr.values[~np.isnan(corr.values)]

        assert ((values >= -1) & (values <= 1)).all()
        pd.testing.assert_frame_equal(corr, corr.T)

    def test_pairwise_complete(self, sample_data):
        corr = correlation_matrix(sample_data, ['half_missing', 'mostly_present'])

        # only row 4 is jointly observed
        assert np.isnan(corr.loc['half_missing', 'mostly_present'])
        assert corr.loc['half_missing', 'half_missing'] == pytest.approx(1.0)

    def test_constant_column_is_undefined(self):
        df = pd.DataFrame({'x': [1.0, 2, 3], 'const': [5.0, 5, 5]})
        corr = correlation_matrix(df)

        assert np.isnan(corr.loc['x', 'const'])
        assert np.isnan(corr.loc['const', 'const'])


class TestMaskingAndPairs:
    """Tests for triangle masking and pair reports."""

    @pytest.fixture
    def corr(self):
        names = ['gold_price', 'x', 'y', 'z']
        values = np.array([
            [1.0, 0.95, -0.7, 0.3],
            [0.95, 1.0, 0.65, 0.1],
            [-0.7, 0.65, 1.0, 0.61],
            [0.3, 0.1, 0.61, 1.0],
        ])
        return pd.DataFrame(values, index=names, columns=names)

    def test_lower_triangle(self, corr):
        masked = mask_triangle(corr, lower=True)

        assert np.isnan(np.diag(masked.values)).all()
        assert np.isnan(masked.values[np.triu_indices(4)]).all()
        assert not np.isnan(masked.values[np.tril_indices(4, k=-1)]).any()

    def test_upper_triangle(self, corr):
        masked = mask_triangle(corr, lower=False)

        assert np.isnan(masked.values[np.tril_indices(4)]).all()

    def test_each_pair_once(self, corr):
        pairs = correlation_pairs(corr)

        assert len(pairs) == 6
        keys = {frozenset((a, b)) for a, b in zip(pairs['var1'], pairs['var2'])}
        assert len(keys) == 6

    def test_overview_band(self, corr):
        pairs = overview_pairs(corr, lower=0.6, upper=0.9)
        strength = pairs['correlation'].abs()

        assert ((strength > 0.6) & (strength < 0.9)).all()
        assert len(pairs) == 3
        assert list(strength) == sorted(strength, reverse=True)

    def test_target_pairs_sorted(self, corr):
        pairs = target_pairs(corr, 'gold_price', threshold=0.6)

        assert list(pairs['variable']) == ['x', 'y']
        assert pairs['correlation'].tolist() == [0.95, -0.7]

    def test_unknown_target(self, corr):
        with pytest.raises(ValueError, match="not in the correlation matrix"):
            target_pairs(corr, 'silver')


def test_indicator_correlations_uses_filter(sample_data):
    columns, corr = indicator_correlations(sample_data.drop(columns=['label']))

    assert columns == ['a', 'b', 'c', 'mostly_present']
    assert list(corr.columns) == columns


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
