"""
Test Suite for Collinearity Module
===================================
"""

import pytest
import numpy as np
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gold_report.collinearity import find_correlated, reduce_predictors
from gold_report.correlation import correlation_matrix


def _matrix(names, values):
    return pd.DataFrame(np.array(values, dtype=float), index=names, columns=names)


class TestFindCorrelated:
    """Tests for the greedy collinearity filter."""

    def test_one_member_of_pair_dropped(self):
        corr = _matrix(['a', 'b', 'c'], [
            [1.0, 0.95, 0.2],
            [0.95, 1.0, 0.4],
            [0.2, 0.4, 1.0],
        ])
        dropped = find_correlated(corr, cutoff=0.9)

        # b has the larger mean |r|
        assert dropped == ['b']

    def test_nothing_above_cutoff(self):
        corr = _matrix(['a', 'b'], [[1.0, 0.9], [0.9, 1.0]])

        assert find_correlated(corr, cutoff=0.9) == []

    def test_undefined_correlation_ignored(self):
        corr = _matrix(['a', 'b', 'c'], [
            [1.0, np.nan, 0.1],
            [np.nan, np.nan, np.nan],
            [0.1, np.nan, 1.0],
        ])

        assert find_correlated(corr) == []

    def test_retained_pairs_below_cutoff(self):
        np.random.seed(42)
        base = np.random.randn(60, 3)
        data = pd.DataFrame({
            'a': base[:, 0],
            'a_copy': base[:, 0] + np.random.randn(60) * 0.05,
            'b': base[:, 1],
            'b_copy': base[:, 1] * -1 + np.random.randn(60) * 0.05,
            'b_again': base[:, 1] + np.random.randn(60) * 0.05,
            'c': base[:, 2],
        })
        corr = correlation_matrix(data)
        dropped = find_correlated(corr, cutoff=0.9)
        retained = [col for col in corr.columns if col not in dropped]

        sub = corr.loc[retained, retained].abs().values
        off_diagonal = sub[~np.eye(len(retained), dtype=bool)]
        assert (off_diagonal <= 0.9).all()
        assert len(dropped) == 3
        assert 'c' in retained

    def test_requires_square_matrix(self):
        corr = pd.DataFrame([[1.0, 0.5]], index=['a'], columns=['a', 'b'])

        with pytest.raises(ValueError, match="square"):
            find_correlated(corr)


class TestReducePredictors:
    """Tests for predictor reduction on the joined table."""

    @pytest.fixture
    def joined(self):
        np.random.seed(0)
        n = 30
        trend = np.linspace(0, 1, n)
        return pd.DataFrame({
            'year': np.arange(1990, 1990 + n),
            'gdp': trend + np.random.randn(n) * 0.02,
            'gdp_per_capita': trend + np.random.randn(n) * 0.02,
            'noise': np.random.randn(n),
            'sp500': trend + np.random.randn(n) * 0.5,
            'gold_price': 300 + 1000 * trend + np.random.randn(n) * 20,
        })

    def test_target_and_year_never_candidates(self, joined):
        result = reduce_predictors(joined)

        assert 'gold_price' not in result['retained'] + result['dropped']
        assert 'year' not in result['retained'] + result['dropped']

    def test_collinear_pair_reduced(self, joined):
        result = reduce_predictors(joined)

        assert len({'gdp', 'gdp_per_capita'} & set(result['dropped'])) == 1
        assert set(result['retained']) | set(result['dropped']) == {'gdp', 'gdp_per_capita', 'noise', 'sp500'}

    def test_selection_by_target_correlation(self, joined):
        result = reduce_predictors(joined, threshold=0.6)

        assert 'noise' not in result['selected']
        strengths = result['target_correlation'].abs().loc[result['selected']]
        assert (strengths > 0.6).all()
        assert list(strengths) == sorted(strengths, reverse=True)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
