"""
Test Suite for EDA Module
==========================
"""

import pytest
import numpy as np
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gold_report.eda import summarize_columns, generate_eda_report, generate_model_figures


def test_summarize_columns():
    df = pd.DataFrame({
        'country': pd.Categorical(['World', 'World', 'Chile', 'Chile']),
        'gdp': [1.0, 2.0, np.nan, 4.0],
    })
    summary = summarize_columns(df)

    assert list(summary.index) == ['country', 'gdp']
    assert summary.loc['gdp', 'missing'] == 1
    assert summary.loc['gdp', 'completeness'] == 0.75
    assert summary.loc['gdp', 'max'] == 4.0
    assert np.isnan(summary.loc['country', 'mean'])


def test_generate_eda_report():
    tables = {'a': pd.DataFrame({'x': [1, 2]}), 'b': pd.DataFrame({'y': [1.0], 'z': [2.0]})}
    report = generate_eda_report(tables)

    assert report['shapes'] == {'a': (2, 1), 'b': (1, 2)}
    assert set(report['summaries']) == {'a', 'b'}


def test_generate_model_figures(tmp_path):
    np.random.seed(42)
    years = np.arange(2000, 2012)
    joined = pd.DataFrame({
        'year': years,
        'gdp': np.linspace(30, 60, 12),
        'gold_price': np.linspace(280, 1600, 12) + np.random.randn(12) * 20,
    })
    gold_mid = pd.DataFrame({
        'date': pd.date_range('2000-01-01', periods=40, freq='MS'),
        'gold_price': np.linspace(280, 400, 40),
    })
    corr = joined[['gdp', 'gold_price']].corr()

    figures = generate_model_figures(gold_mid, joined, corr, ['gdp'], output_dir=str(tmp_path), animate=True)

    assert figures[-1] == "06_gold_price.gif"
    assert "05_target_scatter.png" in figures
    for name in figures:
        assert (tmp_path / name).exists()
