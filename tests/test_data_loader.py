"""
Test Suite for Data Loader Module
==================================
"""

import pytest
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gold_report.data_loader import (
    load_config,
    load_wdi,
    load_gold,
    load_sp500,
    load_currency,
    load_bitcoin,
    year_columns,
    get_data_summary,
)


@pytest.fixture
def wdi_csv(tmp_path):
    path = tmp_path / "wdi.csv"
    pd.DataFrame({
        'Country Name': ['World'],
        'Country Code': ['WLD'],
        'Indicator Name': ['GDP (current US$)'],
        'Indicator Code': ['NY.GDP.MKTP.CD'],
        '2000': [33.0],
        '2001': [34.0],
    }).to_csv(path, index=False)
    return path


class TestLoaders:
    """Tests for the per-source loaders."""

    def test_load_wdi(self, wdi_csv):
        df = load_wdi(wdi_csv)

        assert year_columns(df) == ['2000', '2001']
        assert df.shape == (1, 6)

    def test_wdi_missing_identifier(self, tmp_path):
        path = tmp_path / "wdi.csv"
        pd.DataFrame({'Country Name': ['World'], '2000': [1.0]}).to_csv(path, index=False)

        with pytest.raises(ValueError, match="WDI: missing required columns"):
            load_wdi(path)

    def test_gold_missing_fixing(self, tmp_path):
        path = tmp_path / "gold.csv"
        pd.DataFrame({'Date': ['2001-01-02'], 'USD (AM)': [270.0]}).to_csv(path, index=False)

        with pytest.raises(ValueError, match="USD \\(PM\\)"):
            load_gold(path)

    def test_sp500(self, tmp_path):
        path = tmp_path / "sp500.csv"
        pd.DataFrame({'Date': ['1990-01-01'], 'SP500': [339.97]}).to_csv(path, index=False)

        assert list(load_sp500(path).columns) == ['Date', 'SP500']

    def test_currency_needs_a_currency(self, tmp_path):
        path = tmp_path / "currency.csv"
        pd.DataFrame({'Date': ['2020-01-01']}).to_csv(path, index=False)

        with pytest.raises(ValueError, match="currency column"):
            load_currency(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_gold(tmp_path / "absent.csv")

    def test_bitcoin_renamed(self, tmp_path):
        path = tmp_path / "price.csv"
        pd.DataFrame({'Timestamp': ['2015-01-01'], 'value': [314.0]}).to_csv(path, index=False)

        tables = load_bitcoin({'market_price': path})
        assert list(tables['market_price'].columns) == ['Timestamp', 'market_price']

    def test_bitcoin_wrong_width(self, tmp_path):
        path = tmp_path / "price.csv"
        pd.DataFrame({'Timestamp': ['2015-01-01'], 'a': [1.0], 'b': [2.0]}).to_csv(path, index=False)

        with pytest.raises(ValueError, match="expected 2 columns"):
            load_bitcoin({'market_price': path})


class TestConfig:
    """Tests for configuration loading."""

    def test_load_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("analysis:\n  target: gold_price\n  max_missing: 0.5\n")

        config = load_config(path)
        assert config['analysis']['max_missing'] == 0.5

    def test_missing_config(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            load_config(tmp_path / "absent.yaml")


def test_data_summary(wdi_csv):
    summary = get_data_summary(load_wdi(wdi_csv))

    assert summary['shape'] == (1, 6)
    assert summary['n_numeric'] == 2
    assert summary['missing_fraction'] == 0.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
