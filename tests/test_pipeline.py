"""
Test Suite for Pipeline
=======================

End-to-end runs on small synthetic sources.
"""

import json

import pytest
import numpy as np
import pandas as pd
import yaml

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gold_report.pipeline import run_full_pipeline
from gold_report.report import CURRENCY_NOTE

YEARS = list(range(1990, 2020))


def _write_sources(raw_dir: Path) -> None:
    np.random.seed(42)
    raw_dir.mkdir(parents=True)
    trend = np.linspace(0, 1, len(YEARS))

    indicators = {
        'GDP (current US$)': 20 + 60 * trend + np.random.randn(len(YEARS)),
        'Population, total': 5000 + 2500 * trend + np.random.randn(len(YEARS)) * 20,
        'Energy use (kg of oil equivalent)': np.random.rand(len(YEARS)) * 100,
    }
    rows = []
    for country, scale in [('World', 1.0), ('Chile', 0.01)]:
        for name, values in indicators.items():
            row = {
                'Country Name': country,
                'Country Code': country[:3].upper(),
                'Indicator Name': name,
                'Indicator Code': name[:6],
            }
            row.update({str(year): value * scale for year, value in zip(YEARS, values)})
            rows.append(row)
    wdi = pd.DataFrame(rows)
    wdi.loc[0, ['1993', '2004']] = np.nan
    wdi.to_csv(raw_dir / "wdi.csv", index=False)

    dates, am, pm = [], [], []
    for year, level in zip(YEARS, trend):
        for month in (1, 4, 7, 10):
            price = 300 + 1200 * level + np.random.randn() * 15
            dates.append(f"{year}-{month:02d}-15")
            am.append(price)
            pm.append(price + 2)
    pd.DataFrame({'Date': dates, 'USD (AM)': am, 'USD (PM)': pm}).to_csv(raw_dir / "gold.csv", index=False)

    months = pd.date_range("1995-01-01", "2019-12-01", freq="MS")
    pd.DataFrame({
        'Date': months.strftime("%Y-%m-%d"),
        'SP500': 1500 + np.random.randn(len(months)) * 100,
    }).to_csv(raw_dir / "sp500.csv", index=False)

    pd.DataFrame({
        'Date': ['2018-01-02', '2018-01-03'],
        'EUR': [0.83, 0.84],
        'JPY': [112.4, np.nan],
    }).to_csv(raw_dir / "currency.csv", index=False)

    for metric in ('market_price', 'hash_rate', 'n_transactions', 'trade_volume'):
        pd.DataFrame({
            'Timestamp': ['2017-01-01', '2017-01-02'],
            'value': [1.0, 2.0],
        }).to_csv(raw_dir / f"bitcoin_{metric}.csv", index=False)


@pytest.fixture
def config_path(tmp_path):
    raw_dir = tmp_path / "raw"
    _write_sources(raw_dir)

    config = {
        'data': {
            'raw_path': str(raw_dir),
            'wdi': 'wdi.csv',
            'currency': 'currency.csv',
            'gold': 'gold.csv',
            'sp500': 'sp500.csv',
        },
        'imputation': {'max_iter': 2, 'n_estimators': 10, 'random_state': 42},
        'model': {
            'n_estimators': 10,
            'max_features_grid': [0.5, 1.0],
            'cv_repeats': 1,
            'random_state': 42,
        },
        'output': {
            'reports_path': str(tmp_path / "reports"),
            'model_path': str(tmp_path / "models" / "rf.joblib"),
            'animate': False,
        },
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config))
    return path


class TestFullPipeline:
    """End-to-end pipeline runs."""

    def test_complete_run(self, config_path, tmp_path):
        results = run_full_pipeline(str(config_path))

        assert len(results['joined']) == len(YEARS)
        assert results['joined']['gold_price'].notna().all()
        assert results['table'][results['reduction']['selected']].isna().sum().sum() == 0
        assert len(results['train']) == 22
        assert len(results['test']) == 8
        assert results['evaluation']['metrics']['n_samples'] == 8
        assert len({'gdp_current_us', 'population_total'} & set(results['reduction']['dropped'])) == 1

        reports = tmp_path / "reports"
        assert (tmp_path / "models" / "rf.joblib").exists()
        for name in results['figures']:
            assert (reports / "figures" / name).exists()
        assert "06_gold_price.gif" not in results['figures']

        report = Path(results['report_path']).read_text(encoding='utf-8')
        assert CURRENCY_NOTE in report
        assert "Random Forest model" in report

        with open(results['results_path']) as f:
            record = json.load(f)
        assert record['n_years'] == len(YEARS)
        assert record['selected'] == results['reduction']['selected']

    def test_stop_after_correlation(self, config_path, tmp_path):
        results = run_full_pipeline(str(config_path), stop_after='correlate')

        assert 'gdp_current_us' in results['indicator_columns']
        assert 'joined' not in results
        assert not (tmp_path / "reports").exists()

    def test_unknown_phase(self, config_path):
        with pytest.raises(ValueError, match="Unknown phase"):
            run_full_pipeline(str(config_path), stop_after='publish')


def test_main_missing_config(monkeypatch, tmp_path):
    import main

    monkeypatch.setattr(sys, 'argv', ['main.py', '--config', str(tmp_path / "absent.yaml")])
    assert main.main() == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
