"""
Data Loader Module - Phase 1
============================

Handles ingestion of the six raw sources and the schema checks applied
to them. Column layout mismatches are fatal; nothing is recovered here.

Functions:
    - load_config: Load YAML configuration file
    - load_wdi: World Development Indicators spreadsheet
    - load_currency / load_gold / load_sp500: Date-indexed CSV sources
    - load_bitcoin: Four single-metric Bitcoin series
    - load_datasets: Load every configured source
    - get_data_summary: Basic shape and completeness information
"""

import re
import logging
from pathlib import Path
from typing import Dict, Any, List, Union

import pandas as pd
import numpy as np
import yaml

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

WDI_ID_COLUMNS = ["Country Name", "Country Code", "Indicator Name", "Indicator Code"]
GOLD_COLUMNS = ["Date", "USD (AM)", "USD (PM)"]
SP500_COLUMNS = ["Date", "SP500"]
CURRENCY_COLUMNS = ["Date"]

YEAR_PATTERN = re.compile(r"^\d{4}$")


def load_config(config_path: PathLike = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Dictionary containing configuration parameters

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    logger.info(f"Loaded configuration from {config_path}")
    return config


def validate_columns(df: pd.DataFrame, required: List[str], name: str) -> None:
    """
    Check that every required column is present.

    Args:
        df: Loaded table
        required: Column names the source must carry
        name: Dataset name used in the error message

    Raises:
        ValueError: If any required column is missing
    """
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(
            f"{name}: missing required columns {missing}. "
            f"Columns found: {list(df.columns)}"
        )


def year_columns(df: pd.DataFrame) -> List[str]:
    """Return the columns whose label is a 4-digit year."""
    return [col for col in df.columns if YEAR_PATTERN.match(str(col).strip())]


def _read_table(file_path: PathLike, **kwargs) -> pd.DataFrame:
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Data file not found: {file_path}")

    if file_path.suffix.lower() in ('.xlsx', '.xls'):
        df = pd.read_excel(file_path, **kwargs)
    else:
        kwargs.pop('sheet_name', None)
        df = pd.read_csv(file_path, **kwargs)

    logger.info(f"Loaded data from {file_path}: {df.shape[0]} rows × {df.shape[1]} columns")
    return df


def load_wdi(file_path: PathLike, sheet_name: str = "Data") -> pd.DataFrame:
    """
    Load the World Development Indicators table.

    One row per (country, indicator) with one column per year. Excel
    workbooks are read from `sheet_name`; CSV exports are read directly.

    Args:
        file_path: Path to the WDI spreadsheet or CSV
        sheet_name: Worksheet holding the data

    Returns:
        Raw WDI DataFrame

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If identifier or year columns are missing
    """
    df = _read_table(file_path, sheet_name=sheet_name)
    df.columns = [str(col).strip() for col in df.columns]

    validate_columns(df, WDI_ID_COLUMNS, "WDI")
    if not year_columns(df):
        raise ValueError("WDI: no year columns found")

    return df


def load_currency(file_path: PathLike) -> pd.DataFrame:
    """Load the currency exchange rate table (Date + one column per currency)."""
    df = _read_table(file_path)
    validate_columns(df, CURRENCY_COLUMNS, "Currency")
    if df.shape[1] < 2:
        raise ValueError("Currency: expected at least one currency column")
    return df


def load_gold(file_path: PathLike) -> pd.DataFrame:
    """Load the daily gold price fixings."""
    df = _read_table(file_path)
    validate_columns(df, GOLD_COLUMNS, "Gold")
    return df


def load_sp500(file_path: PathLike) -> pd.DataFrame:
    """Load the S&P Composite index table."""
    df = _read_table(file_path)
    validate_columns(df, SP500_COLUMNS, "S&P 500")
    return df


def load_bitcoin(file_paths: Dict[str, PathLike]) -> Dict[str, pd.DataFrame]:
    """
    Load the single-metric Bitcoin series.

    Each file must hold exactly two columns: a timestamp and the metric
    value. The second column is renamed to the metric key so that the
    normalizer can join the series on date.

    Args:
        file_paths: Mapping of metric name -> CSV path

    Returns:
        Mapping of metric name -> raw two-column DataFrame
    """
    tables = {}
    for metric, path in file_paths.items():
        df = _read_table(path)
        if df.shape[1] != 2:
            raise ValueError(
                f"Bitcoin {metric}: expected 2 columns (timestamp, value), "
                f"found {df.shape[1]}: {list(df.columns)}"
            )
        df.columns = ["Timestamp", metric]
        tables[metric] = df
    return tables


def load_datasets(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Load all six sources from the paths in the `data` config section.

    Returns:
        Dictionary with keys 'wdi', 'currency', 'gold', 'sp500', 'bitcoin'
    """
    data_config = config.get('data', {})
    raw_dir = Path(data_config.get('raw_path', 'data/raw/'))

    def resolve(path: PathLike) -> Path:
        path = Path(path)
        return path if path.is_absolute() else raw_dir / path

    logger.info("=" * 60)
    logger.info("LOADING DATASETS (Phase 1)")
    logger.info("=" * 60)

    bitcoin_files = data_config.get('bitcoin', {
        'market_price': 'bitcoin_market_price.csv',
        'hash_rate': 'bitcoin_hash_rate.csv',
        'n_transactions': 'bitcoin_n_transactions.csv',
        'trade_volume': 'bitcoin_trade_volume.csv',
    })

    raws = {
        'wdi': load_wdi(
            resolve(data_config.get('wdi', 'WDIEXCEL.xlsx')),
            sheet_name=data_config.get('wdi_sheet', 'Data')
        ),
        'currency': load_currency(resolve(data_config.get('currency', 'currency_exchange_rates.csv'))),
        'gold': load_gold(resolve(data_config.get('gold', 'gold_price.csv'))),
        'sp500': load_sp500(resolve(data_config.get('sp500', 'sp500.csv'))),
        'bitcoin': load_bitcoin({metric: resolve(path) for metric, path in bitcoin_files.items()}),
    }

    return raws


def get_data_summary(df: pd.DataFrame) -> Dict[str, Any]:
    """
    Generate basic shape and completeness information for a table.

    Args:
        df: DataFrame to summarize

    Returns:
        Dictionary containing summary information
    """
    n_rows = len(df)
    missing = df.isnull().sum()

    return {
        "shape": df.shape,
        "columns": list(df.columns),
        "dtypes": df.dtypes.astype(str).to_dict(),
        "memory_usage_mb": df.memory_usage(deep=True).sum() / 1024 / 1024,
        "missing_by_column": missing[missing > 0].to_dict(),
        "missing_fraction": float(missing.sum() / (n_rows * df.shape[1])) if n_rows and df.shape[1] else 0.0,
        "n_numeric": len(df.select_dtypes(include=[np.number]).columns),
    }


def print_data_summary(df: pd.DataFrame, name: str = "DATASET") -> None:
    """
    Print a formatted summary of a table to console.

    Args:
        df: DataFrame to summarize
        name: Heading for the summary block
    """
    summary = get_data_summary(df)

    print("\n" + "=" * 60)
    print(f"{name.upper()} SUMMARY")
    print("=" * 60)
    print(f"Shape: {df.shape[0]} rows × {df.shape[1]} columns")
    print(f"Memory Usage: {summary['memory_usage_mb'] * 1024:.2f} KB")
    print(f"Numeric columns: {summary['n_numeric']}")
    print(f"Missing cells: {summary['missing_fraction'] * 100:.1f}%")
    print("=" * 60 + "\n")
