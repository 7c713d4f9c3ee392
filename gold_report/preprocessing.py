"""
Data Preprocessing Module - Phase 2
====================================

Reshapes each raw source into a tidy table: one row per observation,
one column per variable, snake_case column names.

Functions:
    - clean_names: Normalize column labels to unique snake_case
    - normalize_wdi: Country × year table with one column per indicator
    - normalize_currency: Long (date, currency, rate) table
    - normalize_gold / normalize_sp500: Renamed date-indexed tables
    - normalize_bitcoin: Full outer join of the Bitcoin metrics on date
    - normalize_datasets: Apply every rule set
"""

import re
import logging
from functools import reduce
from typing import Dict, Any, List, Iterable

import pandas as pd
import numpy as np

from .data_loader import year_columns

logger = logging.getLogger(__name__)

NON_ALNUM = re.compile(r'[^0-9a-z]+')


def clean_name(name: Any) -> str:
    """Lowercase snake_case form of a single column label."""
    cleaned = NON_ALNUM.sub('_', str(name).strip().lower()).strip('_')
    if not cleaned:
        cleaned = 'x'
    if cleaned[0].isdigit():
        cleaned = f'x{cleaned}'
    return cleaned


def clean_names(columns: Iterable[Any]) -> List[str]:
    """
    Normalize column labels to unique lowercase snake_case names.

    Labels that collide after normalization are suffixed `_2`, `_3`, ...
    in order of appearance.

    Args:
        columns: Original column labels

    Returns:
        List of normalized, unique names
    """
    result = []
    seen = set()

    for col in columns:
        base = clean_name(col)
        name = base
        suffix = 2
        while name in seen:
            name = f"{base}_{suffix}"
            suffix += 1
        seen.add(name)
        result.append(name)

    return result


def _with_clean_names(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    out.columns = clean_names(out.columns)
    return out


def normalize_wdi(raw: pd.DataFrame) -> pd.DataFrame:
    """
    Reshape the WDI table to one row per (country, year).

    Identifier code columns are dropped, year columns are melted and the
    indicators pivoted into columns. `country` becomes a categorical and
    `year` an integer. Indicators missing for every year are kept as
    all-NaN columns; the completeness filter handles them downstream.

    Args:
        raw: Raw WDI table from `load_wdi`

    Returns:
        Tidy indicator table
    """
    years = year_columns(raw)
    base = raw.drop(columns=["Country Code", "Indicator Code"])

    long_df = base.melt(
        id_vars=["Country Name", "Indicator Name"],
        value_vars=years,
        var_name="year",
        value_name="value"
    )
    long_df["year"] = pd.to_numeric(long_df["year"]).astype(int)
    long_df["value"] = pd.to_numeric(long_df["value"], errors="coerce")

    wide = long_df.pivot_table(
        index=["Country Name", "year"],
        columns="Indicator Name",
        values="value",
        aggfunc="mean",
        dropna=False
    ).reset_index()
    wide.columns.name = None
    wide = wide.rename(columns={"Country Name": "country"})

    wide.columns = clean_names(wide.columns)
    wide["country"] = wide["country"].astype("category")
    wide["year"] = wide["year"].astype(int)

    logger.info(
        f"WDI normalized: {wide['country'].nunique()} countries, "
        f"{wide['year'].nunique()} years, {wide.shape[1] - 2} indicators"
    )
    return wide


def normalize_currency(raw: pd.DataFrame) -> pd.DataFrame:
    """
    Reshape currency rates to one row per (date, currency).

    Rows with a missing rate are dropped. Quotation direction differs
    between currencies (some local-per-USD, some USD-per-local) and is
    left as published; the table is excluded from downstream analysis.
    """
    df = raw.rename(columns={"Date": "date"})
    currencies = [col for col in df.columns if col != "date"]

    long_df = df.melt(
        id_vars=["date"],
        value_vars=currencies,
        var_name="currency",
        value_name="rate"
    )
    long_df["rate"] = pd.to_numeric(long_df["rate"], errors="coerce")
    long_df = long_df.dropna(subset=["rate"]).reset_index(drop=True)
    long_df["date"] = pd.to_datetime(long_df["date"])
    long_df["currency"] = long_df["currency"].astype(str).str.strip().astype("category")

    logger.info(
        f"Currency normalized: {len(long_df)} observations, "
        f"{long_df['currency'].nunique()} currencies"
    )
    return long_df


def normalize_gold(raw: pd.DataFrame) -> pd.DataFrame:
    """Rename the gold fixings (`usd_am`, `usd_pm`, ...) and parse dates."""
    df = _with_clean_names(raw)
    df["date"] = pd.to_datetime(df["date"])
    return df.sort_values("date").reset_index(drop=True)


def normalize_sp500(raw: pd.DataFrame) -> pd.DataFrame:
    """Rename the S&P Composite columns and parse dates."""
    df = _with_clean_names(raw)
    df["date"] = pd.to_datetime(df["date"])
    return df.sort_values("date").reset_index(drop=True)


def normalize_bitcoin(raws: Dict[str, pd.DataFrame]) -> pd.DataFrame:
    """
    Join the single-metric Bitcoin series into one table.

    Each series is reduced to (`date`, `<metric>`); the series are then
    full outer joined on date, so a date missing from one source leaves
    that metric NaN.

    Args:
        raws: Mapping of metric name -> two-column raw table

    Returns:
        One row per date with one column per metric, sorted by date
    """
    if not raws:
        raise ValueError("Bitcoin: no metric tables supplied")

    tables = []
    for metric, raw in raws.items():
        df = raw.copy()
        df.columns = ["date", clean_name(metric)]
        df["date"] = pd.to_datetime(df["date"])
        df[df.columns[1]] = pd.to_numeric(df[df.columns[1]], errors="coerce")
        tables.append(df)

    joined = reduce(
        lambda left, right: left.merge(right, on="date", how="outer"),
        tables
    )
    joined = joined.sort_values("date").reset_index(drop=True)
    joined.columns = clean_names(joined.columns)

    logger.info(f"Bitcoin normalized: {len(joined)} dates × {len(tables)} metrics")
    return joined


def normalize_datasets(raws: Dict[str, Any]) -> Dict[str, pd.DataFrame]:
    """
    Apply the per-source rule set to every raw table.

    Args:
        raws: Output of `load_datasets`

    Returns:
        Dictionary of tidy tables keyed like the input
    """
    logger.info("=" * 60)
    logger.info("NORMALIZING DATASETS (Phase 2)")
    logger.info("=" * 60)

    tidy = {
        'wdi': normalize_wdi(raws['wdi']),
        'currency': normalize_currency(raws['currency']),
        'gold': normalize_gold(raws['gold']),
        'sp500': normalize_sp500(raws['sp500']),
        'bitcoin': normalize_bitcoin(raws['bitcoin']),
    }

    logger.warning(
        "Currency rates mix quotation directions across currencies; "
        "the table is summarized but excluded from correlation and modelling"
    )

    for name, df in tidy.items():
        logger.info(f"  {name}: {df.shape[0]} rows × {df.shape[1]} columns")

    return tidy


def numeric_columns(df: pd.DataFrame, exclude: Iterable[str] = ()) -> List[str]:
    """Numeric column names, minus any in `exclude`."""
    excluded = set(exclude)
    return [
        col for col in df.select_dtypes(include=[np.number]).columns
        if col not in excluded
    ]
