"""
Yearly Join Module - Phase 5
============================

Builds the one-row-per-year modelling table from the World aggregate
indicators, the mean annual gold price and the mean annual S&P index.

Bitcoin is not joined: its series starts decades after the
indicators, so it would be missing for most of the joined years.
"""

import logging
from typing import List, Optional

import pandas as pd

logger = logging.getLogger(__name__)


def gold_mid_price(
    gold: pd.DataFrame,
    am_column: str = "usd_am",
    pm_column: str = "usd_pm",
    name: str = "gold_price"
) -> pd.DataFrame:
    """
    Daily mid price as the mean of the morning and afternoon fixings.

    Days where either fixing is missing have no mid price and are dropped.

    Args:
        gold: Tidy gold table
        am_column: Morning fixing column
        pm_column: Afternoon fixing column
        name: Name of the derived column

    Returns:
        DataFrame with columns `date` and `name`
    """
    mid = gold[["date"]].copy()
    mid[name] = (gold[am_column] + gold[pm_column]) / 2
    mid = mid.dropna(subset=[name]).reset_index(drop=True)

    dropped = len(gold) - len(mid)
    if dropped:
        logger.info(f"Gold: dropped {dropped} days without a mid price")
    return mid


def yearly_mean(
    df: pd.DataFrame,
    value_column: str,
    date_column: str = "date",
    name: Optional[str] = None
) -> pd.DataFrame:
    """Arithmetic mean of `value_column` per calendar year."""
    name = name or value_column
    years = pd.to_datetime(df[date_column]).dt.year.rename("year")

    yearly = (
        df[value_column]
        .groupby(years)
        .mean()
        .rename(name)
        .reset_index()
    )
    yearly["year"] = yearly["year"].astype(int)
    return yearly


def world_indicators(
    wdi: pd.DataFrame,
    columns: List[str],
    label: str = "World"
) -> pd.DataFrame:
    """
    Indicator rows for the global aggregate, restricted to `year` + `columns`.

    Raises:
        ValueError: If the aggregate label is absent from the table
    """
    rows = wdi[wdi["country"] == label]
    if rows.empty:
        raise ValueError(f"No rows labelled '{label}' in the indicator table")

    columns = [col for col in columns if col != "year"]
    return rows[["year"] + columns].reset_index(drop=True)


def join_yearly(
    wdi: pd.DataFrame,
    gold: pd.DataFrame,
    sp500: pd.DataFrame,
    indicator_columns: List[str],
    world_label: str = "World",
    target: str = "gold_price",
    index_column: str = "sp500"
) -> pd.DataFrame:
    """
    Join indicators, gold and the S&P index on calendar year.

    Indicators are inner joined with the yearly gold price, so every
    resulting year has a gold price. The yearly index is then left
    joined, so a year without an index value is kept with NaN.

    Args:
        wdi: Tidy indicator table
        gold: Tidy gold table
        sp500: Tidy S&P table
        indicator_columns: Completeness-filtered indicator columns
        world_label: Country label of the global aggregate
        target: Name for the yearly gold price column
        index_column: S&P column to aggregate

    Returns:
        One row per year, sorted by year
    """
    logger.info("=" * 60)
    logger.info("BUILDING YEARLY JOINED TABLE (Phase 5)")
    logger.info("=" * 60)

    indicators = world_indicators(wdi, indicator_columns, label=world_label)
    gold_yearly = yearly_mean(gold_mid_price(gold, name=target), target)
    index_yearly = yearly_mean(sp500, index_column)

    joined = (
        indicators
        .merge(gold_yearly, on="year", how="inner")
        .merge(index_yearly, on="year", how="left")
        .sort_values("year")
        .reset_index(drop=True)
    )

    logger.info(
        f"Joined table: {len(joined)} years "
        f"({joined['year'].min() if len(joined) else '-'}–{joined['year'].max() if len(joined) else '-'}), "
        f"{joined.shape[1]} columns, {int(joined[index_column].isna().sum())} years without index value"
    )
    return joined
