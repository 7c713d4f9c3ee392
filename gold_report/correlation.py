"""
Correlation Module - Phase 4
============================

Pairwise-complete Pearson correlation with completeness and magnitude
filters.

Functions:
    - complete_columns: Columns with less than half their values missing
    - correlation_matrix: Pairwise-complete correlation matrix
    - mask_triangle: Keep a strict triangle of the matrix
    - correlation_pairs: Long (var1, var2, correlation) form
    - overview_pairs: Pairs inside the 0.6 < |r| < 0.9 band
    - target_pairs: Pairs involving one variable, ranked by |r|
"""

import logging
from typing import Optional, List, Tuple, Iterable

import pandas as pd
import numpy as np

logger = logging.getLogger(__name__)


def complete_columns(
    df: pd.DataFrame,
    max_missing: float = 0.5,
    exclude: Iterable[str] = ()
) -> List[str]:
    """
    Select numeric columns whose missing fraction is strictly below `max_missing`.

    Args:
        df: Tidy table
        max_missing: Exclusive upper bound on the fraction of missing values
        exclude: Columns never selected (e.g. `year`)

    Returns:
        Names of the qualifying columns, in table order
    """
    excluded = set(exclude)
    numeric = [
        col for col in df.select_dtypes(include=[np.number]).columns
        if col not in excluded
    ]
    if len(df) == 0:
        return []

    missing = df[numeric].isna().mean()
    selected = missing[missing < max_missing].index.tolist()

    logger.info(
        f"Completeness filter: {len(selected)} of {len(numeric)} columns "
        f"have < {max_missing:.0%} missing values"
    )
    return selected


def correlation_matrix(
    df: pd.DataFrame,
    columns: Optional[List[str]] = None,
    min_periods: int = 2
) -> pd.DataFrame:
    """
    Pearson correlation over pairwise complete observations.

    A pair observed jointly in fewer than `min_periods` rows, or involving
    a constant column, yields NaN.

    Args:
        df: Table holding the variables
        columns: Variables to correlate (default: all numeric)
        min_periods: Minimum joint observations per pair

    Returns:
        Square, symmetric correlation matrix
    """
    if columns is None:
        columns = df.select_dtypes(include=[np.number]).columns.tolist()

    corr = df[columns].astype(float).corr(method='pearson', min_periods=min_periods)
    # float error can push |r| marginally past 1
    return corr.clip(lower=-1.0, upper=1.0)


def mask_triangle(corr: pd.DataFrame, lower: bool = True) -> pd.DataFrame:
    """
    Keep only the strictly-lower (or strictly-upper) triangle; the rest is NaN.
    """
    ones = np.ones(corr.shape, dtype=bool)
    keep = np.tril(ones, k=-1) if lower else np.triu(ones, k=1)
    return corr.where(keep)


def correlation_pairs(corr: pd.DataFrame) -> pd.DataFrame:
    """
    Convert a correlation matrix into one row per unique variable pair.

    The matrix is masked to its lower triangle first, so each pair is
    reported once. Undefined correlations are dropped.

    Returns:
        DataFrame with columns `var1`, `var2`, `correlation`
    """
    masked = mask_triangle(corr, lower=True)
    masked.index.name = None
    masked.columns.name = None

    pairs = (
        masked.rename_axis('var1')
        .reset_index()
        .melt(id_vars='var1', var_name='var2', value_name='correlation')
        .dropna(subset=['correlation'])
        .reset_index(drop=True)
    )
    return pairs


def overview_pairs(
    corr: pd.DataFrame,
    lower: float = 0.6,
    upper: float = 0.9
) -> pd.DataFrame:
    """Pairs with `lower < |r| < upper`, sorted by descending |r|."""
    pairs = correlation_pairs(corr)
    strength = pairs['correlation'].abs()
    selected = pairs[(strength > lower) & (strength < upper)]
    return _sort_by_strength(selected)


def target_pairs(
    corr: pd.DataFrame,
    target: str,
    threshold: float = 0.6
) -> pd.DataFrame:
    """
    Pairs involving `target` with |r| above `threshold`.

    Returns:
        DataFrame with columns `variable` (the partner of `target`) and
        `correlation`, sorted by descending |r|
    """
    if target not in corr.columns:
        raise ValueError(f"Target '{target}' is not in the correlation matrix")

    pairs = correlation_pairs(corr)
    involved = pairs[(pairs['var1'] == target) | (pairs['var2'] == target)].copy()
    involved['variable'] = np.where(involved['var1'] == target, involved['var2'], involved['var1'])
    involved = involved[involved['correlation'].abs() > threshold]

    return _sort_by_strength(involved[['variable', 'correlation']])


def _sort_by_strength(pairs: pd.DataFrame) -> pd.DataFrame:
    order = pairs['correlation'].abs().sort_values(ascending=False, kind='mergesort').index
    return pairs.loc[order].reset_index(drop=True)


def indicator_correlations(
    wdi: pd.DataFrame,
    max_missing: float = 0.5
) -> Tuple[List[str], pd.DataFrame]:
    """
    Correlate the indicator columns that pass the completeness filter.

    Args:
        wdi: Tidy indicator table
        max_missing: Exclusive bound for the completeness filter

    Returns:
        Tuple of (selected columns, correlation matrix)
    """
    columns = complete_columns(wdi, max_missing=max_missing, exclude=['year'])
    corr = correlation_matrix(wdi, columns)

    n_pairs = len(correlation_pairs(corr))
    logger.info(f"Indicator correlation: {len(columns)} variables, {n_pairs} defined pairs")
    return columns, corr
