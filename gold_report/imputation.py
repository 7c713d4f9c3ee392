"""
Imputation Module - Phase 7
===========================

Random-forest iterative imputation of the modelling table. Each column
with missing values is predicted from all other columns, round-robin,
until the imputations stop changing or `max_iter` rounds have run.

The input is one row per year (tens of rows), so refitting a forest per
column per round is affordable.
"""

import logging
import warnings
from typing import Dict, Any

import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestRegressor
from sklearn.exceptions import ConvergenceWarning
from sklearn.experimental import enable_iterative_imputer  # noqa: F401
from sklearn.impute import IterativeImputer

logger = logging.getLogger(__name__)


def _forest(n_estimators: int, random_state: int, oob_score: bool = False) -> RandomForestRegressor:
    return RandomForestRegressor(
        n_estimators=n_estimators,
        random_state=random_state,
        oob_score=oob_score,
        bootstrap=True,
        n_jobs=1
    )


def out_of_bag_error(
    original: pd.DataFrame,
    completed: pd.DataFrame,
    column: str,
    n_estimators: int = 100,
    random_state: int = 42
) -> float:
    """
    Out-of-bag normalized RMSE for one imputed column.

    A forest is fitted on the rows where `column` was observed, using the
    completed values of every other column, and scored on its out-of-bag
    predictions: sqrt(mean((pred - obs)^2) / var(obs)).

    Returns:
        The error, or NaN when it cannot be estimated (fewer than three
        observed rows, no other columns, or a constant column)
    """
    observed = original[column].notna()
    y = original.loc[observed, column].astype(float).values
    X = completed.loc[observed].drop(columns=[column]).values

    if X.shape[1] == 0 or len(y) < 3:
        return float('nan')

    variance = np.var(y, ddof=1)
    if not variance > 0:
        return float('nan')

    forest = _forest(n_estimators, random_state, oob_score=True)
    with warnings.catch_warnings():
        # a few rows may never be out of bag with tiny samples
        warnings.simplefilter("ignore", UserWarning)
        forest.fit(X, y)

    predictions = forest.oob_prediction_
    valid = ~np.isnan(predictions)
    if not valid.any():
        return float('nan')

    mse = np.mean((predictions[valid] - y[valid]) ** 2)
    return float(np.sqrt(mse / variance))


def impute_missing(
    df: pd.DataFrame,
    max_iter: int = 10,
    n_estimators: int = 100,
    random_state: int = 42
) -> Dict[str, Any]:
    """
    Fill every missing value in a numeric table.

    Args:
        df: Numeric table with missing values
        max_iter: Maximum number of imputation rounds
        n_estimators: Trees per forest
        random_state: Seed for the imputer and forests

    Returns:
        Dictionary containing:
            - data: Completed table (same index, columns and shape)
            - oob_error: Out-of-bag NRMSE per imputed column
            - n_imputed: Number of values filled per column
            - n_iter: Imputation rounds run

    Raises:
        ValueError: If the table has non-numeric columns
    """
    logger.info("=" * 60)
    logger.info("IMPUTING MISSING VALUES (Phase 7)")
    logger.info("=" * 60)

    non_numeric = df.select_dtypes(exclude=[np.number]).columns.tolist()
    if non_numeric:
        raise ValueError(f"Imputation requires numeric columns; found {non_numeric}")

    missing = df.isna().sum()
    n_imputed = missing[missing > 0]

    if n_imputed.empty:
        logger.info("No missing values; nothing to impute")
        return {
            'data': df.copy(),
            'oob_error': pd.Series(dtype=float, name='oob_nrmse'),
            'n_imputed': n_imputed.astype(int),
            'n_iter': 0,
        }

    logger.info(f"Missing values in {len(n_imputed)} columns: {n_imputed.to_dict()}")

    imputer = IterativeImputer(
        estimator=_forest(n_estimators, random_state),
        max_iter=max_iter,
        random_state=random_state,
        keep_empty_features=True
    )
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        filled = imputer.fit_transform(df.astype(float).values)

    completed = pd.DataFrame(filled, index=df.index, columns=df.columns)

    oob_error = pd.Series(
        {
            col: out_of_bag_error(df, completed, col, n_estimators, random_state)
            for col in n_imputed.index
        },
        name='oob_nrmse',
        dtype=float
    )

    logger.info(f"Imputation finished after {imputer.n_iter_} rounds")
    for col, err in oob_error.items():
        logger.info(f"  OOB NRMSE {col}: {err:.4f}")

    return {
        'data': completed,
        'oob_error': oob_error,
        'n_imputed': n_imputed.astype(int),
        'n_iter': int(imputer.n_iter_),
    }
