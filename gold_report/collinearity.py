"""
Collinearity Module - Phase 6
=============================

Greedy removal of predictors that are highly correlated with each other,
followed by selection of the survivors correlated with the target.

Functions:
    - find_correlated: Names to drop so no retained pair exceeds the cutoff
    - reduce_predictors: Drop collinear predictors, keep target-correlated ones
"""

import logging
from typing import Dict, Any, List, Iterable

import pandas as pd
import numpy as np

from .correlation import correlation_matrix
from .preprocessing import numeric_columns

logger = logging.getLogger(__name__)


def find_correlated(corr: pd.DataFrame, cutoff: float = 0.9) -> List[str]:
    """
    Select variables to drop so that no retained pair has |r| > cutoff.

    Variables are visited in order of descending mean absolute
    correlation. For every still-retained pair above the cutoff, the
    member with the larger mean absolute correlation against the other
    retained variables is dropped (on a tie, the later one in the visit
    order). Undefined correlations never trigger a drop.

    Args:
        corr: Square correlation matrix
        cutoff: Largest |r| allowed between two retained variables

    Returns:
        Names of the variables to drop, in matrix column order
    """
    if corr.shape[0] != corr.shape[1] or list(corr.index) != list(corr.columns):
        raise ValueError("Correlation matrix must be square with matching labels")

    abs_corr = corr.abs()
    abs_corr = abs_corr.mask(np.eye(len(abs_corr), dtype=bool))

    mean_corr = abs_corr.mean().fillna(0.0)
    order = list(mean_corr.sort_values(ascending=False, kind='mergesort').index)

    dropped = set()
    for i, first in enumerate(order):
        if first in dropped:
            continue
        for second in order[i + 1:]:
            if first in dropped:
                break
            if second in dropped:
                continue

            value = abs_corr.at[first, second]
            if pd.isna(value) or value <= cutoff:
                continue

            retained = [col for col in order if col not in dropped]
            mean_first = abs_corr.loc[first, retained].mean()
            mean_second = abs_corr.loc[second, retained].mean()

            victim = first if mean_first > mean_second else second
            dropped.add(victim)
            logger.debug(
                f"{first} ↔ {second}: |r|={value:.3f} > {cutoff}; dropping {victim}"
            )

    return [col for col in corr.columns if col in dropped]


def reduce_predictors(
    joined: pd.DataFrame,
    target: str = "gold_price",
    exclude: Iterable[str] = ("year",),
    cutoff: float = 0.9,
    threshold: float = 0.6
) -> Dict[str, Any]:
    """
    Reduce the joined table's predictors for modelling.

    Candidate predictors are every numeric column except the target and
    `exclude`. Collinear candidates are removed with `find_correlated`,
    and the survivors whose |r| with the target exceeds `threshold`
    are selected, strongest first.

    Args:
        joined: Yearly joined table
        target: Target column
        exclude: Columns that are never predictors
        cutoff: Mutual correlation cutoff
        threshold: Minimum |r| with the target for selection

    Returns:
        Dictionary containing:
            - correlation: Correlation matrix of candidates and target
            - dropped: Names removed for collinearity
            - retained: Candidates left after removal
            - selected: Retained names correlated with the target
            - target_correlation: |r| with the target of the retained names
    """
    logger.info("=" * 60)
    logger.info("REDUCING COLLINEAR PREDICTORS (Phase 6)")
    logger.info("=" * 60)

    candidates = numeric_columns(joined, exclude=set(exclude) | {target})

    corr = correlation_matrix(joined, candidates + [target])
    dropped = find_correlated(corr.loc[candidates, candidates], cutoff=cutoff)
    retained = [col for col in candidates if col not in dropped]

    target_corr = corr.loc[retained, target]
    strength = target_corr.abs().sort_values(ascending=False, kind='mergesort')
    selected = strength[strength > threshold].index.tolist()

    logger.info(f"Candidates: {len(candidates)}")
    logger.info(f"Dropped for |r| > {cutoff}: {len(dropped)}")
    logger.info(f"Selected with |r({target})| > {threshold}: {selected}")

    return {
        'correlation': corr,
        'dropped': dropped,
        'retained': retained,
        'selected': selected,
        'target_correlation': target_corr.loc[strength.index],
    }
