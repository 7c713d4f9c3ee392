"""
Model Evaluation Module - Phase 9
==================================

Scores the trained model on the held-out partition and ranks predictors.

Features:
    - R² (squared correlation of predicted and observed), RMSE, MAE
    - Variable importance scaled to 0-100
    - Train/test distribution comparison for the target
    - Actual vs predicted and importance plots
"""

import logging
import json
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from sklearn.metrics import mean_squared_error, mean_absolute_error

from .model import GoldPriceModel
from .report import to_builtin

logger = logging.getLogger(__name__)


def calculate_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, float]:
    """
    Calculate evaluation metrics for one target.

    R² is the squared Pearson correlation between predictions and
    observations; it is NaN when either side is constant or fewer than
    two rows are scored.

    Args:
        y_true: Observed values
        y_pred: Predicted values

    Returns:
        Dictionary with `r2`, `rmse`, `mae` and `n_samples`
    """
    y_true = np.asarray(y_true, dtype=float).ravel()
    y_pred = np.asarray(y_pred, dtype=float).ravel()

    if len(y_true) != len(y_pred):
        raise ValueError(f"Length mismatch: {len(y_true)} observed vs {len(y_pred)} predicted")
    if len(y_true) == 0:
        raise ValueError("Cannot evaluate on an empty test set")

    if len(y_true) > 1 and np.std(y_true) > 0 and np.std(y_pred) > 0:
        r2 = float(np.corrcoef(y_true, y_pred)[0, 1] ** 2)
    else:
        r2 = float('nan')

    return {
        'r2': r2,
        'rmse': float(np.sqrt(mean_squared_error(y_true, y_pred))),
        'mae': float(mean_absolute_error(y_true, y_pred)),
        'n_samples': int(len(y_true)),
    }


def variable_importance(model: GoldPriceModel) -> pd.DataFrame:
    """
    Rank predictors by their contribution to the model.

    Importances are scaled so the strongest predictor scores 100.

    Returns:
        DataFrame with columns `variable` and `importance`, descending
    """
    raw = model.feature_importances()
    peak = raw.max()
    scaled = raw / peak * 100 if peak > 0 else raw * 0.0

    ranking = (
        scaled.sort_values(ascending=False, kind='mergesort')
        .rename_axis('variable')
        .reset_index(name='importance')
    )
    return ranking


def distribution_shift(
    train: pd.DataFrame,
    test: pd.DataFrame,
    target: str,
    tolerance: float = 0.1
) -> Dict[str, Any]:
    """
    Compare the target's distribution across partitions.

    `shifted` is True when the test mean differs from the training mean
    by more than `tolerance`, relative to the training mean. The result is
    reported as a caveat and never stops the run.
    """
    train_mean = float(train[target].mean())
    test_mean = float(test[target].mean())
    relative = abs(test_mean - train_mean) / abs(train_mean) if train_mean else float('nan')

    shift = {
        'train_mean': train_mean,
        'test_mean': test_mean,
        'train_std': float(train[target].std()),
        'test_std': float(test[target].std()),
        'relative_mean_difference': relative,
        'shifted': bool(relative > tolerance),
    }

    if shift['shifted']:
        logger.warning(
            f"Target distribution differs between partitions: train mean {train_mean:.2f}, "
            f"test mean {test_mean:.2f}; metrics may not generalize"
        )
    return shift


def plot_actual_vs_predicted(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    metrics: Dict[str, float],
    target: str = "gold_price",
    figsize: Tuple[int, int] = (7, 6),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Scatter of observed vs predicted values with the identity line.
    """
    fig, ax = plt.subplots(figsize=figsize)

    ax.scatter(y_true, y_pred, alpha=0.7, s=40)

    min_val = min(np.min(y_true), np.min(y_pred))
    max_val = max(np.max(y_true), np.max(y_pred))
    ax.plot([min_val, max_val], [min_val, max_val], 'r--', linewidth=2, label='Perfect')

    ax.set_xlabel(f'Observed {target}')
    ax.set_ylabel(f'Predicted {target}')
    ax.set_title(f"Test set\nR²={metrics['r2']:.4f}, RMSE={metrics['rmse']:.2f}",
                 fontsize=12, fontweight='bold')
    ax.legend(loc='upper left', fontsize=8)
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Actual vs Predicted plot saved to {save_path}")

    return fig


def plot_importance(
    ranking: pd.DataFrame,
    figsize: Tuple[int, int] = (8, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """Horizontal bar chart of the variable importance ranking."""
    fig, ax = plt.subplots(figsize=figsize)

    sns.barplot(data=ranking, x='importance', y='variable', ax=ax, color='steelblue')
    ax.set_xlabel('Relative importance (0-100)')
    ax.set_ylabel('')
    ax.set_title('Variable Importance', fontsize=12, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Importance plot saved to {save_path}")

    return fig


def evaluate_model(
    model: GoldPriceModel,
    test: pd.DataFrame,
    train: Optional[pd.DataFrame] = None,
    output_dir: str = "reports/",
    show_plots: bool = False
) -> Dict[str, Any]:
    """
    Run complete model evaluation and generate its outputs.

    Args:
        model: Trained model
        test: Held-out partition
        train: Training partition, for the distribution comparison
        output_dir: Directory for figures and the metrics file
        show_plots: Whether to display plots interactively

    Returns:
        Dictionary containing metrics, importance ranking, predictions,
        distribution shift and file paths
    """
    output_dir = Path(output_dir)
    figures_dir = output_dir / "figures"
    metrics_dir = output_dir / "metrics"

    figures_dir.mkdir(parents=True, exist_ok=True)
    metrics_dir.mkdir(parents=True, exist_ok=True)

    logger.info("=" * 60)
    logger.info("STARTING MODEL EVALUATION (Phase 9)")
    logger.info("=" * 60)

    y_true = test[model.target].astype(float).values
    y_pred = model.predict(test)

    metrics = calculate_metrics(y_true, y_pred)
    ranking = variable_importance(model)
    shift = distribution_shift(train, test, model.target) if train is not None else None

    metrics_file = metrics_dir / "evaluation_metrics.json"
    with open(metrics_file, 'w') as f:
        json.dump(to_builtin({
            'metrics': metrics,
            'importance': ranking.to_dict(orient='records'),
            'distribution_shift': shift,
        }), f, indent=2, allow_nan=False)
    logger.info(f"Metrics saved to {metrics_file}")

    figures = []

    plot_actual_vs_predicted(
        y_true, y_pred, metrics, target=model.target,
        save_path=str(figures_dir / "eval_actual_vs_predicted.png")
    )
    figures.append("eval_actual_vs_predicted.png")

    plot_importance(ranking, save_path=str(figures_dir / "eval_importance.png"))
    figures.append("eval_importance.png")

    if show_plots:
        plt.show()
    else:
        plt.close('all')

    model.mark_evaluated()

    predictions = pd.DataFrame(
        {'observed': y_true, 'predicted': y_pred},
        index=test.index
    )
    if 'year' in test.columns:
        predictions.insert(0, 'year', test['year'].values)

    logger.info("=" * 60)
    logger.info("EVALUATION COMPLETE")
    logger.info(f"  R²: {metrics['r2']:.4f}")
    logger.info(f"  RMSE: {metrics['rmse']:.4f}")
    logger.info("=" * 60)

    return {
        'metrics': metrics,
        'importance': ranking,
        'predictions': predictions,
        'distribution_shift': shift,
        'figures': figures,
        'metrics_file': str(metrics_file),
    }


def print_evaluation_report(result: Dict[str, Any]) -> None:
    """
    Print a formatted evaluation report to console.

    Args:
        result: Dictionary from evaluate_model
    """
    metrics = result['metrics']

    print("\n" + "=" * 70)
    print("MODEL EVALUATION REPORT")
    print("=" * 70)
    print(f"  • R²: {metrics['r2']:.4f}")
    print(f"  • RMSE: {metrics['rmse']:.4f}")
    print(f"  • MAE: {metrics['mae']:.4f}")
    print(f"  • Samples evaluated: {metrics['n_samples']}")

    print("\nVariable importance:")
    print("-" * 70)
    for _, row in result['importance'].iterrows():
        print(f"  {row['variable']:<50} {row['importance']:>8.2f}")

    shift = result.get('distribution_shift')
    if shift and shift['shifted']:
        print("\nCaveat:")
        print(f"  Train mean {shift['train_mean']:.2f} vs test mean {shift['test_mean']:.2f}; "
              "with so few yearly rows the partitions can differ noticeably.")

    print("=" * 70 + "\n")
