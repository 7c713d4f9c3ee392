"""
Report Module - Phase 10
========================

Renders the pipeline results into a Markdown report and a JSON record
of the headline numbers.

Features:
    - Dataset summaries and the currency exclusion note
    - Correlation overview and gold-focused tables
    - Predictor reduction, imputation diagnostics and model results
    - Figure links
"""

import logging
import json
from pathlib import Path
from typing import Dict, Any, List, Optional
from datetime import datetime

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

CURRENCY_NOTE = (
    "Exchange rates in the currency table are not quoted in a single direction: "
    "some currencies are expressed as local units per USD, others as USD per local "
    "unit. The direction cannot be recovered reliably from the data alone, so the "
    "table is summarized here and excluded from the correlation analysis and the model."
)

BITCOIN_NOTE = (
    "Bitcoin metrics start decades after the indicator series; joining them would "
    "leave them missing for most years, so they are not part of the yearly table."
)


def _table(df: pd.DataFrame, index: bool = True, float_format: str = "{:.4f}") -> str:
    if df is None or len(df) == 0:
        return "_(empty)_\n"
    text = df.to_string(index=index, float_format=lambda v: float_format.format(v))
    return f"```\n{text}\n```\n"


def _section(title: str, level: int = 2) -> str:
    return f"\n{'#' * level} {title}\n\n"


def to_builtin(value: Any) -> Any:
    """JSON-safe copy of `value`: numpy scalars become Python numbers, NaN becomes None."""
    if isinstance(value, dict):
        return {str(k): to_builtin(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_builtin(v) for v in value]
    if isinstance(value, (np.integer,)):
        return int(value)
    if isinstance(value, (np.floating, float)):
        return None if np.isnan(value) else float(value)
    return value


def render_report(results: Dict[str, Any], figures_dir: Optional[str] = None) -> str:
    """
    Build the Markdown text of the report.

    Args:
        results: Output of the full pipeline run
        figures_dir: Relative path of the figures from the report file

    Returns:
        Markdown document
    """
    target = results.get('target', 'gold_price')
    analysis = results.get('config', {}).get('analysis', {})
    max_missing = analysis.get('max_missing', 0.5)
    overview_lower = analysis.get('overview_lower', 0.6)
    overview_upper = analysis.get('overview_upper', 0.9)
    target_threshold = analysis.get('target_threshold', 0.6)
    cutoff = analysis.get('collinearity_cutoff', 0.9)

    parts: List[str] = [
        "# Gold Price and World Development Indicators\n",
        f"_Generated {results.get('generated_at', datetime.now().isoformat())}_\n",
    ]

    parts.append(_section("Datasets"))
    for name, summary in results.get('summaries', {}).items():
        shape = results.get('shapes', {}).get(name)
        parts.append(_section(f"{name} ({shape[0]} rows × {shape[1]} columns)" if shape else name, 3))
        if name == 'wdi':
            # thousands of indicators; show the completeness distribution only
            parts.append(_table(summary['completeness'].describe().to_frame('completeness')))
        else:
            parts.append(_table(summary))
        if name == 'currency':
            parts.append(f"> {CURRENCY_NOTE}\n")
        if name == 'bitcoin':
            parts.append(f"> {BITCOIN_NOTE}\n")

    parts.append(_section("Indicator correlations"))
    parts.append(
        f"{len(results.get('indicator_columns', []))} indicators have less than "
        f"{max_missing:.0%} of their values missing. "
        f"Pairs with {overview_lower} < |r| < {overview_upper}:\n\n"
    )
    parts.append(_table(results.get('indicator_overview'), index=False))

    parts.append(_section("Yearly joined table"))
    joined = results.get('joined')
    if joined is not None:
        parts.append(
            f"{len(joined)} years, {joined.shape[1]} columns; "
            f"{int(joined['sp500'].isna().sum()) if 'sp500' in joined else 0} years without an S&P value.\n\n"
        )
    parts.append(_section(f"Variables correlated with {target} (|r| > {target_threshold})", 3))
    parts.append(_table(results.get('target_pairs'), index=False))

    reduction = results.get('reduction')
    if reduction:
        parts.append(_section("Predictor reduction"))
        parts.append(f"Dropped for mutual |r| > {cutoff}: {', '.join(reduction['dropped']) or 'none'}\n\n")
        parts.append(f"Selected predictors: {', '.join(reduction['selected']) or 'none'}\n\n")

    imputation = results.get('imputation')
    if imputation:
        parts.append(_section("Imputation"))
        parts.append(f"Imputation rounds: {imputation['n_iter']}\n\n")
        oob = pd.DataFrame({
            'n_imputed': imputation['n_imputed'],
            'oob_nrmse': imputation['oob_error'],
        })
        parts.append(_table(oob))

    model = results.get('model')
    if model is not None:
        parts.append(_section("Random Forest model"))
        parts.append(f"Predictors: {', '.join(model.predictors)}\n\n")
        if model.cv_results is not None:
            parts.append("Repeated cross-validation on the training partition:\n\n")
            parts.append(_table(model.cv_results, index=False))

    evaluation = results.get('evaluation')
    if evaluation:
        metrics = evaluation['metrics']
        parts.append(_section("Test set performance", 3))
        parts.append(f"- R²: {metrics['r2']:.4f}\n- RMSE: {metrics['rmse']:.4f}\n"
                     f"- MAE: {metrics['mae']:.4f}\n- Test rows: {metrics['n_samples']}\n")
        parts.append(_section("Variable importance", 3))
        parts.append(_table(evaluation['importance'], index=False, float_format="{:.2f}"))
        shift = evaluation.get('distribution_shift')
        if shift and shift['shifted']:
            parts.append(
                f"\n> With only {metrics['n_samples']} test years the partitions differ: "
                f"mean {target} is {shift['train_mean']:.2f} in training and "
                f"{shift['test_mean']:.2f} in test. Treat the metrics as indicative.\n"
            )
        elif shift:
            parts.append(
                f"\n> Mean {target} is {shift['train_mean']:.2f} in training and "
                f"{shift['test_mean']:.2f} in test; the partitions are comparable.\n"
            )

    figures = results.get('figures', [])
    if figures:
        parts.append(_section("Figures"))
        prefix = f"{figures_dir.rstrip('/')}/" if figures_dir else ""
        for name in figures:
            parts.append(f"![{name}]({prefix}{name})\n\n")

    return "".join(parts)


def generate_report(
    results: Dict[str, Any],
    output_path: str = "reports/report.md",
    figures_dir: Optional[str] = "figures"
) -> str:
    """
    Write the Markdown report.

    Args:
        results: Output of the full pipeline run
        output_path: Destination file
        figures_dir: Figure location relative to the report

    Returns:
        Path to the written report
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    text = render_report(results, figures_dir=figures_dir)
    output_path.write_text(text, encoding='utf-8')

    logger.info(f"Report saved to {output_path}")
    return str(output_path)


def export_results(results: Dict[str, Any], output_path: str) -> str:
    """
    Export the headline numbers of a run as JSON.

    Args:
        results: Output of the full pipeline run
        output_path: Destination file

    Returns:
        Path to the written file
    """
    evaluation = results.get('evaluation') or {}
    reduction = results.get('reduction') or {}
    imputation = results.get('imputation') or {}

    record = {
        'generated_at': results.get('generated_at', datetime.now().isoformat()),
        'target': results.get('target', 'gold_price'),
        'n_years': len(results['joined']) if results.get('joined') is not None else 0,
        'indicator_columns': len(results.get('indicator_columns', [])),
        'dropped': reduction.get('dropped', []),
        'selected': reduction.get('selected', []),
        'oob_error': imputation['oob_error'].to_dict() if 'oob_error' in imputation else {},
        'metrics': evaluation.get('metrics', {}),
        'importance': evaluation['importance'].to_dict(orient='records') if 'importance' in evaluation else [],
    }

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w') as f:
        json.dump(to_builtin(record), f, indent=2)

    logger.info(f"Results exported to {output_path}")
    return str(output_path)
