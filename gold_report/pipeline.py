"""
Pipeline Module
===============

Orchestrates the report phases. Each phase takes the values produced by
the previous ones and returns new values; nothing is shared implicitly.

Phases:
    1. Load - Read the six raw sources
    2. Normalize - Tidy each source
    3. EDA - Descriptive summaries
    4. Correlate - Indicator correlations
    5. Join - Yearly indicators + gold + S&P
    6. Reduce - Remove collinear predictors
    7. Impute - Fill missing predictor values
    8. Train - Stratified split and cross-validated Random Forest
    9. Evaluate - Test metrics and variable importance
   10. Report - Markdown and JSON outputs
"""

import logging
from pathlib import Path
from datetime import datetime
from typing import Dict, Any

import pandas as pd

from .data_loader import load_config, load_datasets, print_data_summary
from .preprocessing import normalize_datasets
from .eda import generate_eda_report, generate_model_figures
from .correlation import indicator_correlations, overview_pairs, correlation_matrix, target_pairs
from .joining import join_yearly, gold_mid_price
from .collinearity import reduce_predictors
from .imputation import impute_missing
from .model import stratified_split, train_model, print_model_summary
from .evaluation import evaluate_model, print_evaluation_report
from .report import generate_report, export_results

logger = logging.getLogger(__name__)

PHASES = ['load', 'eda', 'correlate', 'join', 'train', 'evaluate', 'all']


def _analysis(config: Dict[str, Any]) -> Dict[str, Any]:
    return config.get('analysis', {})


def _target(config: Dict[str, Any]) -> str:
    return _analysis(config).get('target', 'gold_price')


def run_correlation(tidy: Dict[str, pd.DataFrame], config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Phase 4: correlate the indicators that pass the completeness filter.

    Returns:
        Dictionary with `indicator_columns`, `indicator_corr` and
        `indicator_overview`
    """
    analysis = _analysis(config)

    logger.info("=" * 60)
    logger.info("CORRELATION ANALYSIS (Phase 4)")
    logger.info("=" * 60)

    columns, corr = indicator_correlations(
        tidy['wdi'],
        max_missing=analysis.get('max_missing', 0.5)
    )
    overview = overview_pairs(
        corr,
        lower=analysis.get('overview_lower', 0.6),
        upper=analysis.get('overview_upper', 0.9)
    )
    logger.info(f"Overview pairs in band: {len(overview)}")

    return {
        'indicator_columns': columns,
        'indicator_corr': corr,
        'indicator_overview': overview,
    }


def run_join(
    tidy: Dict[str, pd.DataFrame],
    indicator_columns: list,
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Phase 5: build the yearly table and the gold-focused correlation view.

    Returns:
        Dictionary with `joined`, `gold_mid` and `target_pairs`
    """
    analysis = _analysis(config)
    target = _target(config)

    joined = join_yearly(
        tidy['wdi'],
        tidy['gold'],
        tidy['sp500'],
        indicator_columns,
        world_label=analysis.get('world_label', 'World'),
        target=target
    )

    variables = [col for col in joined.columns if col != 'year']
    corr = correlation_matrix(joined, variables)
    pairs = target_pairs(corr, target, threshold=analysis.get('target_threshold', 0.6))

    return {
        'joined': joined,
        'gold_mid': gold_mid_price(tidy['gold'], name=target),
        'target_pairs': pairs,
    }


def run_modelling_table(
    joined: pd.DataFrame,
    reduction: Dict[str, Any],
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Phase 7: impute the selected predictors and assemble the model table.

    Raises:
        ValueError: If no predictor survived the reduction
    """
    target = _target(config)
    selected = reduction['selected']
    if not selected:
        raise ValueError(f"No predictor is correlated with {target} after reduction")

    imputation_config = config.get('imputation', {})
    imputation = impute_missing(
        joined[['year'] + selected],
        max_iter=imputation_config.get('max_iter', 10),
        n_estimators=imputation_config.get('n_estimators', 100),
        random_state=imputation_config.get('random_state', 42)
    )

    table = imputation['data'].copy()
    table['year'] = joined['year'].values
    table[target] = joined[target].values

    return {'imputation': imputation, 'table': table}


def run_training(table: pd.DataFrame, predictors: list, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Phase 8: stratified split and cross-validated training.

    Returns:
        Dictionary with `model`, `train` and `test`
    """
    model_config = config.get('model', {})
    target = _target(config)

    train, test = stratified_split(
        table,
        target,
        train_fraction=model_config.get('train_fraction', 0.75),
        groups=model_config.get('groups', 5),
        random_state=model_config.get('random_state', 42)
    )

    model = train_model(
        train,
        predictors,
        config,
        target=target,
        save_path=config.get('output', {}).get('model_path')
    )
    print_model_summary(model)

    return {'model': model, 'train': train, 'test': test}


def run_full_pipeline(config_path: str = "config/config.yaml", stop_after: str = 'all') -> Dict[str, Any]:
    """
    Execute the pipeline up to and including `stop_after`.

    Args:
        config_path: Path to configuration file
        stop_after: Last phase to run (see PHASES)

    Returns:
        Dictionary containing all phase results
    """
    if stop_after not in PHASES:
        raise ValueError(f"Unknown phase: {stop_after}. Choose from: {', '.join(PHASES)}")

    config = load_config(config_path)
    output = config.get('output', {})
    reports_dir = Path(output.get('reports_path', 'reports/'))
    target = _target(config)

    results: Dict[str, Any] = {
        'config': config,
        'target': target,
        'generated_at': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
    }

    raws = load_datasets(config)
    tidy = normalize_datasets(raws)
    for name, df in tidy.items():
        print_data_summary(df, name)
    results['tidy'] = tidy
    if stop_after == 'load':
        return results

    eda = generate_eda_report(tidy)
    results['summaries'] = eda['summaries']
    results['shapes'] = eda['shapes']
    if stop_after == 'eda':
        return results

    results.update(run_correlation(tidy, config))
    if stop_after == 'correlate':
        return results

    results.update(run_join(tidy, results['indicator_columns'], config))
    if stop_after == 'join':
        return results

    analysis = _analysis(config)
    results['reduction'] = reduce_predictors(
        results['joined'],
        target=target,
        exclude=['year'],
        cutoff=analysis.get('collinearity_cutoff', 0.9),
        threshold=analysis.get('target_threshold', 0.6)
    )

    modelling = run_modelling_table(results['joined'], results['reduction'], config)
    results['imputation'] = modelling['imputation']
    results['table'] = modelling['table']

    results.update(run_training(results['table'], results['reduction']['selected'], config))
    if stop_after == 'train':
        return results

    results['evaluation'] = evaluate_model(
        results['model'],
        results['test'],
        train=results['train'],
        output_dir=str(reports_dir)
    )
    print_evaluation_report(results['evaluation'])
    if stop_after == 'evaluate':
        return results

    figures = generate_model_figures(
        results['gold_mid'],
        results['joined'],
        results['indicator_corr'],
        results['reduction']['selected'],
        target=target,
        output_dir=str(reports_dir / 'figures'),
        animate=output.get('animate', True)
    )
    results['figures'] = figures + results['evaluation']['figures']

    results['report_path'] = generate_report(results, str(reports_dir / 'report.md'), figures_dir='figures')
    results['results_path'] = export_results(
        results,
        str(reports_dir / 'metrics' / 'results.json')
    )

    return results
