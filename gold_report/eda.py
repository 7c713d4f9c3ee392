"""
Exploratory Data Analysis (EDA) Module - Phase 3
=================================================

Descriptive statistics for every tidy table and the exploratory figures
of the report.

Functions:
    - summarize_columns: Completeness and distribution per column
    - plot_correlation_matrix: Lower-triangle correlation heatmap
    - plot_gold_price: Daily gold mid price over time
    - plot_yearly_series: Standardized yearly series of the joined table
    - plot_distributions: Histograms of the modelling variables
    - plot_target_scatter: Target vs each selected predictor
    - animate_gold_price: GIF of the yearly gold price, year by year
    - generate_eda_report: Summaries of every tidy table
    - generate_model_figures: All figures of the modelling data
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple

import pandas as pd
import numpy as np
import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation, PillowWriter
import seaborn as sns
from scipy import stats

logger = logging.getLogger(__name__)

# Set style for all plots
plt.style.use('seaborn-v0_8-whitegrid')
sns.set_palette("husl")


def summarize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Per-column completeness and distribution statistics.

    Args:
        df: Tidy table

    Returns:
        One row per column with dtype, count, missing, missing_fraction,
        completeness, and for numeric columns mean, std, min, 25%, 50%,
        75%, max and skew (NaN for other columns)
    """
    n_rows = len(df)
    rows = []

    for col in df.columns:
        series = df[col]
        count = int(series.count())
        missing = n_rows - count
        row = {
            'column': col,
            'dtype': str(series.dtype),
            'count': count,
            'missing': missing,
            'missing_fraction': missing / n_rows if n_rows else np.nan,
            'completeness': count / n_rows if n_rows else np.nan,
        }

        if pd.api.types.is_numeric_dtype(series) and count > 0:
            row.update({
                'mean': float(series.mean()),
                'std': float(series.std()),
                'min': float(series.min()),
                '25%': float(series.quantile(0.25)),
                '50%': float(series.quantile(0.50)),
                '75%': float(series.quantile(0.75)),
                'max': float(series.max()),
                'skew': float(series.skew()),
            })
        rows.append(row)

    columns = ['column', 'dtype', 'count', 'missing', 'missing_fraction', 'completeness',
               'mean', 'std', 'min', '25%', '50%', '75%', 'max', 'skew']
    return pd.DataFrame(rows).reindex(columns=columns).set_index('column')


def plot_correlation_matrix(
    corr_matrix: pd.DataFrame,
    title: str = "Correlation Matrix (Pearson, pairwise complete)",
    figsize: Tuple[int, int] = (12, 10),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Heatmap of a correlation matrix with the upper triangle masked.

    Annotations are only drawn for small matrices.
    """
    fig, ax = plt.subplots(figsize=figsize)

    mask = np.triu(np.ones_like(corr_matrix, dtype=bool), k=0)
    sns.heatmap(
        corr_matrix,
        mask=mask,
        annot=len(corr_matrix) <= 15,
        fmt='.2f',
        cmap='RdYlBu_r',
        center=0,
        square=True,
        linewidths=0.5,
        cbar_kws={"shrink": 0.8, "label": "Correlation"},
        ax=ax,
        vmin=-1,
        vmax=1
    )

    ax.set_title(title, fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Correlation matrix saved to {save_path}")

    return fig


def plot_gold_price(
    gold_mid: pd.DataFrame,
    column: str = "gold_price",
    figsize: Tuple[int, int] = (14, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """Daily gold mid price with a one-year rolling mean."""
    fig, ax = plt.subplots(figsize=figsize)

    series = gold_mid.set_index('date')[column]
    ax.plot(series.index, series.values, linewidth=0.6, alpha=0.6, label='Daily mid price')
    ax.plot(series.index, series.rolling(window=250, min_periods=1).mean(),
            color='red', linewidth=1.5, label='Rolling mean (250 days)')

    ax.set_xlabel('Date')
    ax.set_ylabel('USD per troy ounce')
    ax.set_title('Gold Price (mean of AM/PM fixings)', fontsize=14, fontweight='bold')
    ax.legend(loc='upper left')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Gold price plot saved to {save_path}")

    return fig


def plot_yearly_series(
    joined: pd.DataFrame,
    columns: List[str],
    figsize: Tuple[int, int] = (14, 7),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Yearly series of the joined table, z-scored so they share one axis.
    """
    fig, ax = plt.subplots(figsize=figsize)

    for col in columns:
        series = joined[col]
        std = series.std()
        scaled = (series - series.mean()) / std if std and std > 0 else series * 0.0
        ax.plot(joined['year'], scaled, marker='o', markersize=3, linewidth=1.2, label=col)

    ax.set_xlabel('Year')
    ax.set_ylabel('Standardized value')
    ax.set_title('Yearly Series (z-scores)', fontsize=14, fontweight='bold')
    ax.legend(loc='upper left', fontsize=7, ncol=2)
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Yearly series plot saved to {save_path}")

    return fig


def plot_distributions(
    df: pd.DataFrame,
    columns: List[str],
    figsize: Tuple[int, int] = (14, 10),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Create distribution plots (histogram + KDE) for the given columns.

    Args:
        df: DataFrame with numerical data
        columns: Columns to plot
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    n_cols = len(columns)
    n_rows = max(1, (n_cols + 1) // 2)

    fig, axes = plt.subplots(n_rows, 2, figsize=figsize, squeeze=False)
    axes = axes.flatten()

    for idx, col in enumerate(columns):
        ax = axes[idx]
        values = df[col].dropna()

        sns.histplot(values, kde=len(values) > 2, ax=ax, bins=20, alpha=0.7)
        ax.axvline(values.mean(), color='red', linestyle='--', label=f'Mean: {values.mean():.2f}')
        ax.axvline(values.median(), color='green', linestyle='--', label=f'Median: {values.median():.2f}')

        # normaltest needs at least 8 observations
        if len(values) >= 8:
            _, p_value = stats.normaltest(values)
            normality = "Normal" if p_value > 0.05 else "Non-Normal"
            ax.set_title(f'{col} ({normality}, p={p_value:.3f})', fontsize=10, fontweight='bold')
        else:
            ax.set_title(col, fontsize=10, fontweight='bold')
        ax.legend(fontsize=8)

    # Hide unused subplots
    for idx in range(n_cols, len(axes)):
        axes[idx].set_visible(False)

    plt.suptitle('Distribution Analysis', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Distribution plots saved to {save_path}")

    return fig


def plot_target_scatter(
    df: pd.DataFrame,
    predictors: List[str],
    target: str = "gold_price",
    figsize: Tuple[int, int] = (14, 10),
    save_path: Optional[str] = None
) -> plt.Figure:
    """Target against each predictor, with a linear fit."""
    n_cols = len(predictors)
    n_rows = max(1, (n_cols + 1) // 2)

    fig, axes = plt.subplots(n_rows, 2, figsize=figsize, squeeze=False)
    axes = axes.flatten()

    for idx, col in enumerate(predictors):
        ax = axes[idx]
        sns.regplot(data=df, x=col, y=target, ax=ax, scatter_kws={'s': 20, 'alpha': 0.7})
        r = df[[col, target]].corr().iloc[0, 1]
        ax.set_title(f'{col} (r={r:.3f})', fontsize=10, fontweight='bold')

    for idx in range(n_cols, len(axes)):
        axes[idx].set_visible(False)

    plt.suptitle(f'{target} vs Selected Predictors', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Target scatter plots saved to {save_path}")

    return fig


def animate_gold_price(
    joined: pd.DataFrame,
    target: str = "gold_price",
    figsize: Tuple[int, int] = (10, 5),
    fps: int = 4,
    save_path: Optional[str] = None
) -> FuncAnimation:
    """
    Animated line of the yearly gold price, one frame per year.

    Saved as GIF through Pillow when `save_path` is given.
    """
    years = joined['year'].values
    values = joined[target].values

    fig, ax = plt.subplots(figsize=figsize)
    line, = ax.plot([], [], marker='o', markersize=3, color='goldenrod')
    ax.set_xlim(years.min() - 1, years.max() + 1)
    ax.set_ylim(0, np.nanmax(values) * 1.1)
    ax.set_xlabel('Year')
    ax.set_ylabel('USD per troy ounce')
    ax.set_title('Yearly Mean Gold Price', fontsize=14, fontweight='bold')

    def update(frame: int):
        line.set_data(years[:frame + 1], values[:frame + 1])
        return line,

    animation = FuncAnimation(fig, update, frames=len(years), interval=1000 // fps, blit=True)

    if save_path:
        animation.save(save_path, writer=PillowWriter(fps=fps))
        logger.info(f"Gold price animation saved to {save_path}")

    return animation


def generate_eda_report(tables: Dict[str, pd.DataFrame]) -> Dict[str, Any]:
    """
    Summarize every tidy table.

    Args:
        tables: Tidy tables keyed by dataset name

    Returns:
        Dictionary containing per-table summaries and shapes
    """

    logger.info("=" * 60)
    logger.info("STARTING EXPLORATORY DATA ANALYSIS (Phase 3)")
    logger.info("=" * 60)

    report = {
        "summaries": {},
        "shapes": {},
    }

    for name, df in tables.items():
        logger.info(f"Summarizing {name}...")
        report["summaries"][name] = summarize_columns(df)
        report["shapes"][name] = df.shape

    logger.info("EDA summaries complete for %d tables", len(tables))
    return report


def generate_model_figures(
    gold_mid: pd.DataFrame,
    joined: pd.DataFrame,
    indicator_corr: pd.DataFrame,
    selected: List[str],
    target: str = "gold_price",
    output_dir: str = "reports/figures/",
    animate: bool = True
) -> List[str]:
    """
    Figures describing the modelling data.

    Args:
        gold_mid: Daily gold mid prices
        joined: Yearly joined table
        indicator_corr: Indicator correlation matrix
        selected: Predictors chosen for the model
        target: Target column
        output_dir: Directory to save figures
        animate: Whether to render the GIF animation

    Returns:
        File names of the figures written
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    figures = []

    logger.info("Computing correlation heatmap...")
    plot_correlation_matrix(indicator_corr, save_path=str(output_dir / "01_indicator_correlation.png"))
    figures.append("01_indicator_correlation.png")

    logger.info("Plotting gold price...")
    plot_gold_price(gold_mid, column=target, save_path=str(output_dir / "02_gold_price.png"))
    figures.append("02_gold_price.png")

    modelled = [target] + list(selected)
    plot_yearly_series(joined, modelled, save_path=str(output_dir / "03_yearly_series.png"))
    figures.append("03_yearly_series.png")

    plot_distributions(joined, modelled, save_path=str(output_dir / "04_distributions.png"))
    figures.append("04_distributions.png")

    if selected:
        plot_target_scatter(joined, list(selected), target=target,
                            save_path=str(output_dir / "05_target_scatter.png"))
        figures.append("05_target_scatter.png")

    if animate and len(joined) > 1:
        animate_gold_price(joined, target=target, save_path=str(output_dir / "06_gold_price.gif"))
        figures.append("06_gold_price.gif")

    plt.close('all')
    return figures
