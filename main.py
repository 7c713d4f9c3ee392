#!/usr/bin/env python3
"""
Gold Price Report - Main Pipeline
=================================

Regenerates the gold price / development indicator report.

Phases:
    1. Load and normalize the six sources
    2. EDA - Descriptive summaries
    3. Correlation - Indicator correlations
    4. Join - Yearly indicators, gold and S&P
    5. Training - Collinearity reduction, imputation, Random Forest
    6. Evaluation - Test metrics and variable importance
    7. Report - Figures, Markdown report and JSON record

Usage:
    # Regenerate the complete report
    python main.py

    # Stop after a phase
    python main.py --phase correlate

    # Run with custom config
    python main.py --config config/custom.yaml
"""

import argparse
import logging
import sys
from pathlib import Path
from datetime import datetime

import matplotlib
matplotlib.use("Agg")

from gold_report.data_loader import load_config
from gold_report.pipeline import PHASES, run_full_pipeline


def setup_logging(level: str = "INFO", log_dir: str = "logs") -> None:
    """Configure logging for the pipeline."""
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(
                Path(log_dir) / f'pipeline_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log'
            )
        ]
    )


def _log_level(config_path: str, verbose: bool) -> str:
    if verbose:
        return "DEBUG"
    return load_config(config_path).get('logging', {}).get('level', 'INFO')


def main():
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description="Gold price vs. World Development Indicators report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py
  python main.py --phase join
  python main.py --config config/custom.yaml
        """
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config/config.yaml',
        help='Path to configuration file (default: config/config.yaml)'
    )

    parser.add_argument(
        '--phase', '-p',
        type=str,
        choices=PHASES,
        default='all',
        help='Last phase to run (default: all)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args()

    if not Path(args.config).exists():
        print(f"Error: Config file not found: {args.config}")
        return 1

    setup_logging(_log_level(args.config, args.verbose))

    print("\n" + "=" * 70)
    print("GOLD PRICE REPORT")
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70)

    try:
        results = run_full_pipeline(args.config, stop_after=args.phase)
    except Exception as e:
        logging.error(f"Pipeline failed: {e}", exc_info=True)
        print(f"\n❌ Pipeline failed: {e}")
        return 1

    print("\n" + "=" * 70)
    print("PIPELINE COMPLETE")
    print("=" * 70)
    if 'evaluation' in results:
        metrics = results['evaluation']['metrics']
        print(f"  • Model R²: {metrics['r2']:.4f}")
        print(f"  • Model RMSE: {metrics['rmse']:.4f}")
    if 'report_path' in results:
        print(f"  • Report: {results['report_path']}")
    print(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70 + "\n")

    return 0


if __name__ == "__main__":
    sys.exit(main())
