"""
Gold Report
===========

An analytical pipeline relating the gold price to World Development
Indicators, with a Random Forest model predicting the yearly gold price.

Modules:
    - data_loader: Source file ingestion and schema checks (Phase 1)
    - preprocessing: Per-dataset reshaping into tidy tables (Phase 2)
    - eda: Descriptive summaries and exploratory figures (Phase 3)
    - correlation: Pairwise-complete correlation and pair filters (Phase 4)
    - joining: Yearly join of indicators, gold and S&P (Phase 5)
    - collinearity: Removal of highly inter-correlated predictors (Phase 6)
    - imputation: Random-forest iterative imputation (Phase 7)
    - model: Stratified split and Random Forest training (Phase 8)
    - evaluation: Test-set metrics and variable importance (Phase 9)
    - report: Markdown/JSON report rendering (Phase 10)
    - pipeline: Phase orchestration
"""

__version__ = "1.0.0"
