"""
Model Training Module - Phase 8
================================

Trains a Random Forest regressor predicting the yearly gold price from
the selected development indicators.

Features:
    - Stratified train/test split on the target's quantiles
    - Repeated k-fold cross-validation to tune `max_features`
    - Backend interface (fit / predict / feature_importances) so the
      regression algorithm can be swapped without touching the pipeline
    - Model persistence (save/load)
"""

import math
import logging
from pathlib import Path
from typing import Dict, Any, Optional, Protocol, Sequence, Tuple
from datetime import datetime

import numpy as np
import pandas as pd
import joblib
from sklearn.ensemble import RandomForestRegressor
from sklearn.model_selection import GridSearchCV, RepeatedKFold, train_test_split

logger = logging.getLogger(__name__)

UNTRAINED = "untrained"
SPLIT = "split"
CROSS_VALIDATED = "cross_validated"
EVALUATED = "evaluated"


class RegressionBackend(Protocol):
    """Any regressor the pipeline can train: fit, predict, feature_importances."""

    def fit(self, X: np.ndarray, y: np.ndarray) -> "RegressionBackend":
        ...

    def predict(self, X: np.ndarray) -> np.ndarray:
        ...

    def feature_importances(self) -> np.ndarray:
        ...


class RandomForestBackend:
    """
    Random Forest regressor tuned by repeated k-fold cross-validation.

    `max_features` is selected from a grid by mean cross-validated RMSE;
    the best setting is refitted on the whole training partition.
    """

    def __init__(
        self,
        n_estimators: int = 500,
        max_features_grid: Sequence[Any] = (0.33, 0.66, 1.0),
        cv_folds: int = 2,
        cv_repeats: int = 5,
        random_state: int = 42
    ):
        """
        Initialize the backend with hyperparameters.

        Args:
            n_estimators: Number of trees
            max_features_grid: Candidate `max_features` values
            cv_folds: Folds per cross-validation repeat
            cv_repeats: Number of repeats
            random_state: Random seed for folds and forests
        """
        self.n_estimators = n_estimators
        self.max_features_grid = list(max_features_grid)
        self.cv_folds = cv_folds
        self.cv_repeats = cv_repeats
        self.random_state = random_state

        self.estimator_: Optional[RandomForestRegressor] = None
        self.best_params_: Dict[str, Any] = {}
        self.cv_results_: Optional[pd.DataFrame] = None

    def fit(self, X: np.ndarray, y: np.ndarray) -> "RandomForestBackend":
        cv = RepeatedKFold(
            n_splits=self.cv_folds,
            n_repeats=self.cv_repeats,
            random_state=self.random_state
        )
        search = GridSearchCV(
            RandomForestRegressor(
                n_estimators=self.n_estimators,
                random_state=self.random_state
            ),
            param_grid={'max_features': self.max_features_grid},
            cv=cv,
            scoring='neg_root_mean_squared_error',
            refit=True
        )
        search.fit(X, y)

        self.estimator_ = search.best_estimator_
        self.best_params_ = dict(search.best_params_)
        self.cv_results_ = pd.DataFrame({
            'max_features': search.cv_results_['param_max_features'].tolist(),
            'cv_rmse': -search.cv_results_['mean_test_score'],
            'cv_rmse_std': search.cv_results_['std_test_score'],
        })

        logger.info(f"Cross-validation ({self.cv_folds}-fold × {self.cv_repeats}):")
        for _, row in self.cv_results_.iterrows():
            logger.info(f"  - max_features={row['max_features']}: RMSE {row['cv_rmse']:.4f}")
        logger.info(f"Selected: {self.best_params_}")

        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        if self.estimator_ is None:
            raise ValueError("Backend must be fitted before prediction. Call fit() first.")
        return self.estimator_.predict(X)

    def feature_importances(self) -> np.ndarray:
        if self.estimator_ is None:
            raise ValueError("Backend must be fitted first.")
        return self.estimator_.feature_importances_


def stratified_split(
    df: pd.DataFrame,
    target: str,
    train_fraction: float = 0.75,
    groups: int = 5,
    random_state: int = 42
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Split rows into train/test partitions stratified on the target.

    The target is binned into quantile groups (at most `groups`, each of
    at least four rows) and the bins are used as strata. When the bins
    cannot stratify the requested sizes, the split falls back to plain
    random sampling. The test partition holds `ceil(n * (1 - p))` rows.

    Args:
        df: Modelling table
        target: Column to stratify on
        train_fraction: Fraction of rows for training
        groups: Maximum number of quantile groups
        random_state: Random seed

    Returns:
        Tuple of (train, test), each keeping the original index

    Raises:
        ValueError: If the target has missing values, the fraction is
            invalid or there are fewer than two rows
    """
    if not 0 < train_fraction < 1:
        raise ValueError(f"train_fraction must be in (0, 1), got {train_fraction}")

    y = df[target]
    if y.isna().any():
        raise ValueError(f"Target '{target}' has missing values; cannot stratify")
    if len(df) < 2:
        raise ValueError(f"Need at least 2 rows to split, got {len(df)}")

    test_size = 1 - train_fraction
    n_test = math.ceil(len(df) * test_size)
    n_groups = max(1, min(groups, len(df) // 4))
    bins = pd.qcut(y.rank(method='first'), q=n_groups, labels=False)

    stratify = bins
    if bins.value_counts().min() < 2 or min(n_test, len(df) - n_test) < n_groups:
        logger.warning(f"Quantile bins too small to stratify {len(df)} rows; using a random split")
        stratify = None

    train, test = train_test_split(
        df,
        test_size=test_size,
        stratify=stratify,
        random_state=random_state
    )
    train = train.sort_index()
    test = test.sort_index()

    logger.info(f"Stratified split: {len(train)} train rows, {len(test)} test rows ({n_groups} groups)")
    return train, test


class GoldPriceModel:
    """
    A regression model bound to an ordered predictor list and a target.

    Lifecycle: untrained -> split -> cross_validated (trained) -> evaluated.
    Once trained the model is never refitted.
    """

    def __init__(
        self,
        predictors: Sequence[str],
        target: str = "gold_price",
        backend: Optional[RegressionBackend] = None
    ):
        if not predictors:
            raise ValueError("At least one predictor is required")
        if target in predictors:
            raise ValueError(f"Target '{target}' cannot be a predictor")

        self.predictors = list(predictors)
        self.target = target
        self.backend = backend if backend is not None else RandomForestBackend()

        self.state = UNTRAINED
        self.training_info: Dict[str, Any] = {}
        self._is_fitted = False

    def mark_split(self) -> None:
        """Record that the data has been partitioned."""
        if self.state != UNTRAINED:
            raise ValueError(f"Cannot mark split from state '{self.state}'")
        self.state = SPLIT

    def mark_evaluated(self) -> None:
        """Record that the model has been scored on the test partition."""
        if not self._is_fitted:
            raise ValueError("Model must be trained before evaluation.")
        self.state = EVALUATED

    def _features(self, frame: pd.DataFrame) -> np.ndarray:
        missing = [col for col in self.predictors if col not in frame.columns]
        if missing:
            raise ValueError(f"Missing predictor columns: {missing}")
        return frame[self.predictors].astype(float).values

    def fit(self, train: pd.DataFrame) -> "GoldPriceModel":
        """
        Train the backend on the training partition.

        Args:
            train: Training rows holding the predictors and the target

        Returns:
            Self for method chaining
        """
        if self._is_fitted:
            raise ValueError("Model is already trained; create a new model to retrain.")

        start_time = datetime.now()

        logger.info("=" * 60)
        logger.info("STARTING MODEL TRAINING (Phase 8)")
        logger.info("=" * 60)
        logger.info(f"Training rows: {len(train)}, predictors: {self.predictors}")

        X = self._features(train)
        y = train[self.target].astype(float).values

        self.backend.fit(X, y)

        training_duration = (datetime.now() - start_time).total_seconds()
        self.training_info = {
            'training_duration_seconds': training_duration,
            'n_samples': int(X.shape[0]),
            'n_features': int(X.shape[1]),
            'trained_at': datetime.now().isoformat(),
            'best_params': dict(getattr(self.backend, 'best_params_', {})),
        }

        self._is_fitted = True
        self.state = CROSS_VALIDATED

        logger.info(f"MODEL TRAINING COMPLETE in {training_duration:.2f} seconds")
        return self

    def predict(self, frame: pd.DataFrame) -> np.ndarray:
        """Predict the target for each row of `frame`."""
        if not self._is_fitted:
            raise ValueError("Model must be trained before prediction. Call fit() first.")
        return self.backend.predict(self._features(frame))

    def feature_importances(self) -> pd.Series:
        """Backend importances indexed by predictor name."""
        if not self._is_fitted:
            raise ValueError("Model must be trained first.")
        return pd.Series(
            np.asarray(self.backend.feature_importances(), dtype=float),
            index=self.predictors,
            name='importance'
        )

    @property
    def cv_results(self) -> Optional[pd.DataFrame]:
        return getattr(self.backend, 'cv_results_', None)

    def save(self, filepath: str) -> None:
        """
        Save the trained model to disk.

        Args:
            filepath: Path to save the model
        """
        if not self._is_fitted:
            raise ValueError("Cannot save untrained model.")

        state = {
            'predictors': self.predictors,
            'target': self.target,
            'backend': self.backend,
            'state': self.state,
            'training_info': self.training_info,
            '_is_fitted': self._is_fitted
        }

        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(state, filepath)
        logger.info(f"Model saved to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> "GoldPriceModel":
        """
        Load a trained model from disk.

        Args:
            filepath: Path to the saved model

        Returns:
            Loaded GoldPriceModel instance
        """
        state = joblib.load(filepath)

        model = cls(state['predictors'], state['target'], backend=state['backend'])
        model.state = state['state']
        model.training_info = state['training_info']
        model._is_fitted = state['_is_fitted']

        logger.info(f"Model loaded from {filepath}")
        return model


def build_backend(config: Dict[str, Any]) -> RandomForestBackend:
    """Create the Random Forest backend from the `model` config section."""
    model_config = config.get('model', {})
    return RandomForestBackend(
        n_estimators=model_config.get('n_estimators', 500),
        max_features_grid=model_config.get('max_features_grid', [0.33, 0.66, 1.0]),
        cv_folds=model_config.get('cv_folds', 2),
        cv_repeats=model_config.get('cv_repeats', 5),
        random_state=model_config.get('random_state', 42)
    )


def train_model(
    train: pd.DataFrame,
    predictors: Sequence[str],
    config: Dict[str, Any],
    target: str = "gold_price",
    save_path: Optional[str] = None
) -> GoldPriceModel:
    """
    Train a model using configuration parameters.

    Args:
        train: Training partition
        predictors: Ordered predictor columns
        config: Configuration dictionary
        target: Target column
        save_path: Path to save the trained model (optional)

    Returns:
        Trained GoldPriceModel
    """
    model = GoldPriceModel(predictors, target=target, backend=build_backend(config))
    model.mark_split()
    model.fit(train)

    if save_path:
        model.save(save_path)

    return model


def print_model_summary(model: GoldPriceModel) -> None:
    """
    Print a summary of the trained model.

    Args:
        model: Trained model instance
    """
    print("\n" + "=" * 50)
    print("MODEL SUMMARY")
    print("=" * 50)
    print(f"Model Type: {type(model.backend).__name__}")
    print(f"Target: {model.target}")
    print(f"Predictors ({len(model.predictors)}): {', '.join(model.predictors)}")
    print(f"State: {model.state}")

    if model.training_info:
        print(f"\nTraining Info:")
        print(f"  - Duration: {model.training_info.get('training_duration_seconds', 0):.2f}s")
        print(f"  - Samples: {model.training_info.get('n_samples', 'N/A')}")
        print(f"  - Best parameters: {model.training_info.get('best_params', {})}")

    if model.cv_results is not None:
        print("\nCross-validation:")
        print(model.cv_results.round(4).to_string(index=False))

    print("=" * 50 + "\n")
