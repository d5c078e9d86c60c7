"""
Model training functionality.

Fits one cross-validated classifier per target: genotype encoding and the
forest share a single sklearn Pipeline so that encoding is re-fitted inside
every CV fold.
"""

import time
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator
from sklearn.metrics import accuracy_score, cohen_kappa_score, make_scorer
from sklearn.model_selection import GridSearchCV, StratifiedKFold, cross_validate
from sklearn.pipeline import Pipeline

from pigmentrf.config.settings import PipelineConfig
from pigmentrf.modeling.data import TargetData
from pigmentrf.modeling.models import MODEL_REGISTRY, get_model, get_param_grid
from pigmentrf.modeling.preprocessing import build_preprocessor
from pigmentrf.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class TrainedModel:
    """
    Container for a trained classifier with metadata.

    Attributes:
        name: Model name.
        target: Target name.
        pipeline: Fitted sklearn pipeline (preprocessor + model).
        classes: Class levels in configured order.
        cv_scores: Cross-validation scores including overfitting metrics.
        cv_results: Grid search results (one row per candidate).
        best_params: Best hyperparameters (if tuned).
        feature_names: Input marker names.
        n_splits: Number of CV folds actually used.
        training_time_s: Total training time in seconds.
    """

    name: str
    target: str
    pipeline: BaseEstimator
    classes: list[str]
    cv_scores: dict[str, float] = field(default_factory=dict)
    cv_results: pd.DataFrame | None = None
    best_params: dict[str, Any] | None = None
    feature_names: list[str] = field(default_factory=list)
    n_splits: int = 0
    training_time_s: float = 0.0

    def predict(self, X: pd.DataFrame) -> pd.Series:
        """Predict class labels."""
        return pd.Series(self.pipeline.predict(X), index=X.index, name="predicted")

    def predict_proba(self, X: pd.DataFrame) -> pd.DataFrame:
        """
        Predict class probabilities.

        sklearn orders `classes_` lexically; the returned frame is reordered
        to the configured level order.
        """
        proba = self.pipeline.predict_proba(X)
        classes = [str(c) for c in self.pipeline.classes_]
        frame = pd.DataFrame(proba, index=X.index, columns=classes)
        return frame.reindex(columns=self.classes, fill_value=0.0)


def _kappa_scorer() -> Any:
    """Cohen's kappa as a CV scorer."""
    return make_scorer(cohen_kappa_score)


class ModelTrainer:
    """
    Trainer for pigmentation classifiers.

    Handles preprocessing, model fitting, and max_features tuning with
    stratified k-fold cross-validation.
    """

    def __init__(self, config: PipelineConfig) -> None:
        """
        Initialize trainer.

        Args:
            config: Pipeline configuration.
        """
        self.config = config

    def _cv_splitter(self, y: pd.Series) -> StratifiedKFold:
        """
        Build the stratified CV splitter.

        The number of folds is capped at the size of the smallest class so
        that every fold contains every class.
        """
        requested = self.config.training.cv_folds
        smallest = int(y.value_counts().min())
        n_splits = min(requested, smallest)

        if n_splits < 2:
            msg = (
                f"Cannot cross-validate: smallest training class has {smallest} "
                "sample(s), at least 2 are required"
            )
            raise ValueError(msg)
        if n_splits < requested:
            log.warning(
                "Reducing CV folds to smallest class size",
                requested=requested,
                used=n_splits,
            )

        return StratifiedKFold(
            n_splits=n_splits,
            shuffle=True,
            random_state=self.config.training.random_state,
        )

    def build_pipeline(self, name: str, markers: list[str]) -> Pipeline:
        """Build the unfitted preprocessing + model pipeline."""
        params = {"random_state": self.config.training.random_state, **self.config.model.params}
        return Pipeline(
            steps=[
                ("preprocessor", build_preprocessor(markers, self.config.training.encoding)),
                ("model", get_model(name, **params)),
            ]
        )

    def train(
        self,
        data: TargetData,
        model_name: str | None = None,
        *,
        tune: bool | None = None,
    ) -> TrainedModel:
        """
        Train a classifier for one target.

        Args:
            data: Train/test split of the target.
            model_name: Model to train (default: from config).
            tune: Whether to grid-search hyperparameters (default: from config).

        Returns:
            Trained model.

        Raises:
            KeyError: If the model name is unknown.
            ValueError: If the training data cannot be cross-validated.
        """
        name = model_name or self.config.model.name
        if name not in MODEL_REGISTRY:
            available = ", ".join(MODEL_REGISTRY)
            msg = f"Unknown model '{name}'. Available: {available}"
            raise KeyError(msg)
        if tune is None:
            tune = self.config.model.tune

        X, y = data.X_train, data.y_train
        log.info(
            "Starting training",
            target=data.target,
            model=name,
            n_samples=len(X),
            n_features=X.shape[1],
            classes=data.levels,
        )

        training_start = time.perf_counter()
        cv = self._cv_splitter(y)
        pipeline = self.build_pipeline(name, data.feature_names)

        best_params = None
        cv_results = None
        grid = get_param_grid(name)

        if tune and grid:
            gs = GridSearchCV(
                pipeline,
                param_grid=grid,
                cv=cv,
                scoring=self.config.training.scoring,
                refit=True,
            )
            gs.fit(X, y)
            pipeline = gs.best_estimator_
            best_params = gs.best_params_
            cv_results = _tidy_cv_results(gs.cv_results_)
            log.info(
                "Hyperparameter tuning complete",
                best_params=best_params,
                best_score=f"{gs.best_score_:.4f}",
            )
        else:
            pipeline.fit(X, y)

        training_time_s = time.perf_counter() - training_start
        cv_scores = self._calculate_cv_scores(pipeline, X, y, cv, training_time_s)

        return TrainedModel(
            name=name,
            target=data.target,
            pipeline=pipeline,
            classes=list(data.levels),
            cv_scores=cv_scores,
            cv_results=cv_results,
            best_params=best_params,
            feature_names=data.feature_names,
            n_splits=cv.get_n_splits(),
            training_time_s=training_time_s,
        )

    def _calculate_cv_scores(
        self,
        pipeline: BaseEstimator,
        X: pd.DataFrame,
        y: pd.Series,
        cv: StratifiedKFold,
        training_time_s: float = 0.0,
    ) -> dict[str, float]:
        """
        Calculate cross-validation scores with overfitting detection.

        - accuracy_cv: mean accuracy across CV folds
        - accuracy_no_cv: accuracy on the full training set
        - accuracy_gap: difference indicating overfitting
        """
        results = cross_validate(
            pipeline,
            X,
            y,
            cv=cv,
            scoring={"accuracy": "accuracy", "kappa": _kappa_scorer()},
        )

        scores: dict[str, float] = {
            "accuracy_cv": float(np.mean(results["test_accuracy"])),
            "accuracy_std": float(np.std(results["test_accuracy"])),
            "kappa_cv": float(np.nanmean(results["test_kappa"])),
        }
        scores["accuracy_no_cv"] = float(accuracy_score(y, pipeline.predict(X)))
        scores["accuracy_gap"] = scores["accuracy_no_cv"] - scores["accuracy_cv"]
        scores["training_time_s"] = training_time_s

        log.info(
            "CV scores calculated",
            accuracy_cv=f"{scores['accuracy_cv']:.4f}",
            accuracy_no_cv=f"{scores['accuracy_no_cv']:.4f}",
            kappa_cv=f"{scores['kappa_cv']:.4f}",
        )
        return scores


def _tidy_cv_results(cv_results: dict[str, Any]) -> pd.DataFrame:
    """Reduce GridSearchCV.cv_results_ to one readable row per candidate."""
    df = pd.DataFrame(cv_results)
    param_cols = [c for c in df.columns if c.startswith("param_")]
    tidy = df[[*param_cols, "mean_test_score", "std_test_score", "rank_test_score"]].copy()
    tidy.columns = [
        c.removeprefix("param_model__").removeprefix("param_") for c in tidy.columns
    ]
    for col in tidy.columns:
        if tidy[col].dtype == object:
            tidy[col] = tidy[col].astype(str)
    return tidy.sort_values("rank_test_score").reset_index(drop=True)


def train_target(
    data: TargetData,
    config: PipelineConfig,
    model_name: str | None = None,
    *,
    tune: bool | None = None,
) -> TrainedModel:
    """
    Convenience function to train one target's classifier.

    Args:
        data: Target split.
        config: Pipeline configuration.
        model_name: Model to train (default: from config).
        tune: Whether to tune hyperparameters (default: from config).

    Returns:
        Trained model.
    """
    return ModelTrainer(config).train(data, model_name, tune=tune)
