"""
MLflow experiment management.

One parent run per analysis with a nested run per target.
"""

import math
from pathlib import Path
from typing import Any

import mlflow
import mlflow.sklearn

from pigmentrf import __version__
from pigmentrf.config.settings import PipelineConfig
from pigmentrf.evaluation.report import TargetResult
from pigmentrf.utils.logging import get_logger

log = get_logger(__name__)


class AnalysisExperiment:
    """
    MLflow tracking for a pigmentation analysis.

    Logs split and CV parameters, test metrics, report files and fitted
    pipelines.
    """

    def __init__(self, config: PipelineConfig) -> None:
        """
        Initialize experiment.

        Args:
            config: Pipeline configuration.
        """
        self.config = config
        self._run_id: str | None = None

    @property
    def run_id(self) -> str | None:
        """ID of the active parent run."""
        return self._run_id

    def setup(self) -> None:
        """Setup MLflow experiment."""
        mlflow.set_tracking_uri(self.config.mlflow.tracking_uri)
        artifact_location = self.config.mlflow.artifact_location
        if artifact_location and mlflow.get_experiment_by_name(self.config.experiment_name) is None:
            mlflow.create_experiment(self.config.experiment_name, artifact_location=artifact_location)
        mlflow.set_experiment(self.config.experiment_name)

        log.info(
            "Experiment setup",
            name=self.config.experiment_name,
            tracking_uri=self.config.mlflow.tracking_uri,
        )

    def start_run(self, run_name: str | None = None) -> str:
        """
        Start the parent MLflow run.

        Args:
            run_name: Optional run name.

        Returns:
            Run ID.
        """
        self.setup()

        tags = {
            "project": self.config.project,
            "pipeline_version": __version__,
            "model": self.config.model.name,
        }
        run = mlflow.start_run(run_name=run_name, tags=tags)
        self._run_id = run.info.run_id

        self.log_params(
            {
                "test_size": self.config.training.test_size,
                "cv_folds": self.config.training.cv_folds,
                "random_state": self.config.training.random_state,
                "scoring": self.config.training.scoring,
                "encoding": self.config.training.encoding,
                "n_markers": len(self.config.markers),
                "drop_incomplete": self.config.cleaning.drop_incomplete,
                "min_class_size": self.config.cleaning.min_class_size,
            }
        )

        log.info("Started MLflow run", run_id=self._run_id)
        return self._run_id

    def log_params(self, params: dict[str, Any]) -> None:
        """Log parameters."""
        mlflow.log_params(params)

    def log_metrics(self, metrics: dict[str, float]) -> None:
        """Log metrics, skipping undefined values."""
        mlflow.log_metrics({k: float(v) for k, v in metrics.items() if not math.isnan(float(v))})

    def log_artifact(self, path: Path, artifact_path: str | None = None) -> None:
        """Log an artifact."""
        mlflow.log_artifact(str(path), artifact_path)

    def log_target(self, result: TargetResult) -> None:
        """
        Log one target's results in a nested run.

        Args:
            result: Target result.
        """
        with mlflow.start_run(run_name=result.target, nested=True):
            mlflow.set_tag("target", result.target)
            trained = result.trained

            params: dict[str, Any] = {
                "model": trained.name,
                "levels": ",".join(result.data.levels),
                "n_train": len(result.data.y_train),
                "n_test": len(result.data.y_test),
                "cv_splits": trained.n_splits,
            }
            if result.data.dropped_levels:
                params["dropped_levels"] = ",".join(result.data.dropped_levels)
            for key, value in (trained.best_params or {}).items():
                params[key.removeprefix("model__")] = value
            self.log_params(params)

            metrics = {**trained.cv_scores, **result.evaluation.metrics.to_dict()}
            roc = result.evaluation.roc
            if roc is not None:
                metrics["macro_auc"] = roc.macro_auc
                if roc.multiclass_auc is not None:
                    metrics["multiclass_auc"] = roc.multiclass_auc
                for level, value in roc.auc.items():
                    metrics[f"auc_{level}"] = value
            if result.reference is not None:
                metrics["reference_accuracy"] = result.reference.metrics.accuracy
                metrics["reference_kappa"] = result.reference.metrics.kappa
            self.log_metrics(metrics)

            if result.predictions_path is not None:
                self.log_artifact(result.predictions_path, "predictions")
            mlflow.sklearn.log_model(trained.pipeline, artifact_path="model")

        log.info("Logged target to MLflow", target=result.target)

    def end_run(self, report_paths: dict[str, Path] | None = None) -> None:
        """
        End the parent MLflow run.

        Args:
            report_paths: Rendered reports to attach.
        """
        for path in (report_paths or {}).values():
            self.log_artifact(path, "report")
        mlflow.end_run()
        log.info("Ended MLflow run", run_id=self._run_id)
