"""
End-to-end analysis pipeline.

Runs load, clean, join, factor-encode, split, train, predict, evaluate and
render for every configured target.
"""

from dataclasses import dataclass, field
from pathlib import Path

import joblib
import pandas as pd
from rich.console import Console

from pigmentrf import __version__
from pigmentrf.config.settings import PipelineConfig
from pigmentrf.evaluation.metrics import aggregate_importances, evaluate_model, evaluate_reference
from pigmentrf.evaluation.report import (
    ReportData,
    TargetResult,
    print_dataset_summary,
    render_report,
    save_prediction_table,
)
from pigmentrf.ingestion.genotype import load_genotypes
from pigmentrf.ingestion.phenotype import load_phenotypes
from pigmentrf.modeling.data import PreparedDataset, prepare_dataset, split_target
from pigmentrf.modeling.training import ModelTrainer
from pigmentrf.utils.hashing import hash_dataframe, hash_file_content
from pigmentrf.utils.logging import get_logger, log_context

log = get_logger(__name__)


@dataclass
class AnalysisResult:
    """
    Result of a full analysis run.

    Attributes:
        dataset: Prepared dataset shared by all targets.
        results: Per-target results, in configured order.
        report_paths: Rendered reports by format.
        provenance: Input fingerprints and run settings.
    """

    dataset: PreparedDataset
    results: list[TargetResult]
    report_paths: dict[str, Path] = field(default_factory=dict)
    provenance: dict[str, str] = field(default_factory=dict)

    def get(self, target: str) -> TargetResult:
        """Look up the result of one target."""
        for result in self.results:
            if result.target == target:
                return result
        msg = f"No result for target '{target}'"
        raise KeyError(msg)

    def summary(self) -> pd.DataFrame:
        """Headline metrics per target."""
        rows = []
        for result in self.results:
            roc = result.evaluation.roc
            rows.append(
                {
                    "target": result.target,
                    "n_train": len(result.data.y_train),
                    "n_test": len(result.data.y_test),
                    "accuracy": result.evaluation.metrics.accuracy,
                    "kappa": result.evaluation.metrics.kappa,
                    "macro_auc": roc.macro_auc if roc else float("nan"),
                    "reference_accuracy": (
                        result.reference.metrics.accuracy if result.reference else float("nan")
                    ),
                }
            )
        return pd.DataFrame(rows)


class AnalysisPipeline:
    """
    Pigmentation analysis pipeline.

    Loads both input tables once, prepares the joined dataset and then
    trains and evaluates one classifier per target.
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        tune: bool | None = None,
        console: Console | None = None,
    ) -> None:
        """
        Initialize pipeline.

        Args:
            config: Pipeline configuration.
            tune: Whether to grid-search hyperparameters (default: from config).
            console: Optional console for printing tables.
        """
        self.config = config
        self.tune = config.model.tune if tune is None else tune
        self.console = console
        self.trainer = ModelTrainer(config)

    def prepare(self) -> PreparedDataset:
        """Load, clean and join the input tables."""
        phenotypes = load_phenotypes(self.config)
        genotypes = load_genotypes(self.config)
        dataset = prepare_dataset(phenotypes, genotypes, self.config)
        print_dataset_summary(dataset, self.console)
        return dataset

    def run_target(self, dataset: PreparedDataset, target: str) -> TargetResult:
        """
        Split, train and evaluate one target.

        Args:
            dataset: Prepared dataset.
            target: Target name.

        Returns:
            TargetResult for the target.
        """
        with log_context(target=target):
            data = split_target(dataset, target, self.config)
            trained = self.trainer.train(data, tune=self.tune)

            evaluation = evaluate_model(trained, data)
            reference = evaluate_reference(data)
            importances = aggregate_importances(trained, dataset.markers)

            result = TargetResult(
                target=target,
                data=data,
                trained=trained,
                evaluation=evaluation,
                reference=reference,
                importances=importances,
            )

            if self.config.output.save_predictions:
                result.predictions_path = save_prediction_table(
                    evaluation, data, self.config.predictions_dir
                )
            if self.config.output.save_models:
                result.model_path = self._save_model(result)

        return result

    def _save_model(self, result: TargetResult) -> Path:
        """Persist a fitted pipeline with joblib."""
        models_dir = self.config.models_dir
        models_dir.mkdir(parents=True, exist_ok=True)
        path = models_dir / f"{result.target}.joblib"
        joblib.dump(result.trained.pipeline, path)
        log.info("Saved model", path=str(path))
        return path

    def provenance(self, dataset: PreparedDataset) -> dict[str, str]:
        """Input fingerprints and run settings for the report."""
        phenotypes = self.config.data_paths.resolve("phenotypes")
        genotypes = self.config.data_paths.resolve("genotypes")
        return {
            "pigmentrf version": __version__,
            "phenotype table": f"{phenotypes} ({hash_file_content(phenotypes)})",
            "genotype table": f"{genotypes} ({hash_file_content(genotypes)})",
            "analysis data": hash_dataframe(dataset.data),
            "random state": str(self.config.training.random_state),
            "test size": str(self.config.training.test_size),
            "CV folds (requested)": str(self.config.training.cv_folds),
            "model": self.config.model.name,
            "tuned": str(self.tune),
        }

    def run(self, targets: list[str] | None = None) -> AnalysisResult:
        """
        Run the full analysis.

        Args:
            targets: Targets to analyse (default: all configured targets).

        Returns:
            AnalysisResult with per-target results and report paths.

        Raises:
            KeyError: If a requested target is not configured.
        """
        names = targets or self.config.target_names
        for name in names:
            self.config.get_target(name)

        log.info("Starting analysis", project=self.config.project, targets=names)

        experiment = None
        if self.config.mlflow.enabled:
            from pigmentrf.evaluation.experiment import AnalysisExperiment

            experiment = AnalysisExperiment(self.config)
            experiment.start_run(run_name=self.config.project)

        report_paths: dict[str, Path] = {}
        try:
            dataset = self.prepare()
            results = []
            for name in names:
                result = self.run_target(dataset, name)
                results.append(result)
                if experiment is not None:
                    experiment.log_target(result)

            provenance = self.provenance(dataset)
            report_data = ReportData(
                title=self.config.report.title,
                project=self.config.project,
                dataset=dataset,
                results=results,
                top_n_markers=self.config.report.top_n_markers,
                provenance=provenance,
            )
            report_paths = render_report(report_data, self.config, self.console)
        finally:
            if experiment is not None:
                experiment.end_run(report_paths)

        log.info(
            "Analysis complete",
            targets=names,
            reports={fmt: str(p) for fmt, p in report_paths.items()},
        )
        return AnalysisResult(
            dataset=dataset,
            results=results,
            report_paths=report_paths,
            provenance=provenance,
        )


def run_analysis(
    config: PipelineConfig,
    targets: list[str] | None = None,
    *,
    tune: bool | None = None,
    console: Console | None = None,
) -> AnalysisResult:
    """
    Convenience function to run the full analysis.

    Args:
        config: Pipeline configuration.
        targets: Targets to analyse (default: all configured targets).
        tune: Whether to tune hyperparameters (default: from config).
        console: Optional console for printing tables.

    Returns:
        AnalysisResult.
    """
    return AnalysisPipeline(config, tune=tune, console=console).run(targets)
