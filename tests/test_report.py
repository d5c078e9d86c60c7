"""Tests for report generation and prediction export."""

from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd
import pytest
from matplotlib.figure import Figure
from rich.console import Console

from pigmentrf.config.settings import PipelineConfig
from pigmentrf.evaluation import report
from pigmentrf.evaluation.metrics import (
    TargetEvaluation,
    aggregate_importances,
    evaluate_model,
    evaluate_reference,
)
from pigmentrf.evaluation.report import (
    ReportData,
    TargetResult,
    generate_html_report,
    generate_pdf_report,
    metrics_table,
    plot_class_distribution,
    plot_confusion_matrix,
    plot_feature_importance,
    plot_roc_curves,
    prediction_table,
    print_dataset_summary,
    print_metrics_table,
    render_report,
    save_prediction_table,
)
from pigmentrf.modeling.data import PreparedDataset, TargetData
from pigmentrf.modeling.training import TrainedModel

from conftest import EYE_LEVELS


@pytest.fixture
def eye_result(eye_split: TargetData, eye_model: TrainedModel) -> TargetResult:
    """Evaluated eye colour result with reference and importances."""
    return TargetResult(
        target="eye_colour",
        data=eye_split,
        trained=eye_model,
        evaluation=evaluate_model(eye_model, eye_split),
        reference=evaluate_reference(eye_split),
        importances=aggregate_importances(eye_model),
    )


@pytest.fixture
def report_data(dataset: PreparedDataset, eye_result: TargetResult) -> ReportData:
    """Report over the eye colour result."""
    return ReportData(
        title="Eye colour <test>",
        project="test-cohort",
        dataset=dataset,
        results=[eye_result],
        top_n_markers=3,
        provenance={"pigmentrf_version": "0.1.0", "data_hash": "abc123"},
    )


def _recording_console() -> Console:
    return Console(record=True, width=200)


class TestPredictionTable:
    """Tests for the per-sample prediction export."""

    def test_columns(self, eye_result: TargetResult) -> None:
        """Test labels, probabilities and the reference column."""
        df = prediction_table(eye_result.evaluation, eye_result.data)
        expected = [
            "sample_id",
            "reported",
            "predicted",
            "correct",
            *(f"p_{level}" for level in EYE_LEVELS),
            "reference",
        ]
        assert list(df.columns) == expected
        assert len(df) == 18
        assert (df["correct"] == (df["reported"] == df["predicted"])).all()
        assert set(df["sample_id"]) == set(eye_result.data.ids_test)

    def test_save(self, eye_result: TargetResult, tmp_path: Path) -> None:
        """Test that the CSV is written per target."""
        path = save_prediction_table(eye_result.evaluation, eye_result.data, tmp_path / "pred")
        assert path == tmp_path / "pred" / "eye_colour_test_predictions.csv"
        df = pd.read_csv(path)
        assert len(df) == 18
        assert df["p_Blue"].between(0, 1).all()


class TestConsoleOutput:
    """Tests for console tables."""

    def test_metrics_table(self, eye_result: TargetResult) -> None:
        """Test one row per predictor."""
        df = metrics_table([eye_result])
        assert df["Predictor"].tolist() == ["Random Forest", "reference"]
        assert df["n"].tolist() == [18, 18]
        assert pd.isna(df.loc[1, "CV Accuracy"])
        assert not pd.isna(df.loc[0, "CV Accuracy"])

    def test_print_metrics_table(self, eye_result: TargetResult) -> None:
        """Test console and HTML renderings of the metrics table."""
        console = _recording_console()
        _df, html_table = print_metrics_table([eye_result], console)
        assert "Test-Set Evaluation" in console.export_text()
        assert "metrics-table" in html_table

    def test_dataset_summary(self, dataset: PreparedDataset) -> None:
        """Test record counts and class distribution output."""
        console = _recording_console()
        print_dataset_summary(dataset, console)
        text = console.export_text()
        assert "Complete samples" in text
        assert "Intermediate" in text

    def test_no_console(self, dataset: PreparedDataset) -> None:
        """Test that printing without a console is a no-op."""
        print_dataset_summary(dataset, None)


class TestPlots:
    """Tests for report figures."""

    def test_confusion_matrix(self, eye_result: TargetResult) -> None:
        """Test axis labels of the confusion matrix plot."""
        fig = plot_confusion_matrix(eye_result.evaluation)
        ax = fig.axes[0]
        assert ax.get_xlabel() == "Predicted"
        assert ax.get_ylabel() == "Reported"
        assert [t.get_text() for t in ax.get_yticklabels()] == EYE_LEVELS
        plt.close(fig)

    def test_roc_with_reference(self, eye_result: TargetResult) -> None:
        """Test that reference curves are added to the model curves."""
        fig = plot_roc_curves(eye_result.evaluation, eye_result.reference)
        labels = fig.axes[0].get_legend_handles_labels()[1]
        assert sum("reference" in label for label in labels) == 3
        assert "Chance" in labels
        plt.close(fig)

    def test_feature_importance_top_n(self, eye_result: TargetResult) -> None:
        """Test that only the top markers are shown."""
        assert eye_result.importances is not None
        fig = plot_feature_importance(eye_result.importances, "eye_colour", top_n=2)
        assert len(fig.axes[0].patches) == 2
        plt.close(fig)

    def test_class_distribution(self, dataset: PreparedDataset) -> None:
        """Test one panel per target."""
        fig = plot_class_distribution(dataset)
        assert isinstance(fig, Figure)
        assert len(fig.axes) == 2
        plt.close(fig)


class TestReports:
    """Tests for HTML and PDF reports."""

    def test_html_report(self, report_data: ReportData, tmp_path: Path) -> None:
        """Test that the HTML report holds every section."""
        path = generate_html_report(report_data, tmp_path / "out" / "report.html")
        content = path.read_text(encoding="utf-8")
        assert content.startswith("<!DOCTYPE html>")
        assert "Eye colour &lt;test&gt;" in content
        assert "Dataset Overview" in content
        assert "<h2>eye_colour</h2>" in content
        assert "Reference confusion matrix" in content
        assert "data:image/png;base64," in content
        assert "abc123" in content

    def test_pdf_report(self, report_data: ReportData, tmp_path: Path) -> None:
        """Test that a PDF file is written."""
        path = generate_pdf_report(report_data, tmp_path / "report.pdf")
        assert path.read_bytes().startswith(b"%PDF")

    def test_render_report(self, report_data: ReportData, pipeline_config: PipelineConfig) -> None:
        """Test rendering every configured format to the project directory."""
        paths = render_report(report_data, pipeline_config)
        assert set(paths) == {"html", "pdf"}
        assert paths["html"] == pipeline_config.report_path("html")
        assert all(p.exists() for p in paths.values())

    def test_pdf_report_reference_confusion(
        self, report_data: ReportData, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that the PDF holds model and reference confusion matrices."""
        sources: list[str] = []

        def recording_plot(evaluation: TargetEvaluation) -> Figure:
            sources.append(evaluation.source)
            return plot_confusion_matrix(evaluation)

        monkeypatch.setattr(report, "plot_confusion_matrix", recording_plot)
        generate_pdf_report(report_data, tmp_path / "report.pdf")
        assert sources == ["Random Forest", "reference"]

    def test_render_pdf_prints_tables(
        self, report_data: ReportData, pipeline_config: PipelineConfig
    ) -> None:
        """Test that console tables are printed whatever the format."""
        console = _recording_console()
        paths = render_report(report_data, pipeline_config, console, formats=["pdf"])
        text = console.export_text()
        assert set(paths) == {"pdf"}
        assert "Test-Set Evaluation" in text
        assert "3-fold CV" in text
        assert "eye_colour: reference" in text

    def test_render_unknown_format(
        self, report_data: ReportData, pipeline_config: PipelineConfig
    ) -> None:
        """Test that an unknown format raises ValueError."""
        with pytest.raises(ValueError, match="Unknown report format"):
            render_report(report_data, pipeline_config, formats=["docx"])
