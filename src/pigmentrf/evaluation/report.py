"""
Analysis report generation.

Renders console tables, confusion-matrix/ROC/importance plots and the final
HTML and PDF reports. Also exports the per-sample test predictions.
"""

import base64
import html
from dataclasses import dataclass, field
from datetime import datetime
from io import BytesIO
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.backends.backend_pdf import PdfPages
from matplotlib.figure import Figure
from rich.console import Console
from rich.table import Table

from pigmentrf.config.settings import PipelineConfig
from pigmentrf.evaluation.metrics import TargetEvaluation
from pigmentrf.modeling.data import PreparedDataset, TargetData
from pigmentrf.modeling.training import TrainedModel
from pigmentrf.schemas.output import PredictionOutputSchema
from pigmentrf.utils.logging import get_logger

log = get_logger(__name__)

COUNT_LABELS = {
    "n_phenotypes": "Phenotype records",
    "n_genotypes": "Genotype records",
    "n_unmatched_phenotypes": "Phenotypes without genotypes",
    "n_unmatched_genotypes": "Genotypes without phenotypes",
    "n_joined": "Joined samples",
    "n_incomplete_genotypes": "Incomplete genotypes",
    "n_incomplete_labels": "Missing or unrecognised labels",
    "n_complete": "Complete samples",
}


@dataclass
class TargetResult:
    """Everything produced for one target."""

    target: str
    data: TargetData
    trained: TrainedModel
    evaluation: TargetEvaluation
    reference: TargetEvaluation | None = None
    importances: pd.Series | None = None
    predictions_path: Path | None = None
    model_path: Path | None = None


@dataclass
class ReportData:
    """Data for generating an analysis report."""

    title: str
    project: str
    dataset: PreparedDataset
    results: list[TargetResult]
    top_n_markers: int = 24
    provenance: dict[str, str] = field(default_factory=dict)
    generated_at: datetime = field(default_factory=datetime.now)


def _fig_to_base64(fig: Figure) -> str:
    """Convert matplotlib figure to base64 PNG string."""
    buf = BytesIO()
    fig.savefig(buf, format="png", dpi=150, bbox_inches="tight")
    buf.seek(0)
    return base64.b64encode(buf.read()).decode("utf-8")


def _fmt(value: float, digits: int = 4) -> str:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return "NA"
    return f"{value:.{digits}f}"


# Console tables


def print_dataset_summary(dataset: PreparedDataset, console: Console | None = None) -> None:
    """
    Print record counts and class distribution to console.

    Args:
        dataset: Prepared dataset.
        console: Rich console for output.
    """
    if console is None:
        return

    table = Table(title="Dataset Summary")
    table.add_column("Step", style="cyan")
    table.add_column("Records", style="green", justify="right")
    for key, label in COUNT_LABELS.items():
        if key in dataset.counts:
            table.add_row(label, str(dataset.counts[key]))
    table.add_row("Markers", str(len(dataset.markers)))
    console.print(table)

    dist = Table(title="Class Distribution")
    dist.add_column("Target", style="cyan")
    dist.add_column("Level", style="magenta")
    dist.add_column("Samples", style="green", justify="right")
    dist.add_column("% Total", style="yellow", justify="right")
    for target, group in dataset.class_distribution().groupby("target", sort=False):
        total = group["n"].sum()
        for row in group.itertuples():
            pct = row.n / total * 100 if total > 0 else 0.0
            dist.add_row(str(target), row.level, str(row.n), f"{pct:.1f}%")
    console.print(dist)


def metrics_table(results: list[TargetResult]) -> pd.DataFrame:
    """One row per (target, predictor) with the headline metrics."""
    rows = []
    for result in results:
        cv = result.trained.cv_scores
        for evaluation in filter(None, [result.evaluation, result.reference]):
            m = evaluation.metrics
            roc = evaluation.roc
            rows.append(
                {
                    "Target": result.target,
                    "Predictor": evaluation.source,
                    "n": m.n_samples,
                    "Accuracy": m.accuracy,
                    "95% CI": f"{_fmt(m.accuracy_ci_low, 3)}-{_fmt(m.accuracy_ci_high, 3)}",
                    "NIR": m.nir,
                    "P [Acc > NIR]": m.p_value_acc_gt_nir,
                    "Kappa": m.kappa,
                    "Macro F1": m.macro_f1,
                    "Macro AUC": roc.macro_auc if roc else float("nan"),
                    "Multiclass AUC": (
                        roc.multiclass_auc
                        if roc and roc.multiclass_auc is not None
                        else float("nan")
                    ),
                    "CV Accuracy": (
                        float("nan") if evaluation.is_reference else cv.get("accuracy_cv", np.nan)
                    ),
                }
            )
    return pd.DataFrame(rows)


def print_metrics_table(
    results: list[TargetResult],
    console: Console | None = None,
) -> tuple[pd.DataFrame, str]:
    """
    Generate the evaluation metrics table for all targets.

    Returns both a DataFrame and HTML string.
    """
    df = metrics_table(results)

    if console is not None:
        table = Table(title="Test-Set Evaluation")
        table.add_column("Target", style="cyan")
        table.add_column("Predictor", style="magenta")
        table.add_column("n", style="dim", justify="right")
        table.add_column("Accuracy", style="green", justify="right")
        table.add_column("95% CI", style="green")
        table.add_column("NIR", style="dim", justify="right")
        table.add_column("P [Acc>NIR]", style="yellow", justify="right")
        table.add_column("Kappa", style="green", justify="right")
        table.add_column("Macro AUC", style="magenta", justify="right")
        table.add_column("CV Acc", style="dim", justify="right")

        for row in df.to_dict("records"):
            table.add_row(
                row["Target"],
                row["Predictor"],
                str(row["n"]),
                _fmt(row["Accuracy"]),
                row["95% CI"],
                _fmt(row["NIR"], 3),
                f"{row['P [Acc > NIR]']:.2g}",
                _fmt(row["Kappa"]),
                _fmt(row["Macro AUC"]),
                _fmt(row["CV Accuracy"]),
            )
        console.print(table)

    html_table = df.to_html(
        index=False,
        float_format=lambda x: f"{x:.4f}",
        na_rep="NA",
        classes="metrics-table",
    )
    return df, html_table


def print_confusion_matrix(evaluation: TargetEvaluation, console: Console | None = None) -> None:
    """
    Print a confusion matrix (rows reported, columns predicted) to console.

    Args:
        evaluation: Evaluation to print.
        console: Rich console for output.
    """
    if console is None:
        return

    cm = evaluation.metrics.confusion
    table = Table(title=f"{evaluation.target}: {evaluation.source} (rows reported, columns predicted)")
    table.add_column("Reported", style="cyan")
    for level in cm.columns:
        table.add_column(str(level), justify="right")
    for level, row in cm.iterrows():
        cells = [
            f"[bold green]{value}[/bold green]" if col == level else str(value)
            for col, value in row.items()
        ]
        table.add_row(str(level), *cells)
    console.print(table)


def print_cv_results(trained: TrainedModel, console: Console | None = None) -> None:
    """Print cross-validation scores and the tuning grid to console."""
    if console is None:
        return

    table = Table(title=f"{trained.target}: {trained.name} ({trained.n_splits}-fold CV)")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    for key, value in trained.cv_scores.items():
        table.add_row(key, _fmt(value))
    if trained.best_params:
        for key, value in trained.best_params.items():
            table.add_row(f"best {key.removeprefix('model__')}", str(value))
    console.print(table)


def print_report_tables(report_data: ReportData, console: Console | None = None) -> None:
    """Print the evaluation, CV and confusion-matrix tables of every target."""
    if console is None:
        return

    print_metrics_table(report_data.results, console)
    for result in report_data.results:
        print_cv_results(result.trained, console)
        print_confusion_matrix(result.evaluation, console)
        if result.reference is not None:
            print_confusion_matrix(result.reference, console)


# Figures


def plot_confusion_matrix(evaluation: TargetEvaluation) -> Figure:
    """
    Plot a confusion matrix heatmap with counts.

    Args:
        evaluation: Evaluation to plot.

    Returns:
        Matplotlib figure.
    """
    cm = evaluation.metrics.confusion
    n = len(cm)
    fig, ax = plt.subplots(figsize=(1.2 * n + 3, 1.0 * n + 2.5))

    image = ax.imshow(cm.to_numpy(), cmap="Blues")
    fig.colorbar(image, ax=ax, fraction=0.046, pad=0.04)

    threshold = cm.to_numpy().max() / 2 if cm.to_numpy().max() > 0 else 0
    for i in range(n):
        for j in range(n):
            value = cm.iat[i, j]
            ax.text(
                j,
                i,
                str(value),
                ha="center",
                va="center",
                color="white" if value > threshold else "black",
                fontsize=11,
            )

    ax.set_xticks(range(n))
    ax.set_xticklabels(cm.columns, rotation=45, ha="right")
    ax.set_yticks(range(n))
    ax.set_yticklabels(cm.index)
    ax.set_xlabel("Predicted", fontsize=11)
    ax.set_ylabel("Reported", fontsize=11)
    ax.set_title(
        f"{evaluation.target}: {evaluation.source}\n"
        f"Accuracy {evaluation.metrics.accuracy:.3f}, kappa {_fmt(evaluation.metrics.kappa, 3)}",
        fontsize=12,
    )

    fig.tight_layout()
    return fig


def plot_roc_curves(
    evaluation: TargetEvaluation,
    reference: TargetEvaluation | None = None,
) -> Figure:
    """
    Plot one-vs-rest ROC curves per class.

    Reference predictor curves, if given, are drawn dashed in the same
    colour as the model curve of the same class.

    Args:
        evaluation: Model evaluation with ROC result.
        reference: Optional reference evaluation with ROC result.

    Returns:
        Matplotlib figure.
    """
    fig, ax = plt.subplots(figsize=(7, 6))
    colors = plt.get_cmap("tab10")
    color_of = {level: colors(i % 10) for i, level in enumerate(evaluation.levels)}

    if evaluation.roc is not None:
        for curve in evaluation.roc.curves:
            ax.plot(
                curve.fpr,
                curve.tpr,
                color=color_of[curve.level],
                linewidth=2,
                label=f"{curve.level} (AUC = {curve.auc:.3f})",
            )
    if reference is not None and reference.roc is not None:
        for curve in reference.roc.curves:
            ax.plot(
                curve.fpr,
                curve.tpr,
                color=color_of.get(curve.level, "grey"),
                linewidth=1.5,
                linestyle="--",
                label=f"{curve.level}, reference (AUC = {curve.auc:.3f})",
            )

    ax.plot([0, 1], [0, 1], color="grey", linestyle=":", linewidth=1, label="Chance")
    ax.set_xlim(0.0, 1.0)
    ax.set_ylim(0.0, 1.02)
    ax.set_xlabel("False positive rate (1 - specificity)", fontsize=11)
    ax.set_ylabel("True positive rate (sensitivity)", fontsize=11)
    ax.set_title(f"{evaluation.target}: ROC curves (one vs rest)", fontsize=12)
    ax.legend(loc="lower right", fontsize=9)
    ax.grid(True, alpha=0.3)

    fig.tight_layout()
    return fig


def plot_feature_importance(importances: pd.Series, target: str, top_n: int = 24) -> Figure:
    """
    Plot horizontal bar chart of per-marker importances.

    Args:
        importances: Normalised importance per marker, sorted descending.
        target: Target name.
        top_n: Number of top markers to show.

    Returns:
        Matplotlib figure.
    """
    shown = importances.head(top_n)[::-1]
    pct = shown.to_numpy() * 100
    n_show = len(shown)

    fig, ax = plt.subplots(figsize=(9, max(4, n_show * 0.35)))
    bars = ax.barh(range(n_show), pct, color="steelblue", edgecolor="none")

    for bar, value in zip(bars, pct):
        ax.text(
            bar.get_width() + 0.3,
            bar.get_y() + bar.get_height() / 2,
            f"{value:.1f}%",
            va="center",
            fontsize=8,
        )

    ax.set_yticks(range(n_show))
    ax.set_yticklabels(shown.index, fontsize=9)
    ax.set_xlabel("Mean decrease in impurity (% of total)", fontsize=11)
    ax.set_title(f"{target}: marker importance", fontsize=12)
    ax.grid(axis="x", alpha=0.3)
    if n_show:
        ax.set_xlim(0, max(pct.max(), 1.0) * 1.15)

    fig.tight_layout()
    return fig


def plot_class_distribution(dataset: PreparedDataset) -> Figure:
    """
    Plot sample counts per level for every target.

    Args:
        dataset: Prepared dataset.

    Returns:
        Matplotlib figure.
    """
    dist = dataset.class_distribution()
    targets = list(dict.fromkeys(dist["target"]))
    fig, axes = plt.subplots(1, len(targets), figsize=(5 * len(targets), 4), squeeze=False)

    for ax, target in zip(axes[0], targets):
        group = dist[dist["target"] == target]
        ax.bar(group["level"], group["n"], color="steelblue", edgecolor="none")
        for x, n in enumerate(group["n"]):
            ax.text(x, n, str(n), ha="center", va="bottom", fontsize=9)
        ax.set_title(target, fontsize=12)
        ax.set_ylabel("Samples", fontsize=11)
        ax.tick_params(axis="x", rotation=30)
        ax.grid(axis="y", alpha=0.3)

    fig.suptitle("Class distribution after cleaning", fontsize=12)
    fig.tight_layout()
    return fig


# Exports


def prediction_table(evaluation: TargetEvaluation, data: TargetData) -> pd.DataFrame:
    """
    Build the per-sample prediction table of a model evaluation.

    Args:
        evaluation: Model evaluation.
        data: Target split (for reference labels).

    Returns:
        Validated prediction table.
    """
    df = pd.DataFrame(
        {
            "sample_id": evaluation.sample_ids.to_numpy(),
            "reported": evaluation.y_true.to_numpy(),
            "predicted": evaluation.y_pred.to_numpy(),
        }
    )
    df["correct"] = df["reported"] == df["predicted"]

    if evaluation.probabilities is not None:
        for level in evaluation.probabilities.columns:
            df[f"p_{level}"] = evaluation.probabilities[level].to_numpy()

    if data.reference is not None:
        ref = data.reference.labels.reindex(evaluation.y_true.index)
        df["reference"] = ref.astype(object).where(ref.notna(), "").to_numpy()

    return PredictionOutputSchema.validate(df)


def save_prediction_table(
    evaluation: TargetEvaluation,
    data: TargetData,
    output_dir: Path,
) -> Path:
    """
    Save test-set predictions of one target as CSV.

    Args:
        evaluation: Model evaluation.
        data: Target split.
        output_dir: Directory to save the table.

    Returns:
        Path to the written CSV.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    df = prediction_table(evaluation, data)
    path = output_dir / f"{evaluation.target}_test_predictions.csv"
    df.to_csv(path, index=False)

    log.info(
        "Saved prediction table",
        target=evaluation.target,
        path=str(path),
        n_test=len(df),
    )
    return path


def _per_class_html(evaluation: TargetEvaluation) -> str:
    per_class = evaluation.metrics.per_class.copy()
    per_class["support"] = per_class["support"].astype(int)
    return per_class.to_html(float_format=lambda x: f"{x:.3f}", na_rep="NA", classes="per-class")


def _confusion_html(evaluation: TargetEvaluation) -> str:
    return evaluation.metrics.confusion.to_html(classes="confusion")


def generate_html_report(report_data: ReportData, output_path: Path) -> Path:
    """
    Generate complete HTML analysis report.

    Args:
        report_data: Report data containing all results.
        output_path: Path to save the HTML report.

    Returns:
        Path to the generated report.
    """
    log.info("Generating HTML report", output=str(output_path))

    _metrics_df, metrics_html = print_metrics_table(report_data.results)

    dist_fig = plot_class_distribution(report_data.dataset)
    distribution_plot = _fig_to_base64(dist_fig)
    plt.close(dist_fig)

    counts_rows = "".join(
        f"""
            <div class="metadata-item">
                <strong>{label}</strong>
                {report_data.dataset.counts[key]}
            </div>"""
        for key, label in COUNT_LABELS.items()
        if key in report_data.dataset.counts
    )
    title = html.escape(report_data.title)

    html_content = f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, sans-serif;
            max-width: 1200px;
            margin: 0 auto;
            padding: 20px;
            background-color: #f5f5f5;
        }}
        h1 {{
            color: #333;
            border-bottom: 2px solid #8a5a44;
            padding-bottom: 10px;
        }}
        h2 {{
            color: #8a5a44;
            margin-top: 30px;
        }}
        .section {{
            background: white;
            border-radius: 8px;
            padding: 20px;
            margin-bottom: 20px;
            box-shadow: 0 2px 4px rgba(0,0,0,0.1);
        }}
        .metadata {{
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(200px, 1fr));
            gap: 15px;
        }}
        .metadata-item {{
            background: #f8f9fa;
            padding: 10px 15px;
            border-radius: 4px;
        }}
        .metadata-item strong {{
            display: block;
            color: #666;
            font-size: 0.85em;
            margin-bottom: 5px;
        }}
        table {{
            border-collapse: collapse;
            margin: 15px 0;
        }}
        th, td {{
            padding: 8px 12px;
            text-align: right;
            border-bottom: 1px solid #ddd;
        }}
        th {{
            background-color: #8a5a44;
            color: white;
            font-weight: 600;
        }}
        tr:hover {{
            background-color: #f5f5f5;
        }}
        .plot-container {{
            text-align: center;
            margin: 20px 0;
        }}
        .plot-container img {{
            max-width: 100%;
            height: auto;
            border-radius: 4px;
            box-shadow: 0 2px 8px rgba(0,0,0,0.1);
        }}
        .model-plots {{
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(450px, 1fr));
            gap: 20px;
        }}
        .model-plot {{
            background: #f8f9fa;
            padding: 15px;
            border-radius: 8px;
            text-align: center;
        }}
        .model-plot img {{
            max-width: 100%;
            height: auto;
        }}
        .timestamp {{
            color: #999;
            font-size: 0.9em;
            text-align: right;
        }}
    </style>
</head>
<body>
    <h1>{title}</h1>
    <p class="timestamp">Project: {html.escape(report_data.project)} | Generated: {report_data.generated_at.strftime("%Y-%m-%d %H:%M:%S")}</p>

    <div class="section">
        <h2>Dataset Overview</h2>
        <div class="metadata">{counts_rows}
            <div class="metadata-item">
                <strong>Markers</strong>
                {len(report_data.dataset.markers)}
            </div>
        </div>
        <p><strong>Markers used:</strong> {", ".join(report_data.dataset.markers)}</p>
        <div class="plot-container">
            <img src="data:image/png;base64,{distribution_plot}" alt="Class distribution">
        </div>
    </div>

    <div class="section">
        <h2>Test-Set Evaluation</h2>
        <p>Accuracy with exact binomial 95% confidence interval, no-information rate (NIR)
        and one-sided binomial test of accuracy against the NIR. CV accuracy is the mean
        over stratified folds of the training set.</p>
        {metrics_html}
    </div>
"""

    for result in report_data.results:
        html_content += _target_section(result, report_data.top_n_markers)

    if report_data.provenance:
        provenance_rows = "".join(
            f"<tr><td>{html.escape(key)}</td><td>{html.escape(value)}</td></tr>"
            for key, value in report_data.provenance.items()
        )
        html_content += f"""
    <div class="section">
        <h2>Provenance</h2>
        <table class="provenance">{provenance_rows}</table>
    </div>
"""

    html_content += """
    <div class="section">
        <h2>Notes</h2>
        <ul>
            <li><strong>Confusion matrix</strong>: rows are self-reported classes, columns predicted classes</li>
            <li><strong>Kappa</strong>: Cohen's kappa, agreement beyond chance (1 is perfect, 0 is chance level)</li>
            <li><strong>Sensitivity / specificity</strong>: one class against all others</li>
            <li><strong>Macro AUC</strong>: mean one-vs-rest AUC over classes present in the test set</li>
            <li><strong>Multiclass AUC</strong>: Hand and Till (2001) pairwise AUC, or the binary AUC for two classes</li>
            <li><strong>Marker importance</strong>: mean decrease in impurity summed over the encoded genotypes of a marker</li>
        </ul>
    </div>
</body>
</html>
"""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(html_content, encoding="utf-8")

    log.info("Report generated", path=str(output_path))
    return output_path


def _target_section(result: TargetResult, top_n: int) -> str:
    """HTML section for one target."""

    plots: list[tuple[str, str]] = []

    fig = plot_confusion_matrix(result.evaluation)
    plots.append((f"{result.evaluation.source} confusion matrix", _fig_to_base64(fig)))
    plt.close(fig)

    if result.reference is not None:
        fig = plot_confusion_matrix(result.reference)
        plots.append(("Reference confusion matrix", _fig_to_base64(fig)))
        plt.close(fig)

    fig = plot_roc_curves(result.evaluation, result.reference)
    plots.append(("ROC curves", _fig_to_base64(fig)))
    plt.close(fig)

    if result.importances is not None:
        fig = plot_feature_importance(result.importances, result.target, top_n)
        plots.append(("Marker importance", _fig_to_base64(fig)))
        plt.close(fig)

    trained = result.trained
    dropped = (
        f"<p><strong>Dropped levels:</strong> {', '.join(result.data.dropped_levels)}</p>"
        if result.data.dropped_levels
        else ""
    )
    best = ", ".join(f"{k.removeprefix('model__')}={v}" for k, v in (trained.best_params or {}).items())
    tuning_html = ""
    if trained.cv_results is not None:
        tuning_html = trained.cv_results.to_html(
            index=False, float_format=lambda x: f"{x:.4f}", classes="tuning"
        )

    section = f"""
    <div class="section">
        <h2>{html.escape(result.target)}</h2>
        <p><strong>Levels:</strong> {", ".join(result.data.levels)} |
        <strong>Train/test:</strong> {len(result.data.y_train)}/{len(result.data.y_test)} |
        <strong>Model:</strong> {html.escape(trained.name)} ({trained.n_splits}-fold CV{", " + best if best else ""}) |
        <strong>CV accuracy:</strong> {_fmt(trained.cv_scores.get("accuracy_cv", float("nan")))}
        &plusmn; {_fmt(trained.cv_scores.get("accuracy_std", float("nan")))}</p>
        {dropped}
        <h3>Confusion matrix ({html.escape(result.evaluation.source)})</h3>
        {_confusion_html(result.evaluation)}
        <h3>Per-class statistics</h3>
        {_per_class_html(result.evaluation)}
"""
    if result.reference is not None:
        section += f"""
        <h3>Confusion matrix (reference predictor, n={result.reference.metrics.n_samples})</h3>
        {_confusion_html(result.reference)}
        {_per_class_html(result.reference)}
"""
    if tuning_html:
        section += f"""
        <h3>Hyperparameter tuning</h3>
        {tuning_html}
"""
    section += """
        <div class="model-plots">
"""
    for caption, plot_b64 in plots:
        section += f"""
            <div class="model-plot">
                <h3>{html.escape(caption)}</h3>
                <img src="data:image/png;base64,{plot_b64}" alt="{html.escape(result.target)} {html.escape(caption)}">
            </div>
"""
    section += """
        </div>
    </div>
"""
    return section


def _text_page(title: str, lines: list[str]) -> Figure:
    """A4 page of monospaced text."""
    fig = plt.figure(figsize=(8.27, 11.69))
    fig.text(0.08, 0.95, title, fontsize=14, weight="bold", va="top")
    fig.text(0.08, 0.91, "\n".join(lines), fontsize=8, family="monospace", va="top")
    return fig


def generate_pdf_report(report_data: ReportData, output_path: Path) -> Path:
    """
    Generate a multi-page PDF analysis report.

    Args:
        report_data: Report data containing all results.
        output_path: Path to save the PDF report.

    Returns:
        Path to the generated report.
    """
    log.info("Generating PDF report", output=str(output_path))
    output_path.parent.mkdir(parents=True, exist_ok=True)

    metrics_df = metrics_table(report_data.results)

    with PdfPages(output_path) as pdf:
        summary = [
            f"Project: {report_data.project}",
            f"Generated: {report_data.generated_at:%Y-%m-%d %H:%M:%S}",
            "",
            *(
                f"{label:<34}{report_data.dataset.counts[key]:>8}"
                for key, label in COUNT_LABELS.items()
                if key in report_data.dataset.counts
            ),
            f"{'Markers':<34}{len(report_data.dataset.markers):>8}",
            "",
            metrics_df.to_string(index=False, float_format=lambda x: f"{x:.3f}", na_rep="NA"),
        ]
        if report_data.provenance:
            summary += ["", *(f"{k}: {v}" for k, v in report_data.provenance.items())]

        figures = [_text_page(report_data.title, summary), plot_class_distribution(report_data.dataset)]

        for result in report_data.results:
            details = [
                f"Levels: {', '.join(result.data.levels)}",
                f"Train/test: {len(result.data.y_train)}/{len(result.data.y_test)}",
                f"Model: {result.trained.name} ({result.trained.n_splits}-fold CV)",
                *(f"{k}: {_fmt(v)}" for k, v in result.trained.cv_scores.items()),
                "",
                "Confusion matrix (rows reported, columns predicted):",
                result.evaluation.metrics.confusion.to_string(),
                "",
                result.evaluation.metrics.per_class.to_string(
                    float_format=lambda x: f"{x:.3f}", na_rep="NA"
                ),
            ]
            if result.reference is not None:
                details += [
                    "",
                    f"Reference predictor (n={result.reference.metrics.n_samples}):",
                    result.reference.metrics.confusion.to_string(),
                ]
            figures.append(_text_page(result.target, details))
            figures.append(plot_confusion_matrix(result.evaluation))
            if result.reference is not None:
                figures.append(plot_confusion_matrix(result.reference))
            figures.append(plot_roc_curves(result.evaluation, result.reference))
            if result.importances is not None:
                figures.append(
                    plot_feature_importance(
                        result.importances, result.target, report_data.top_n_markers
                    )
                )

        for fig in figures:
            pdf.savefig(fig)
            plt.close(fig)

        info = pdf.infodict()
        info["Title"] = report_data.title
        info["Subject"] = report_data.project

    log.info("Report generated", path=str(output_path))
    return output_path


def render_report(
    report_data: ReportData,
    config: PipelineConfig,
    console: Console | None = None,
    formats: list[str] | None = None,
) -> dict[str, Path]:
    """
    Write the report in every configured format.

    Args:
        report_data: Report data containing all results.
        config: Pipeline configuration.
        console: Optional console for printing tables.
        formats: Formats to write (default: `report.formats`).

    Returns:
        Mapping of format -> written path.
    """
    print_report_tables(report_data, console)

    paths: dict[str, Path] = {}
    for fmt in formats or config.report.formats:
        if fmt == "html":
            paths[fmt] = generate_html_report(report_data, config.report_path("html"))
        elif fmt == "pdf":
            paths[fmt] = generate_pdf_report(report_data, config.report_path("pdf"))
        else:
            msg = f"Unknown report format '{fmt}'. Use 'html' or 'pdf'."
            raise ValueError(msg)
    return paths
