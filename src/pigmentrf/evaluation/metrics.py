"""
Evaluation metrics for pigmentation classifiers.

Provides confusion-matrix statistics (accuracy with exact binomial CI,
no-information rate, kappa, per-class sensitivity/specificity) and
one-vs-rest ROC curves with per-class and multiclass AUC.
"""

from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.metrics import auc, cohen_kappa_score, confusion_matrix, roc_auc_score, roc_curve

from pigmentrf.modeling.data import TargetData
from pigmentrf.modeling.preprocessing import marker_of_feature
from pigmentrf.modeling.training import TrainedModel
from pigmentrf.utils.logging import get_logger

log = get_logger(__name__)

REFERENCE_SOURCE = "reference"

PER_CLASS_COLUMNS = [
    "sensitivity",
    "specificity",
    "ppv",
    "npv",
    "prevalence",
    "detection_rate",
    "balanced_accuracy",
    "f1",
    "support",
]


def _safe_div(num: float, den: float) -> float:
    return float(num / den) if den > 0 else float("nan")


@dataclass(frozen=True)
class ClassificationMetrics:
    """
    Confusion-matrix based classification metrics.

    Attributes:
        levels: Class levels in configured order.
        confusion: Confusion matrix; rows are reported classes, columns
            predicted classes.
        accuracy: Overall accuracy.
        accuracy_ci_low: Lower bound of the exact 95% CI.
        accuracy_ci_high: Upper bound of the exact 95% CI.
        nir: No-information rate (largest reported class proportion).
        p_value_acc_gt_nir: One-sided binomial p-value for accuracy > NIR.
        kappa: Cohen's kappa.
        macro_f1: Mean F1 over classes present in the reported labels.
        per_class: Per-class statistics, one row per level.
        n_samples: Number of evaluated samples.
    """

    levels: list[str]
    confusion: pd.DataFrame
    accuracy: float
    accuracy_ci_low: float
    accuracy_ci_high: float
    nir: float
    p_value_acc_gt_nir: float
    kappa: float
    macro_f1: float
    per_class: pd.DataFrame
    n_samples: int

    def to_dict(self) -> dict[str, float]:
        """Convert overall metrics to dictionary."""
        return {
            "accuracy": self.accuracy,
            "accuracy_ci_low": self.accuracy_ci_low,
            "accuracy_ci_high": self.accuracy_ci_high,
            "nir": self.nir,
            "p_value_acc_gt_nir": self.p_value_acc_gt_nir,
            "kappa": self.kappa,
            "macro_f1": self.macro_f1,
            "n_samples": self.n_samples,
        }

    def __str__(self) -> str:
        """String representation."""
        return (
            f"Accuracy={self.accuracy:.4f} "
            f"(95% CI {self.accuracy_ci_low:.3f}-{self.accuracy_ci_high:.3f}), "
            f"NIR={self.nir:.3f}, Kappa={self.kappa:.4f}, n={self.n_samples}"
        )


@dataclass(frozen=True)
class RocCurve:
    """One-vs-rest ROC curve of a single class."""

    level: str
    fpr: np.ndarray
    tpr: np.ndarray
    auc: float


@dataclass
class RocResult:
    """
    ROC analysis for one classifier.

    Attributes:
        curves: Computed one-vs-rest curves, in level order.
        auc: AUC per level (NaN for skipped levels).
        macro_auc: Mean AUC over computed curves.
        multiclass_auc: Hand-Till AUC for three or more present classes,
            binary AUC for two, None otherwise.
        skipped: Levels without a curve (absent from the reported labels).
    """

    curves: list[RocCurve]
    auc: dict[str, float]
    macro_auc: float
    multiclass_auc: float | None = None
    skipped: list[str] = field(default_factory=list)


@dataclass
class TargetEvaluation:
    """
    Test-set evaluation of one predictor for one target.

    Attributes:
        target: Target name.
        source: Model name, or 'reference' for the external predictor.
        levels: Levels used for the confusion matrix.
        sample_ids: Evaluated sample IDs.
        y_true: Reported labels.
        y_pred: Predicted labels.
        probabilities: Class probabilities (columns in level order), if any.
        metrics: Confusion-matrix metrics.
        roc: ROC analysis (only when probabilities exist).
    """

    target: str
    source: str
    levels: list[str]
    sample_ids: pd.Series
    y_true: pd.Series
    y_pred: pd.Series
    probabilities: pd.DataFrame | None
    metrics: ClassificationMetrics
    roc: RocResult | None = None

    @property
    def is_reference(self) -> bool:
        """Whether this evaluates the external predictor."""
        return self.source == REFERENCE_SOURCE


def compute_classification_metrics(
    y_true: pd.Series | np.ndarray,
    y_pred: pd.Series | np.ndarray,
    levels: list[str],
    confidence_level: float = 0.95,
) -> ClassificationMetrics:
    """
    Compute confusion-matrix statistics.

    The confusion matrix always spans all `levels`, so a class missing from
    the test set yields an all-zero row.

    Args:
        y_true: Reported labels.
        y_pred: Predicted labels.
        levels: Class levels in configured order.
        confidence_level: Confidence level of the accuracy interval.

    Returns:
        ClassificationMetrics object.

    Raises:
        ValueError: If inputs are empty, differ in length, or contain labels
            outside `levels`.
    """
    y_true = np.asarray(y_true, dtype=object).ravel()
    y_pred = np.asarray(y_pred, dtype=object).ravel()

    if len(y_true) == 0:
        msg = "Cannot compute metrics on empty input"
        raise ValueError(msg)
    if len(y_true) != len(y_pred):
        msg = f"Length mismatch: {len(y_true)} reported vs {len(y_pred)} predicted labels"
        raise ValueError(msg)
    unknown = (set(y_true) | set(y_pred)) - set(levels)
    if unknown:
        msg = f"Labels outside levels {levels}: {sorted(map(str, unknown))}"
        raise ValueError(msg)

    n = len(y_true)
    cm = confusion_matrix(y_true, y_pred, labels=levels)
    correct = int(np.trace(cm))
    accuracy = correct / n

    ci = stats.binomtest(correct, n).proportion_ci(
        confidence_level=confidence_level, method="exact"
    )
    row_totals = cm.sum(axis=1)
    nir = float(row_totals.max() / n)
    p_value = float(stats.binomtest(correct, n, p=nir, alternative="greater").pvalue)

    if len(set(y_true) | set(y_pred)) < 2:
        kappa = float("nan")
    else:
        kappa = float(cohen_kappa_score(y_true, y_pred, labels=levels))

    rows = []
    for i, level in enumerate(levels):
        tp = cm[i, i]
        fn = row_totals[i] - tp
        fp = cm[:, i].sum() - tp
        tn = n - tp - fn - fp
        sensitivity = _safe_div(tp, tp + fn)
        specificity = _safe_div(tn, tn + fp)
        rows.append(
            {
                "sensitivity": sensitivity,
                "specificity": specificity,
                "ppv": _safe_div(tp, tp + fp),
                "npv": _safe_div(tn, tn + fn),
                "prevalence": (tp + fn) / n,
                "detection_rate": tp / n,
                "balanced_accuracy": (sensitivity + specificity) / 2,
                "f1": _safe_div(2 * tp, 2 * tp + fp + fn),
                "support": int(tp + fn),
            }
        )
    per_class = pd.DataFrame(rows, index=pd.Index(levels, name="level"), columns=PER_CLASS_COLUMNS)

    present_f1 = per_class.loc[per_class["support"] > 0, "f1"].fillna(0.0)
    macro_f1 = float(present_f1.mean()) if len(present_f1) else float("nan")

    confusion = pd.DataFrame(
        cm,
        index=pd.Index(levels, name="reported"),
        columns=pd.Index(levels, name="predicted"),
    )

    metrics = ClassificationMetrics(
        levels=list(levels),
        confusion=confusion,
        accuracy=float(accuracy),
        accuracy_ci_low=float(ci.low),
        accuracy_ci_high=float(ci.high),
        nir=nir,
        p_value_acc_gt_nir=p_value,
        kappa=kappa,
        macro_f1=macro_f1,
        per_class=per_class,
        n_samples=n,
    )
    log.debug("Computed metrics", **metrics.to_dict())
    return metrics


def compute_roc(
    y_true: pd.Series | np.ndarray,
    proba: pd.DataFrame,
    levels: list[str] | None = None,
) -> RocResult:
    """
    Compute one-vs-rest ROC curves and AUCs.

    Args:
        y_true: Reported labels.
        proba: Class probabilities, one column per level.
        levels: Levels to analyse (default: `proba` columns).

    Returns:
        RocResult object.
    """
    if levels is None:
        levels = [str(c) for c in proba.columns]
    y_true = np.asarray(y_true, dtype=object).ravel()
    scores = proba[levels].to_numpy(dtype=float)

    curves: list[RocCurve] = []
    aucs: dict[str, float] = {}
    skipped: list[str] = []

    for j, level in enumerate(levels):
        positives = y_true == level
        if not positives.any() or positives.all():
            skipped.append(level)
            aucs[level] = float("nan")
            continue
        fpr, tpr, _ = roc_curve(positives, scores[:, j])
        value = float(auc(fpr, tpr))
        curves.append(RocCurve(level=level, fpr=fpr, tpr=tpr, auc=value))
        aucs[level] = value

    if skipped:
        log.warning("Skipping ROC for classes absent from test set", classes=skipped)

    computed = [c.auc for c in curves]
    macro_auc = float(np.mean(computed)) if computed else float("nan")

    present = [lvl for lvl in levels if (y_true == lvl).any()]
    multiclass_auc: float | None = None
    if len(present) == 2:
        multiclass_auc = float(
            roc_auc_score(y_true == present[1], proba[present[1]].to_numpy(dtype=float))
        )
    elif len(present) >= 3:
        sub = proba[present].to_numpy(dtype=float)
        totals = sub.sum(axis=1, keepdims=True)
        sub = np.divide(
            sub,
            totals,
            out=np.full_like(sub, 1.0 / len(present)),
            where=totals > 0,
        )
        # roc_auc_score requires lexically sorted labels
        order = np.argsort(present)
        multiclass_auc = float(
            roc_auc_score(
                y_true,
                sub[:, order],
                multi_class="ovo",
                labels=[present[i] for i in order],
            )
        )

    return RocResult(
        curves=curves,
        auc=aucs,
        macro_auc=macro_auc,
        multiclass_auc=multiclass_auc,
        skipped=skipped,
    )


def evaluate_model(trained: TrainedModel, data: TargetData) -> TargetEvaluation:
    """
    Evaluate a trained model on its target's test split.

    Args:
        trained: Trained model.
        data: Target split the model was trained on.

    Returns:
        TargetEvaluation of the model.
    """
    y_pred = trained.predict(data.X_test).astype(str)
    proba = trained.predict_proba(data.X_test)

    metrics = compute_classification_metrics(data.y_test, y_pred, data.levels)
    roc = compute_roc(data.y_test, proba, data.levels)

    log.info(
        "Evaluated model",
        target=data.target,
        model=trained.name,
        accuracy=f"{metrics.accuracy:.4f}",
        kappa=f"{metrics.kappa:.4f}",
        macro_auc=f"{roc.macro_auc:.4f}",
    )
    return TargetEvaluation(
        target=data.target,
        source=trained.name,
        levels=list(data.levels),
        sample_ids=data.ids_test,
        y_true=data.y_test,
        y_pred=y_pred,
        probabilities=proba,
        metrics=metrics,
        roc=roc,
    )


def evaluate_reference(data: TargetData) -> TargetEvaluation | None:
    """
    Evaluate the external predictor on the model's test samples.

    Test samples without a reference label are excluded. Levels the
    reference predicts but that were dropped from the target are added to
    the confusion matrix in configured order.

    Args:
        data: Target split carrying the reference predictions.

    Returns:
        TargetEvaluation, or None if no reference is available.
    """
    if data.reference is None:
        return None

    labels = data.reference.labels
    has_label = labels.notna()
    if not has_label.any():
        log.warning("No reference predictions for test samples", target=data.target)
        return None
    if not has_label.all():
        log.warning(
            "Excluding test samples without reference prediction",
            target=data.target,
            n_excluded=int((~has_label).sum()),
        )

    y_true = data.y_test[has_label]
    y_pred = labels[has_label].astype(str)

    ordering = (
        [str(c) for c in labels.cat.categories]
        if isinstance(labels.dtype, pd.CategoricalDtype)
        else list(data.levels)
    )
    observed = set(y_pred)
    levels = [lvl for lvl in ordering if lvl in data.levels or lvl in observed]
    levels += sorted(observed - set(levels))

    metrics = compute_classification_metrics(y_true, y_pred, levels)

    roc = None
    proba = data.reference.probabilities
    if proba is not None:
        proba = proba[has_label]
        usable = proba.notna().all(axis=1)
        totals = proba[usable].sum(axis=1)
        scaled = proba[usable].div(totals.where(totals > 0, 1.0), axis=0)
        if usable.any():
            roc = compute_roc(y_true[usable], scaled, data.levels)
        proba = scaled.reindex(proba.index)

    log.info(
        "Evaluated reference predictor",
        target=data.target,
        n_samples=metrics.n_samples,
        accuracy=f"{metrics.accuracy:.4f}",
    )
    return TargetEvaluation(
        target=data.target,
        source=REFERENCE_SOURCE,
        levels=levels,
        sample_ids=data.ids_test[has_label],
        y_true=y_true,
        y_pred=y_pred,
        probabilities=proba,
        metrics=metrics,
        roc=roc,
    )


def aggregate_importances(trained: TrainedModel, markers: list[str] | None = None) -> pd.Series:
    """
    Sum encoded-feature importances per marker.

    Args:
        trained: Trained model.
        markers: Marker columns (default: the model's features).

    Returns:
        Importance per marker, normalised to sum to 1, sorted descending.
    """
    if markers is None:
        markers = trained.feature_names

    preprocessor = trained.pipeline.named_steps["preprocessor"]
    model = trained.pipeline.named_steps["model"]
    names = preprocessor.get_feature_names_out()

    per_feature = pd.Series(model.feature_importances_, index=names)
    per_marker = per_feature.groupby(lambda name: marker_of_feature(name, markers)).sum()
    per_marker = per_marker.reindex(markers, fill_value=0.0)

    total = per_marker.sum()
    if total > 0:
        per_marker = per_marker / total

    return per_marker.sort_values(ascending=False, kind="stable").rename("importance")
