"""
Analysis data preparation.

Joins the phenotype and genotype tables, normalizes genotype calls, recodes
labels onto factor levels, removes incomplete records and prepares a
stratified train/test split per target.
"""

import math
from dataclasses import dataclass, field

import pandas as pd
from sklearn.model_selection import train_test_split

from pigmentrf.config.settings import PipelineConfig, TargetConfig
from pigmentrf.ingestion.phenotype import phenotype_columns
from pigmentrf.normalization.genotypes import normalize_genotypes
from pigmentrf.normalization.labels import (
    recode_labels,
    reference_labels,
    reference_probabilities,
)
from pigmentrf.utils.logging import get_logger

log = get_logger(__name__)

# Stratified CV needs at least two training samples per class
MIN_TRAIN_PER_CLASS = 2


def reference_label_column(target: str) -> str:
    """Column holding the reference predictor's label for a target."""
    return f"{target}_reference"


def reference_proba_column(target: str, level: str) -> str:
    """Column holding the reference predictor's probability of a level."""
    return f"{target}_reference_p_{level}"


@dataclass
class PreparedDataset:
    """
    Joined, cleaned analysis table with bookkeeping counts.

    Attributes:
        data: One row per complete sample: sample_id, canonical genotype
            calls per marker, one ordered categorical column per target and
            optional reference predictor columns.
        markers: Marker columns.
        targets: Target configurations, in configured order.
        counts: Record counts at each preparation step.
    """

    data: pd.DataFrame
    markers: list[str]
    targets: list[TargetConfig]
    counts: dict[str, int] = field(default_factory=dict)

    @property
    def n_samples(self) -> int:
        """Number of samples after cleaning."""
        return len(self.data)

    def class_distribution(self) -> pd.DataFrame:
        """Count of samples per level for every target (long format)."""
        rows = []
        for target in self.targets:
            counts = self.data[target.name].value_counts(sort=False)
            for level in target.levels:
                rows.append(
                    {"target": target.name, "level": level, "n": int(counts.get(level, 0))}
                )
        return pd.DataFrame(rows, columns=["target", "level", "n"])


@dataclass
class ReferencePrediction:
    """External predictor output for the test samples of one target."""

    labels: pd.Series
    probabilities: pd.DataFrame | None = None


@dataclass
class TargetData:
    """
    Train/test split for one target.

    Attributes:
        target: Target name.
        X_train: Training genotypes.
        X_test: Test genotypes.
        y_train: Training labels (strings).
        y_test: Test labels (strings).
        ids_train: Training sample IDs.
        ids_test: Test sample IDs.
        levels: Ordered levels remaining after cleaning.
        class_counts: Samples per remaining level before splitting.
        dropped_levels: Configured levels removed as absent or too rare.
        reference: External predictor output for the test samples.
    """

    target: str
    X_train: pd.DataFrame
    X_test: pd.DataFrame
    y_train: pd.Series
    y_test: pd.Series
    ids_train: pd.Series
    ids_test: pd.Series
    levels: list[str]
    class_counts: dict[str, int]
    dropped_levels: list[str] = field(default_factory=list)
    reference: ReferencePrediction | None = None

    @property
    def n_samples(self) -> int:
        """Total samples used for this target."""
        return len(self.y_train) + len(self.y_test)

    @property
    def feature_names(self) -> list[str]:
        """Marker columns used as features."""
        return list(self.X_train.columns)


def _deduplicate(df: pd.DataFrame, source: str) -> pd.DataFrame:
    """Keep the first record of every sample ID."""
    duplicated = df["sample_id"].duplicated(keep="first")
    if duplicated.any():
        log.warning(
            "Duplicated sample IDs, keeping first occurrence",
            source=source,
            n_duplicates=int(duplicated.sum()),
            examples=sorted(df.loc[duplicated, "sample_id"].unique())[:10],
        )
        df = df[~duplicated]
    return df


def prepare_dataset(
    phenotypes: pd.DataFrame,
    genotypes: pd.DataFrame,
    config: PipelineConfig,
    markers: list[str] | None = None,
) -> PreparedDataset:
    """
    Clean and join phenotype and genotype tables.

    Args:
        phenotypes: Phenotype table from ingestion.
        genotypes: Genotype table from ingestion.
        config: Pipeline configuration.
        markers: Marker columns (default: config markers, or all genotype
            columns when the config list is empty).

    Returns:
        PreparedDataset ready for per-target splitting.

    Raises:
        ValueError: If no samples remain after joining or cleaning.
    """
    if markers is None:
        markers = list(config.markers) or [c for c in genotypes.columns if c != "sample_id"]

    counts: dict[str, int] = {
        "n_phenotypes": len(phenotypes),
        "n_genotypes": len(genotypes),
    }

    phenotypes = _deduplicate(phenotypes, "phenotypes")
    genotypes = _deduplicate(genotypes, "genotypes")

    pheno_ids = set(phenotypes["sample_id"])
    geno_ids = set(genotypes["sample_id"])
    counts["n_unmatched_phenotypes"] = len(pheno_ids - geno_ids)
    counts["n_unmatched_genotypes"] = len(geno_ids - pheno_ids)

    joined = genotypes[["sample_id", *markers]].merge(
        phenotypes[["sample_id", *phenotype_columns(config)]],
        on="sample_id",
        how="inner",
        validate="one_to_one",
    )
    counts["n_joined"] = len(joined)
    log.info(
        "Joined phenotypes and genotypes",
        n_joined=len(joined),
        unmatched_phenotypes=counts["n_unmatched_phenotypes"],
        unmatched_genotypes=counts["n_unmatched_genotypes"],
    )
    if joined.empty:
        msg = "No sample IDs shared between phenotype and genotype tables"
        raise ValueError(msg)

    data = normalize_genotypes(joined[["sample_id", *markers]], markers)

    for target in config.targets:
        data[target.name] = recode_labels(
            joined[target.reported_column], target.recoding, target.levels
        )
        ref_labels = reference_labels(joined, target)
        if ref_labels is not None:
            data[reference_label_column(target.name)] = ref_labels
        ref_proba = reference_probabilities(joined, target)
        if ref_proba is not None:
            for level in target.levels:
                data[reference_proba_column(target.name, level)] = ref_proba[level]

    complete = data[markers].notna().all(axis=1)
    counts["n_incomplete_genotypes"] = int((~complete).sum())
    if config.cleaning.drop_incomplete == "any":
        labels_complete = data[[t.name for t in config.targets]].notna().all(axis=1)
        counts["n_incomplete_labels"] = int((complete & ~labels_complete).sum())
        complete &= labels_complete

    data = data[complete].reset_index(drop=True)
    counts["n_complete"] = len(data)

    log.info(
        "Removed incomplete records",
        policy=config.cleaning.drop_incomplete,
        dropped=counts["n_joined"] - counts["n_complete"],
        remaining=counts["n_complete"],
    )
    if data.empty:
        msg = "No complete records remain after removing missing data"
        raise ValueError(msg)

    return PreparedDataset(
        data=data,
        markers=list(markers),
        targets=list(config.targets),
        counts=counts,
    )


def _split_sizes(n: int, test_size: float) -> tuple[int, int]:
    """Test and train sizes as train_test_split computes them."""
    n_test = math.ceil(n * test_size)
    return n_test, n - n_test


def _trainable_levels(
    levels: list[str],
    counts: pd.Series,
    test_size: float,
) -> list[str]:
    """
    Drop levels that would leave fewer than MIN_TRAIN_PER_CLASS training samples.

    Stratified splitting gives each class at least
    floor(count * n_train / n) training samples. Dropping a class changes
    n_train / n, so the check repeats until no further level is removed.
    """
    kept = list(levels)
    while kept:
        n = int(sum(counts.get(lvl, 0) for lvl in kept))
        _, n_train = _split_sizes(n, test_size)
        feasible = [
            lvl for lvl in kept if int(counts.get(lvl, 0)) * n_train // n >= MIN_TRAIN_PER_CLASS
        ]
        if feasible == kept:
            break
        kept = feasible
    return kept


def split_target(
    dataset: PreparedDataset,
    target_name: str,
    config: PipelineConfig,
) -> TargetData:
    """
    Prepare the stratified train/test split for one target.

    Samples without a label are dropped, classes below
    `cleaning.min_class_size` or with fewer than two expected training
    samples are removed and unused levels are dropped while keeping the
    configured level order.

    Args:
        dataset: Prepared dataset.
        target_name: Target to split for.
        config: Pipeline configuration.

    Returns:
        TargetData with the split and reference predictions.

    Raises:
        KeyError: If the target is not configured.
        ValueError: If fewer than two classes remain or the split is
            infeasible for the number of samples.
    """
    target = config.get_target(target_name)
    df = dataset.data[dataset.data[target.name].notna()]

    raw_counts = df[target.name].value_counts(sort=False)
    min_size = config.cleaning.min_class_size
    levels = [lvl for lvl in target.levels if raw_counts.get(lvl, 0) >= min_size]
    levels = _trainable_levels(levels, raw_counts, config.training.test_size)
    dropped = [lvl for lvl in target.levels if lvl not in levels]

    rare = {lvl: int(raw_counts.get(lvl, 0)) for lvl in dropped if raw_counts.get(lvl, 0) > 0}
    if rare:
        log.warning(
            "Dropping classes below minimum size",
            target=target.name,
            min_class_size=min_size,
            min_train_size=MIN_TRAIN_PER_CLASS,
            classes=rare,
        )

    if len(levels) < 2:
        msg = (
            f"Target '{target.name}' has fewer than two classes with at least "
            f"{min_size} samples and {MIN_TRAIN_PER_CLASS} training samples: "
            f"{dict(raw_counts)}"
        )
        raise ValueError(msg)

    df = df[df[target.name].isin(levels)]
    n = len(df)
    n_test, n_train = _split_sizes(n, config.training.test_size)
    if n_test < len(levels) or n_train < len(levels):
        msg = (
            f"Too few samples ({n}) for a stratified split of '{target.name}' "
            f"into {len(levels)} classes with test_size={config.training.test_size}"
        )
        raise ValueError(msg)

    X = df[dataset.markers]
    y = df[target.name].astype(str)
    ids = df["sample_id"]

    X_train, X_test, y_train, y_test, ids_train, ids_test = train_test_split(
        X,
        y,
        ids,
        test_size=config.training.test_size,
        random_state=config.training.random_state,
        stratify=y,
    )

    reference = _reference_for(df.loc[X_test.index], target, levels)

    class_counts = {lvl: int(raw_counts.get(lvl, 0)) for lvl in levels}
    log.info(
        "Prepared target split",
        target=target.name,
        n_train=len(X_train),
        n_test=len(X_test),
        classes=class_counts,
    )

    return TargetData(
        target=target.name,
        X_train=X_train,
        X_test=X_test,
        y_train=y_train,
        y_test=y_test,
        ids_train=ids_train,
        ids_test=ids_test,
        levels=levels,
        class_counts=class_counts,
        dropped_levels=dropped,
        reference=reference,
    )


def _reference_for(
    test_rows: pd.DataFrame,
    target: TargetConfig,
    levels: list[str],
) -> ReferencePrediction | None:
    """Collect the reference predictor's output for the test rows."""
    label_col = reference_label_column(target.name)
    if label_col not in test_rows.columns:
        return None

    proba_cols = [reference_proba_column(target.name, lvl) for lvl in levels]
    probabilities = None
    if all(col in test_rows.columns for col in proba_cols):
        probabilities = test_rows[proba_cols].copy()
        probabilities.columns = levels

    return ReferencePrediction(labels=test_rows[label_col], probabilities=probabilities)
