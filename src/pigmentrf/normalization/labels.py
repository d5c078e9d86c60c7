"""
Phenotype label recoding.

Free-text self-reports ("dark blonde", "Hazel", "grey-blue") are mapped onto
the ordered class levels of a target. Reference predictor output is turned
into labels of the same levels.
"""

import re

import numpy as np
import pandas as pd

from pigmentrf.config.settings import TargetConfig
from pigmentrf.utils.logging import get_logger

log = get_logger(__name__)


def recode_labels(
    series: pd.Series,
    mapping: dict[str, str],
    levels: list[str],
) -> pd.Series:
    """
    Recode free-text labels onto ordered factor levels.

    Exact (case-insensitive) level names are accepted as is. Otherwise the
    regex patterns in `mapping` are tried in order and the first match wins.
    Unmatched values become missing.

    Args:
        series: Raw label strings.
        mapping: Regex pattern -> level.
        levels: Ordered class levels.

    Returns:
        Ordered categorical series with the given levels.
    """
    exact = {level.casefold(): level for level in levels}
    compiled = [(re.compile(pattern, re.IGNORECASE), level) for pattern, level in mapping.items()]

    def recode(value: object) -> str | None:
        if value is None or (isinstance(value, float) and np.isnan(value)):
            return None
        text = str(value).strip()
        if not text:
            return None
        if text.casefold() in exact:
            return exact[text.casefold()]
        for pattern, level in compiled:
            if pattern.search(text):
                return level
        return None

    recoded = series.map(recode)

    present = series.astype(str).str.strip().ne("") & series.notna()
    unmatched = sorted(set(series[present & recoded.isna()].astype(str).str.strip()))
    if unmatched:
        log.warning(
            "Unrecognised labels set to missing",
            column=series.name,
            n_rows=int((present & recoded.isna()).sum()),
            values=unmatched[:20],
        )

    return pd.Series(
        pd.Categorical(recoded, categories=levels, ordered=True),
        index=series.index,
        name=series.name,
    )


def reference_probabilities(df: pd.DataFrame, target: TargetConfig) -> pd.DataFrame | None:
    """
    Extract the external predictor's class probabilities for a target.

    Args:
        df: Phenotype table (string cells).
        target: Target configuration.

    Returns:
        DataFrame with one float column per level (in level order), or None
        if no probability columns are configured. Levels without a
        configured column get probability 0.
    """
    if not target.reference_probabilities:
        return None

    proba = pd.DataFrame(index=df.index)
    for level in target.levels:
        column = target.reference_probabilities.get(level)
        if column is None:
            proba[level] = 0.0
        else:
            proba[level] = pd.to_numeric(
                df[column].astype(str).str.replace(",", ".", regex=False),
                errors="coerce",
            )
    return proba


def reference_labels(df: pd.DataFrame, target: TargetConfig) -> pd.Series | None:
    """
    Derive the external predictor's label for a target.

    Probability columns take precedence (argmax; ties go to the first level);
    otherwise the predicted-label column is recoded like self-reports.

    Args:
        df: Phenotype table (string cells).
        target: Target configuration.

    Returns:
        Ordered categorical series, or None if no reference is configured.
    """
    proba = reference_probabilities(df, target)
    if proba is not None:
        complete = proba.notna().all(axis=1)
        labels = pd.Series(index=df.index, dtype=object)
        labels[complete] = proba[complete].idxmax(axis=1)
        return pd.Series(
            pd.Categorical(labels, categories=target.levels, ordered=True),
            index=df.index,
            name=f"{target.name}_reference",
        )

    if target.reference_prediction is not None:
        labels = recode_labels(df[target.reference_prediction], target.recoding, target.levels)
        return labels.rename(f"{target.name}_reference")

    return None
