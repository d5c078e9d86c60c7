"""
Genotype call normalization.

Brings raw calls from different genotyping exports into one canonical form
so that identical genotypes become identical factor levels:

    "A/G", "g|a", "GA", " AG " -> "AG"
    "0", "1", "2"              -> allele dosage, kept as is
    "", "NA", "--", "00", "NN" -> missing
"""

import re

import numpy as np
import pandas as pd

from pigmentrf.utils.logging import get_logger

log = get_logger(__name__)

MISSING_TOKENS: frozenset[str] = frozenset(
    {"", "NA", "N/A", "NAN", "NONE", "NULL", "--", "00", "NN", "?", ".", "-/-"}
)

_SEPARATORS = re.compile(r"[/|:\s]")
# Nucleotides plus I/D for insertion/deletion polymorphisms such as N29insA
_ALLELE_CALL = re.compile(r"^[ACGTID]{2}$")
_DOSAGE = re.compile(r"^[012]$")


def normalize_genotype_call(value: object) -> str | None:
    """
    Normalize one genotype call.

    Args:
        value: Raw cell value.

    Returns:
        Canonical call, or None if the call is missing or unparseable.
    """
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return None

    text = str(value).strip().upper()
    if text in MISSING_TOKENS:
        return None

    if _DOSAGE.match(text):
        return text

    alleles = _SEPARATORS.sub("", text)
    if _ALLELE_CALL.match(alleles):
        return "".join(sorted(alleles))

    return None


def normalize_genotypes(df: pd.DataFrame, markers: list[str]) -> pd.DataFrame:
    """
    Normalize all marker columns of a genotype table.

    Unparseable calls (not missing tokens, but not valid genotypes either)
    are set to missing and counted per marker in a warning.

    Args:
        df: Genotype table with raw string calls.
        markers: Marker columns to normalize.

    Returns:
        Copy of df with canonical calls; missing calls are NaN.
    """
    df = df.copy()
    invalid: dict[str, int] = {}

    for marker in markers:
        raw = df[marker]
        normalized = raw.map(normalize_genotype_call)
        was_missing = raw.isna() | raw.astype(str).str.strip().str.upper().isin(
            MISSING_TOKENS
        )
        n_invalid = int((normalized.isna() & ~was_missing).sum())
        if n_invalid:
            invalid[marker] = n_invalid
        df[marker] = normalized.astype(object).where(normalized.notna(), np.nan)

    if invalid:
        log.warning("Unparseable genotype calls set to missing", counts=invalid)

    n_missing = int(df[markers].isna().sum().sum())
    log.debug("Normalized genotypes", n_markers=len(markers), n_missing_calls=n_missing)
    return df
