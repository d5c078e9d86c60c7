"""
Preprocessing pipeline construction.

Builds the sklearn ColumnTransformer that turns genotype calls (factors)
into model inputs.
"""

from typing import Any

from sklearn.compose import ColumnTransformer
from sklearn.preprocessing import OneHotEncoder, OrdinalEncoder

from pigmentrf.utils.logging import get_logger

log = get_logger(__name__)

# Name of the single transformer step; prefixes encoded feature names
GENOTYPE_STEP = "genotype"


def build_encoder(encoding: str) -> Any:
    """
    Build the genotype encoder.

    Args:
        encoding: 'onehot' (one indicator per observed genotype) or
            'ordinal' (one integer code per marker).

    Returns:
        Unfitted sklearn encoder.

    Raises:
        ValueError: If the encoding is unknown.
    """
    if encoding == "onehot":
        return OneHotEncoder(handle_unknown="ignore", sparse_output=False)
    if encoding == "ordinal":
        return OrdinalEncoder(handle_unknown="use_encoded_value", unknown_value=-1)
    msg = f"Unknown genotype encoding '{encoding}'. Use 'onehot' or 'ordinal'."
    raise ValueError(msg)


def build_preprocessor(markers: list[str], encoding: str = "onehot") -> ColumnTransformer:
    """
    Build preprocessing ColumnTransformer for genotype features.

    Genotype calls unseen during fitting (e.g. a rare homozygote only present
    in the test split) are encoded as all-zero indicators (one-hot) or -1
    (ordinal) rather than failing.

    Args:
        markers: Marker columns.
        encoding: Genotype encoding ('onehot' or 'ordinal').

    Returns:
        Configured ColumnTransformer.
    """
    log.debug("Building preprocessor", n_markers=len(markers), encoding=encoding)
    return ColumnTransformer(
        transformers=[(GENOTYPE_STEP, build_encoder(encoding), list(markers))],
        remainder="drop",
        verbose_feature_names_out=False,
    )


def marker_of_feature(feature_name: str, markers: list[str]) -> str:
    """
    Map an encoded feature name back to its marker.

    One-hot names have the form '<marker>_<genotype>'; ordinal names equal
    the marker. The longest matching marker prefix wins so that 'rs12' and
    'rs1234' cannot be confused.

    Args:
        feature_name: Encoded feature name.
        markers: Marker columns.

    Returns:
        Marker name.

    Raises:
        KeyError: If no marker matches.
    """
    if feature_name in markers:
        return feature_name

    candidates = [m for m in markers if feature_name.startswith(f"{m}_")]
    if not candidates:
        msg = f"Feature '{feature_name}' does not belong to any marker"
        raise KeyError(msg)
    return max(candidates, key=len)
