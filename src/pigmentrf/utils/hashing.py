"""
Deterministic hashing utilities.

Fingerprints input files and prepared tables so a report can be traced back
to the exact data it was rendered from.
"""

import hashlib
from pathlib import Path

import pandas as pd


def hash_dataframe(df: pd.DataFrame, columns: list[str] | None = None) -> str:
    """
    Compute deterministic hash of a DataFrame.

    Args:
        df: DataFrame to hash.
        columns: Optional subset of columns to include.

    Returns:
        Short hex digest (12 characters).
    """
    if columns:
        df = df[columns]

    hasher = hashlib.sha256()
    hasher.update(f"{df.shape}".encode())
    hasher.update(",".join(map(str, df.columns)).encode())
    hasher.update(pd.util.hash_pandas_object(df, index=False).to_numpy().tobytes())
    return hasher.hexdigest()[:12]


def hash_file_content(path: Path, chunk_size: int = 65536) -> str:
    """
    Compute hash of file contents.

    Args:
        path: Path to file.
        chunk_size: Chunk size for reading.

    Returns:
        Short hex digest, or "missing" if the file does not exist.
    """
    if not path.exists():
        return "missing"

    hasher = hashlib.sha256()
    with path.open("rb") as f:
        while chunk := f.read(chunk_size):
            hasher.update(chunk)

    return hasher.hexdigest()[:12]
