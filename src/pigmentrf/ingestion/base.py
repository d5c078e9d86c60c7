"""
Base classes and utilities for data ingestion.

Provides common functionality for the tab-separated table loaders.
"""

from abc import ABC, abstractmethod
from pathlib import Path

import pandas as pd
import pandera.pandas as pa

from pigmentrf.config.settings import PipelineConfig
from pigmentrf.utils.logging import get_logger

log = get_logger(__name__)


class DataLoader(ABC):
    """
    Abstract base class for data loaders.

    All data loaders inherit from this class to ensure consistent
    schema validation at system boundaries.
    """

    def __init__(self, config: PipelineConfig) -> None:
        """
        Initialize data loader.

        Args:
            config: Pipeline configuration.
        """
        self.config = config

    @property
    @abstractmethod
    def path(self) -> Path:
        """Resolved path of the source file."""
        ...

    @abstractmethod
    def _load_raw(self) -> pd.DataFrame:
        """Load raw data from source. Implemented by subclasses."""
        ...

    @abstractmethod
    def schema(self) -> pa.DataFrameSchema:
        """Schema the loaded table must satisfy."""
        ...

    def load(self, *, validate: bool = True) -> pd.DataFrame:
        """
        Load and optionally validate data.

        Args:
            validate: Whether to validate against schema.

        Returns:
            Loaded (and optionally validated) DataFrame.

        Raises:
            FileNotFoundError: If data file not found.
            ValueError: If configured columns are missing.
            pandera.errors.SchemaError: If validation fails.
        """
        log.info("Loading data", loader=self.__class__.__name__, path=str(self.path))

        df = self._load_raw()
        log.info("Loaded raw data", rows=len(df), columns=len(df.columns))

        if validate:
            df = self.schema().validate(df)
            log.info("Schema validation passed", loader=self.__class__.__name__)

        return df

    def read_table(self, id_column: str) -> pd.DataFrame:
        """
        Read a tab-separated table with every cell as a string.

        Empty cells stay empty strings; missing-value tokens are interpreted
        later, per column type. The ID column is stripped and renamed to
        `sample_id`.

        Args:
            id_column: Name of the sample ID column in the file.

        Returns:
            DataFrame of strings.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the ID column is missing.
        """
        path = self.path
        if not path.exists():
            msg = f"Input file not found: {path}"
            raise FileNotFoundError(msg)

        df = pd.read_csv(
            path,
            sep=self.config.columns.separator,
            dtype=str,
            keep_default_na=False,
            na_filter=False,
            comment=None,
        )
        df.columns = [str(c).strip() for c in df.columns]

        if id_column not in df.columns:
            msg = f"Sample ID column '{id_column}' not found in {path.name}"
            raise ValueError(msg)

        df = df.rename(columns={id_column: "sample_id"})
        df["sample_id"] = df["sample_id"].str.strip()
        return df

    @staticmethod
    def require_columns(df: pd.DataFrame, columns: list[str], source: str) -> None:
        """Raise ValueError naming every configured column absent from df."""
        missing = [col for col in columns if col not in df.columns]
        if missing:
            msg = f"Missing columns in {source}: {missing}"
            raise ValueError(msg)
