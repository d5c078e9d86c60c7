"""
Phenotype table ingestion.

Loads self-reported hair/eye colour and the external predictor's output.
"""

from pathlib import Path

import pandas as pd
import pandera.pandas as pa

from pigmentrf.config.settings import PipelineConfig
from pigmentrf.ingestion.base import DataLoader
from pigmentrf.schemas.phenotype import build_phenotype_schema
from pigmentrf.utils.logging import get_logger

log = get_logger(__name__)


def phenotype_columns(config: PipelineConfig) -> list[str]:
    """All phenotype-table columns the configured targets refer to."""
    columns: list[str] = []
    for target in config.targets:
        columns.append(target.reported_column)
        columns.extend(target.reference_probabilities.values())
        if target.reference_prediction is not None:
            columns.append(target.reference_prediction)
    return list(dict.fromkeys(columns))


class PhenotypeLoader(DataLoader):
    """Loader for the phenotype/prediction table."""

    @property
    def path(self) -> Path:
        """Resolved phenotype table path."""
        return self.config.data_paths.resolve("phenotypes")

    def schema(self) -> pa.DataFrameSchema:
        """Phenotype schema including the configured trait columns."""
        return build_phenotype_schema(phenotype_columns(self.config))

    def _load_raw(self) -> pd.DataFrame:
        """Load the phenotype TSV and check configured columns."""
        df = self.read_table(self.config.columns.sample_id)
        self.require_columns(df, phenotype_columns(self.config), "phenotype table")
        return df


def load_phenotypes(config: PipelineConfig, *, validate: bool = True) -> pd.DataFrame:
    """
    Load the phenotype table.

    Args:
        config: Pipeline configuration.
        validate: Whether to validate against the phenotype schema.

    Returns:
        Phenotype DataFrame with a `sample_id` column, all values as strings.
    """
    return PhenotypeLoader(config).load(validate=validate)
