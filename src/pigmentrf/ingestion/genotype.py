"""
SNP genotype table ingestion.
"""

from pathlib import Path

import pandas as pd
import pandera.pandas as pa

from pigmentrf.config.settings import PipelineConfig
from pigmentrf.ingestion.base import DataLoader
from pigmentrf.schemas.genotype import build_genotype_schema
from pigmentrf.utils.logging import get_logger

log = get_logger(__name__)


class GenotypeLoader(DataLoader):
    """
    Loader for the genotype table.

    Keeps the sample ID plus the configured markers. With an empty marker
    list, every non-ID column is treated as a marker.
    """

    def __init__(self, config: PipelineConfig) -> None:
        """Initialize genotype loader."""
        super().__init__(config)
        self.markers: list[str] = list(config.markers)

    @property
    def path(self) -> Path:
        """Resolved genotype table path."""
        return self.config.data_paths.resolve("genotypes")

    def schema(self) -> pa.DataFrameSchema:
        """Genotype schema for the resolved marker list."""
        return build_genotype_schema(self.markers)

    def _load_raw(self) -> pd.DataFrame:
        """Load the genotype TSV and select marker columns."""
        df = self.read_table(self.config.columns.genotype_id)

        if not self.markers:
            self.markers = [c for c in df.columns if c != "sample_id"]
            log.info("Using all genotype columns as markers", n_markers=len(self.markers))

        self.require_columns(df, self.markers, "genotype table")

        extra = [c for c in df.columns if c not in self.markers and c != "sample_id"]
        if extra:
            log.debug("Ignoring unconfigured genotype columns", columns=extra)

        return df[["sample_id", *self.markers]]


def load_genotypes(config: PipelineConfig, *, validate: bool = True) -> pd.DataFrame:
    """
    Load the genotype table.

    Args:
        config: Pipeline configuration.
        validate: Whether to validate against the genotype schema.

    Returns:
        Genotype DataFrame: `sample_id` plus one raw-call column per marker.
    """
    return GenotypeLoader(config).load(validate=validate)
