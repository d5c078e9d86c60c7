"""
Pandera schemas for phenotype data.

The phenotype table holds one row per sample with self-reported hair and eye
colour and, optionally, an external predictor's output.
"""

import pandera.pandas as pa
from pandera.typing import Series


class PhenotypeSchema(pa.DataFrameModel):
    """
    Schema for the phenotype table after ingestion.

    Trait and reference-prediction columns are configurable and therefore
    added at load time via `build_phenotype_schema`.
    """

    sample_id: Series[str] = pa.Field(
        description="Sample identifier, joined against the genotype table",
        str_length={"min_value": 1},
    )

    class Config:
        """Schema configuration."""

        name = "PhenotypeSchema"
        strict = False  # Allow extra columns
        coerce = True


def build_phenotype_schema(columns: list[str]) -> pa.DataFrameSchema:
    """
    Extend PhenotypeSchema with the configured trait/reference columns.

    Args:
        columns: Columns that must be present (reported labels,
            reference probability and prediction columns).

    Returns:
        DataFrameSchema requiring sample_id plus the given columns.
    """
    schema = PhenotypeSchema.to_schema()
    extra = {col: pa.Column(str, required=True) for col in columns if col != "sample_id"}
    return schema.add_columns(extra)
