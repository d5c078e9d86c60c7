"""
Pandera schemas for SNP genotype data.

The marker panel is configurable, so the schema is assembled per run.
"""

import pandera.pandas as pa


def build_genotype_schema(markers: list[str]) -> pa.DataFrameSchema:
    """
    Build a schema for a genotype table with the given markers.

    Raw genotype calls are kept as strings at this stage; parsing into
    canonical calls happens in normalization.

    Args:
        markers: Marker (SNP) columns that must be present.

    Returns:
        DataFrameSchema for the genotype table.
    """
    columns: dict[str, pa.Column] = {
        "sample_id": pa.Column(
            str,
            checks=pa.Check.str_length(min_value=1),
            description="Sample identifier",
        ),
    }
    for marker in markers:
        columns[marker] = pa.Column(
            str,
            checks=pa.Check.str_length(max_value=16),
            description=f"Genotype call at {marker}",
        )

    return pa.DataFrameSchema(
        columns,
        name="GenotypeSchema",
        strict=False,
        coerce=True,
    )
