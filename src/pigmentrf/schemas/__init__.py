"""
Schema definitions using Pandera for data validation.

All data contracts are defined here to ensure explicit,
validated data structures throughout the analysis.
"""

from pigmentrf.schemas.genotype import build_genotype_schema
from pigmentrf.schemas.output import PredictionOutputSchema
from pigmentrf.schemas.phenotype import PhenotypeSchema, build_phenotype_schema

__all__ = [
    "PhenotypeSchema",
    "PredictionOutputSchema",
    "build_genotype_schema",
    "build_phenotype_schema",
]
