"""
Data ingestion layer for loading raw data with schema validation.

All raw data loading happens through this module to ensure
consistent validation at system boundaries.
"""

from pigmentrf.ingestion.genotype import GenotypeLoader, load_genotypes
from pigmentrf.ingestion.phenotype import PhenotypeLoader, load_phenotypes

__all__ = ["GenotypeLoader", "PhenotypeLoader", "load_genotypes", "load_phenotypes"]
