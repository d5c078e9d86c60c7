"""
pigmentrf: Hair and eye colour prediction from SNP genotypes.

This package loads phenotype and genotype tables, trains one random-forest
classifier per pigmentation trait, evaluates it with confusion matrices and
ROC/AUC curves, and renders the results into an HTML/PDF report.
"""

from importlib.metadata import version

__version__ = version("pigmentrf")

__all__ = ["__version__"]
