"""
Normalization layer for genotype calls and phenotype labels.
"""
