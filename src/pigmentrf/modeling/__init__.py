"""
Modeling layer for data preparation and classifier training.
"""
