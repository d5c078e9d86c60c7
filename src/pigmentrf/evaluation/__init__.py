"""Model evaluation metrics, reporting and experiment tracking."""
