"""
Configuration management with typed Pydantic models.

Provides the marker panel, target definitions and environment-aware
configuration loading.
"""

from pigmentrf.config.loader import load_config
from pigmentrf.config.settings import (
    HIRISPLEX_MARKERS,
    CleaningConfig,
    DataPathsConfig,
    InputColumnsConfig,
    MLflowConfig,
    ModelConfig,
    OutputConfig,
    PipelineConfig,
    ReportConfig,
    TargetConfig,
    TrainingConfig,
)

__all__ = [
    "HIRISPLEX_MARKERS",
    "CleaningConfig",
    "DataPathsConfig",
    "InputColumnsConfig",
    "MLflowConfig",
    "ModelConfig",
    "OutputConfig",
    "PipelineConfig",
    "ReportConfig",
    "TargetConfig",
    "TrainingConfig",
    "load_config",
]
