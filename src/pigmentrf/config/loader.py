"""
Configuration loading utilities.

Supports environment variable interpolation and config inheritance.
Minimal configs only need: project, data.phenotypes, data.genotypes
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml

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
    default_targets,
)


def _interpolate_env_vars(value: str) -> str:
    """
    Interpolate environment variables in string values.

    Supports ${VAR} and ${VAR:default} syntax.
    """
    pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)
        return os.environ.get(var_name, default if default is not None else "")

    return re.sub(pattern, replacer, value)


def _process_config_values(obj: Any) -> Any:
    """Recursively process config values for env var interpolation."""
    if isinstance(obj, str):
        return _interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _process_config_values(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_process_config_values(item) for item in obj]
    return obj


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and process environment variables."""
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return _process_config_values(data) if data else {}


def _build_targets(targets_data: Any) -> list[TargetConfig]:
    """
    Build target configs.

    Targets may be given as a mapping (name -> settings) or a list of
    settings with explicit 'name'. A mapping entry that only overrides some
    fields of a default target (e.g. the reported column) inherits the rest.
    """
    if not targets_data:
        return default_targets()

    defaults = {t.name: t.model_dump() for t in default_targets()}

    if isinstance(targets_data, dict):
        items = [{"name": name, **(entry or {})} for name, entry in targets_data.items()]
    elif isinstance(targets_data, list):
        items = list(targets_data)
    else:
        msg = f"'targets' must be a mapping or a list, got {type(targets_data).__name__}"
        raise ValueError(msg)

    targets = []
    for item in items:
        name = item.get("name")
        if not name:
            msg = "Every target must have a 'name'"
            raise ValueError(msg)
        base = defaults.get(name, {"name": name, "reported_column": name})
        merged = {**base, **{k: v for k, v in item.items() if v is not None}}
        # A replaced level list invalidates the default mapping
        if "levels" in item and "recoding" not in item:
            merged["recoding"] = {}
        targets.append(TargetConfig(**merged))
    return targets


def load_config(
    config_path: Path,
    base_path: Path | None = None,
) -> PipelineConfig:
    """
    Load pipeline configuration from YAML file(s).

    Minimal config requires only:
        - project: str
        - data.phenotypes: path
        - data.genotypes: path

    Args:
        config_path: Path to the main configuration file.
        base_path: Optional path to base configuration for inheritance.

    Returns:
        Fully validated PipelineConfig instance.
    """
    if base_path is not None:
        base_data = load_yaml(base_path)
    else:
        potential_base = config_path.parent / "base.yaml"
        same_file = potential_base.resolve() == config_path.resolve()
        base_data = (
            load_yaml(potential_base)
            if potential_base.exists() and not same_file
            else {}
        )

    main_data = load_yaml(config_path)
    merged = _deep_merge(base_data, main_data)

    project = merged.get("project")
    if not project:
        msg = "Config must specify 'project' name"
        raise ValueError(msg)

    data_data = merged.get("data", {})
    for key in ("phenotypes", "genotypes"):
        if not data_data.get(key):
            msg = f"Config must specify 'data.{key}'"
            raise ValueError(msg)

    data_paths = DataPathsConfig(
        data_root=Path(data_data.get("root", "./data")),
        phenotypes=Path(data_data["phenotypes"]),
        genotypes=Path(data_data["genotypes"]),
    )

    columns_data = merged.get("columns", {})
    columns = InputColumnsConfig(
        sample_id=columns_data.get("sample_id", "sample_id"),
        genotype_sample_id=columns_data.get("genotype_sample_id"),
        separator=columns_data.get("separator", "\t"),
    )

    markers = merged.get("markers")
    if markers is None:
        markers = list(HIRISPLEX_MARKERS)

    targets = _build_targets(merged.get("targets"))

    cleaning_data = merged.get("cleaning", {})
    cleaning = CleaningConfig(
        drop_incomplete=cleaning_data.get("drop_incomplete", "any"),
        min_class_size=cleaning_data.get("min_class_size", 2),
    )

    training_data = merged.get("training", {})
    training = TrainingConfig(
        test_size=training_data.get("test_size", 0.3),
        cv_folds=training_data.get("cv_folds", 10),
        random_state=training_data.get("random_state", 1337),
        scoring=training_data.get("scoring", "accuracy"),
        encoding=training_data.get("encoding", "onehot"),
    )

    model_data = merged.get("model", {})
    model = ModelConfig(
        name=model_data.get("name", "Random Forest"),
        params=model_data.get("params", {}),
        tune=model_data.get("tune", True),
    )

    report_data = merged.get("report", {})
    report = ReportConfig(
        title=report_data.get("title", "Pigmentation prediction from SNP genotypes"),
        formats=report_data.get("formats", ["html"]),
        top_n_markers=report_data.get("top_n_markers", 24),
    )

    output_data = merged.get("output", {})
    output = OutputConfig(
        output_root=Path(output_data.get("root", "./output")),
        save_predictions=output_data.get("save_predictions", True),
        save_models=output_data.get("save_models", False),
    )

    mlflow_data = merged.get("mlflow", {})
    mlflow = MLflowConfig(
        enabled=mlflow_data.get("enabled", False),
        tracking_uri=mlflow_data.get("tracking_uri", "sqlite:///mlflow.db"),
        artifact_location=mlflow_data.get("artifact_location"),
        experiment_name=mlflow_data.get("experiment_name"),
    )

    return PipelineConfig(
        project=project,
        data_paths=data_paths,
        columns=columns,
        markers=markers,
        targets=targets,
        cleaning=cleaning,
        training=training,
        model=model,
        report=report,
        output=output,
        mlflow=mlflow,
    )
