"""
Typed configuration models using Pydantic.

All configuration is defined here with explicit typing and validation.
Marker panels, label mappings and class orders live in config, never in
processing code.
"""

import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# HIrisPlex panel: 24 SNPs informative for eye and hair colour
HIRISPLEX_MARKERS: list[str] = [
    "rs312262906",  # MC1R N29insA
    "rs11547464",
    "rs885479",
    "rs1805008",
    "rs1805005",
    "rs1805006",
    "rs1805007",
    "rs1805009",
    "rs201326893",  # MC1R Y152OCH
    "rs2228479",
    "rs1110400",
    "rs28777",
    "rs16891982",
    "rs12821256",
    "rs4959270",
    "rs12203592",
    "rs1042602",
    "rs1800407",
    "rs2402130",
    "rs12913832",
    "rs2378249",
    "rs12896399",
    "rs1393350",
    "rs683",
]


class DataPathsConfig(BaseModel):
    """Input file paths. Relative paths are resolved against data_root."""

    model_config = ConfigDict(frozen=True)

    data_root: Path = Field(
        default=Path("./data"), description="Root directory for input files"
    )
    phenotypes: Path = Field(description="Tab-separated phenotype/prediction table")
    genotypes: Path = Field(description="Tab-separated SNP genotype table")

    def resolve(self, path_attr: str) -> Path:
        """Resolve a configured path against data_root."""
        rel_path = getattr(self, path_attr)
        if rel_path is None:
            msg = f"Path '{path_attr}' is not configured"
            raise ValueError(msg)
        return self.data_root / rel_path


class InputColumnsConfig(BaseModel):
    """Column layout of the input tables."""

    model_config = ConfigDict(frozen=True)

    sample_id: str = Field(
        default="sample_id", description="Sample ID column in the phenotype table"
    )
    genotype_sample_id: str | None = Field(
        default=None,
        description="Sample ID column in the genotype table (defaults to sample_id)",
    )
    separator: str = Field(default="\t", description="Field separator of both tables")

    @property
    def genotype_id(self) -> str:
        """Effective ID column name of the genotype table."""
        return self.genotype_sample_id or self.sample_id


class TargetConfig(BaseModel):
    """
    One phenotype to predict.

    Attributes:
        name: Target identifier (e.g. 'hair_colour').
        reported_column: Column holding the self-reported label.
        levels: Ordered class labels (factor levels).
        recoding: Regex pattern -> level mapping for free-text labels.
        reference_probabilities: Level -> column of the external predictor's
            class probability.
        reference_prediction: Column holding the external predictor's label.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    reported_column: str
    levels: list[str]
    recoding: dict[str, str] = Field(default_factory=dict)
    reference_probabilities: dict[str, str] = Field(default_factory=dict)
    reference_prediction: str | None = None

    @field_validator("levels")
    @classmethod
    def validate_levels(cls, v: list[str]) -> list[str]:
        """Require at least two distinct levels."""
        if len(v) < 2:
            msg = f"A target needs at least two levels, got: {v}"
            raise ValueError(msg)
        if len(set(v)) != len(v):
            msg = f"Target levels must be unique, got: {v}"
            raise ValueError(msg)
        return v

    @field_validator("recoding")
    @classmethod
    def validate_patterns(cls, v: dict[str, str]) -> dict[str, str]:
        """Ensure every recoding key compiles as a regular expression."""
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                msg = f"Invalid recoding pattern {pattern!r}: {e}"
                raise ValueError(msg) from e
        return v

    @model_validator(mode="after")
    def validate_level_references(self) -> "TargetConfig":
        """Recoding targets and probability keys must be known levels."""
        unknown = sorted(set(self.recoding.values()) - set(self.levels))
        if unknown:
            msg = f"Recoding for '{self.name}' maps to unknown levels: {unknown}"
            raise ValueError(msg)
        unknown = sorted(set(self.reference_probabilities) - set(self.levels))
        if unknown:
            msg = f"Reference probabilities for '{self.name}' name unknown levels: {unknown}"
            raise ValueError(msg)
        return self

    @property
    def has_reference(self) -> bool:
        """Whether an external predictor is available for comparison."""
        return bool(self.reference_probabilities) or self.reference_prediction is not None


def default_targets() -> list[TargetConfig]:
    """Hair and eye colour targets with HIrisPlex class definitions."""
    return [
        TargetConfig(
            name="hair_colour",
            reported_column="hair_colour",
            levels=["Blond", "Brown", "Red", "Black"],
            recoding={
                r"red|auburn|ginger": "Red",
                r"blond|fair|light": "Blond",
                r"black|dark\s*brown": "Black",
                r"brown|brunette|chestnut": "Brown",
            },
        ),
        TargetConfig(
            name="eye_colour",
            reported_column="eye_colour",
            levels=["Blue", "Intermediate", "Brown"],
            recoding={
                r"blue|gr[ae]y": "Blue",
                r"green|hazel|intermediate|mixed": "Intermediate",
                r"brown|black|dark": "Brown",
            },
        ),
    ]


class CleaningConfig(BaseModel):
    """Record cleaning configuration."""

    model_config = ConfigDict(frozen=True)

    drop_incomplete: Literal["any", "markers"] = Field(
        default="any",
        description="'any': drop records with any missing marker or label; "
        "'markers': only require complete genotypes",
    )
    min_class_size: int = Field(
        default=2, ge=2, description="Classes with fewer samples are dropped"
    )


class TrainingConfig(BaseModel):
    """Split and cross-validation configuration."""

    model_config = ConfigDict(frozen=True)

    test_size: float = Field(default=0.3, ge=0.05, le=0.5)
    cv_folds: int = Field(default=10, ge=2, le=20)
    random_state: int = Field(default=1337)
    scoring: str = Field(default="accuracy", description="GridSearchCV scoring")
    encoding: Literal["onehot", "ordinal"] = Field(
        default="onehot", description="Genotype encoding for the forest"
    )


class ModelConfig(BaseModel):
    """Model selection and hyperparameter configuration."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="Random Forest", description="Model registry name")
    params: dict[str, Any] = Field(
        default_factory=dict, description="Overrides for the model's default kwargs"
    )
    tune: bool = Field(default=True, description="Grid-search max_features")


class ReportConfig(BaseModel):
    """Report rendering configuration."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(default="Pigmentation prediction from SNP genotypes")
    formats: list[Literal["html", "pdf"]] = Field(default_factory=lambda: ["html"])
    top_n_markers: int = Field(default=24, ge=1)

    @field_validator("formats")
    @classmethod
    def validate_formats(cls, v: list[str]) -> list[str]:
        """At least one format, no duplicates."""
        if not v:
            msg = "report.formats must name at least one format"
            raise ValueError(msg)
        return list(dict.fromkeys(v))


class OutputConfig(BaseModel):
    """Output paths configuration.

    Structure: ./output/{project}/report.html, ./output/{project}/predictions, ...
    """

    model_config = ConfigDict(frozen=True)

    output_root: Path = Field(
        default=Path("./output"), description="Root directory for all outputs"
    )
    save_predictions: bool = Field(default=True)
    save_models: bool = Field(default=False)


class MLflowConfig(BaseModel):
    """MLflow experiment tracking configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=False)
    tracking_uri: str = Field(default="sqlite:///mlflow.db")
    artifact_location: str | None = Field(
        default=None, description="Artifact root for a newly created experiment"
    )
    experiment_name: str | None = Field(
        default=None, description="MLflow experiment name (defaults to project name)"
    )


class PipelineConfig(BaseModel):
    """Complete analysis configuration.

    The project name drives the MLflow experiment name (if not explicitly
    set) and the output directory: ./output/{project}/
    """

    model_config = ConfigDict(frozen=True)

    project: str = Field(description="Project identifier (e.g., 'hirisplex-2024')")

    data_paths: DataPathsConfig
    columns: InputColumnsConfig = Field(default_factory=InputColumnsConfig)
    markers: list[str] = Field(default_factory=lambda: list(HIRISPLEX_MARKERS))
    targets: list[TargetConfig] = Field(default_factory=default_targets)
    cleaning: CleaningConfig = Field(default_factory=CleaningConfig)
    training: TrainingConfig = Field(default_factory=TrainingConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    mlflow: MLflowConfig = Field(default_factory=MLflowConfig)

    @field_validator("targets")
    @classmethod
    def validate_targets(cls, v: list[TargetConfig]) -> list[TargetConfig]:
        """Require at least one target and unique target names."""
        if not v:
            msg = "At least one target must be configured"
            raise ValueError(msg)
        names = [t.name for t in v]
        if len(set(names)) != len(names):
            msg = f"Target names must be unique, got: {names}"
            raise ValueError(msg)
        return v

    @field_validator("markers")
    @classmethod
    def validate_markers(cls, v: list[str]) -> list[str]:
        """Markers must be unique."""
        if len(set(v)) != len(v):
            msg = "Marker list contains duplicates"
            raise ValueError(msg)
        return v

    def get_target(self, name: str) -> TargetConfig:
        """Look up a target by name."""
        for target in self.targets:
            if target.name == name:
                return target
        available = ", ".join(t.name for t in self.targets)
        msg = f"Unknown target '{name}'. Available: {available}"
        raise KeyError(msg)

    @property
    def target_names(self) -> list[str]:
        """Names of all configured targets."""
        return [t.name for t in self.targets]

    @property
    def experiment_name(self) -> str:
        """MLflow experiment name (derived from project if not set)."""
        return self.mlflow.experiment_name or self.project

    # Output path helpers
    @property
    def project_dir(self) -> Path:
        """Root output directory of this project."""
        return self.output.output_root / self.project

    @property
    def report_dir(self) -> Path:
        """Directory holding the rendered reports."""
        return self.project_dir

    @property
    def predictions_dir(self) -> Path:
        """Path to predictions output directory."""
        return self.project_dir / "predictions"

    @property
    def models_dir(self) -> Path:
        """Path to fitted model directory."""
        return self.project_dir / "models"

    def report_path(self, fmt: str) -> Path:
        """Path of the rendered report for a format ('html' or 'pdf')."""
        return self.report_dir / f"report.{fmt}"
