"""Tests for configuration system."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from pigmentrf.config import (
    HIRISPLEX_MARKERS,
    DataPathsConfig,
    PipelineConfig,
    ReportConfig,
    TargetConfig,
    TrainingConfig,
    load_config,
)
from pigmentrf.config.loader import _deep_merge, _interpolate_env_vars
from pigmentrf.config.settings import CleaningConfig, default_targets


def _write(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


class TestTargetConfig:
    """Tests for TargetConfig."""

    def test_valid_target(self) -> None:
        """Test creating a target with recoding and reference columns."""
        target = TargetConfig(
            name="eye_colour",
            reported_column="eye",
            levels=["Blue", "Brown"],
            recoding={"blue": "Blue", "brown": "Brown"},
            reference_probabilities={"Blue": "P_blue"},
        )
        assert target.has_reference
        assert target.levels == ["Blue", "Brown"]

    def test_single_level_rejected(self) -> None:
        """Test that a target needs at least two levels."""
        with pytest.raises(ValidationError, match="at least two levels"):
            TargetConfig(name="t", reported_column="t", levels=["Blue"])

    def test_duplicate_levels_rejected(self) -> None:
        """Test that levels must be unique."""
        with pytest.raises(ValidationError, match="unique"):
            TargetConfig(name="t", reported_column="t", levels=["Blue", "Blue"])

    def test_recoding_to_unknown_level_rejected(self) -> None:
        """Test that recoding may only map onto configured levels."""
        with pytest.raises(ValidationError, match="unknown levels"):
            TargetConfig(
                name="t",
                reported_column="t",
                levels=["Blue", "Brown"],
                recoding={"green": "Green"},
            )

    def test_invalid_pattern_rejected(self) -> None:
        """Test that recoding keys must be valid regular expressions."""
        with pytest.raises(ValidationError, match="Invalid recoding pattern"):
            TargetConfig(
                name="t",
                reported_column="t",
                levels=["Blue", "Brown"],
                recoding={"(blue": "Blue"},
            )

    def test_reference_probability_for_unknown_level_rejected(self) -> None:
        """Test that probability columns must name configured levels."""
        with pytest.raises(ValidationError, match="Reference probabilities"):
            TargetConfig(
                name="t",
                reported_column="t",
                levels=["Blue", "Brown"],
                reference_probabilities={"Green": "P_green"},
            )

    def test_default_targets(self) -> None:
        """Test the default hair and eye colour definitions."""
        hair, eye = default_targets()
        assert hair.name == "hair_colour"
        assert hair.levels == ["Blond", "Brown", "Red", "Black"]
        assert eye.name == "eye_colour"
        assert eye.levels == ["Blue", "Intermediate", "Brown"]
        assert not hair.has_reference


class TestTrainingConfig:
    """Tests for TrainingConfig bounds."""

    def test_defaults(self) -> None:
        """Test default split and CV settings."""
        config = TrainingConfig()
        assert config.test_size == 0.3
        assert config.cv_folds == 10
        assert config.random_state == 1337
        assert config.encoding == "onehot"

    @pytest.mark.parametrize("test_size", [0.0, 0.01, 0.6])
    def test_test_size_bounds(self, test_size: float) -> None:
        """Test that test_size must lie in [0.05, 0.5]."""
        with pytest.raises(ValidationError):
            TrainingConfig(test_size=test_size)

    def test_cv_folds_bounds(self) -> None:
        """Test that at least two CV folds are required."""
        with pytest.raises(ValidationError):
            TrainingConfig(cv_folds=1)

    def test_min_class_size_at_least_two(self) -> None:
        """Test that stratification needs two samples per class."""
        with pytest.raises(ValidationError):
            CleaningConfig(min_class_size=1)


class TestReportConfig:
    """Tests for ReportConfig."""

    def test_formats_deduplicated(self) -> None:
        """Test that repeated formats collapse."""
        assert ReportConfig(formats=["html", "pdf", "html"]).formats == ["html", "pdf"]

    def test_empty_formats_rejected(self) -> None:
        """Test that at least one format is required."""
        with pytest.raises(ValidationError, match="at least one format"):
            ReportConfig(formats=[])

    def test_unknown_format_rejected(self) -> None:
        """Test that only html and pdf are supported."""
        with pytest.raises(ValidationError):
            ReportConfig(formats=["docx"])


class TestPipelineConfig:
    """Tests for PipelineConfig."""

    @pytest.fixture
    def paths(self) -> DataPathsConfig:
        """Minimal data paths."""
        return DataPathsConfig(phenotypes=Path("p.tsv"), genotypes=Path("g.tsv"))

    def test_defaults(self, paths: DataPathsConfig) -> None:
        """Test HIrisPlex panel and default targets."""
        config = PipelineConfig(project="demo", data_paths=paths)
        assert config.markers == HIRISPLEX_MARKERS
        assert config.target_names == ["hair_colour", "eye_colour"]
        assert config.experiment_name == "demo"
        assert config.mlflow.tracking_uri.startswith("sqlite:///")
        assert config.mlflow.artifact_location is None

    def test_output_paths(self, paths: DataPathsConfig) -> None:
        """Test output paths derived from project."""
        config = PipelineConfig(project="demo", data_paths=paths)
        assert config.project_dir == Path("./output/demo")
        assert config.report_dir == config.project_dir
        assert config.report_path("pdf") == Path("./output/demo/report.pdf")
        assert config.predictions_dir == Path("./output/demo/predictions")
        assert config.models_dir == Path("./output/demo/models")

    def test_resolve_against_data_root(self, paths: DataPathsConfig) -> None:
        """Test that relative input paths are resolved against data_root."""
        assert paths.resolve("phenotypes") == Path("./data/p.tsv")

    def test_duplicate_target_names_rejected(self, paths: DataPathsConfig) -> None:
        """Test that target names must be unique."""
        hair = default_targets()[0]
        with pytest.raises(ValidationError, match="unique"):
            PipelineConfig(project="demo", data_paths=paths, targets=[hair, hair])

    def test_duplicate_markers_rejected(self, paths: DataPathsConfig) -> None:
        """Test that markers must be unique."""
        with pytest.raises(ValidationError, match="duplicates"):
            PipelineConfig(project="demo", data_paths=paths, markers=["rs1", "rs1"])

    def test_get_target_unknown(self, paths: DataPathsConfig) -> None:
        """Test that an unknown target raises KeyError."""
        config = PipelineConfig(project="demo", data_paths=paths)
        with pytest.raises(KeyError, match="skin_colour"):
            config.get_target("skin_colour")


class TestLoadConfig:
    """Tests for YAML config loading."""

    def test_load_minimal_config(self, tmp_path: Path) -> None:
        """Test loading a config with only the required keys."""
        path = _write(
            tmp_path / "minimal.yaml",
            """
project: minimal
data:
  phenotypes: pheno.tsv
  genotypes: geno.tsv
""",
        )
        config = load_config(path)
        assert config.project == "minimal"
        assert config.data_paths.phenotypes == Path("pheno.tsv")
        assert config.markers == HIRISPLEX_MARKERS
        assert config.target_names == ["hair_colour", "eye_colour"]
        assert config.training.cv_folds == 10

    def test_missing_project(self, tmp_path: Path) -> None:
        """Test that a project name is required."""
        path = _write(tmp_path / "c.yaml", "data:\n  phenotypes: p\n  genotypes: g\n")
        with pytest.raises(ValueError, match="project"):
            load_config(path)

    def test_missing_data_path(self, tmp_path: Path) -> None:
        """Test that both input tables are required."""
        path = _write(tmp_path / "c.yaml", "project: x\ndata:\n  phenotypes: p\n")
        with pytest.raises(ValueError, match="data.genotypes"):
            load_config(path)

    def test_base_yaml_inheritance(self, tmp_path: Path) -> None:
        """Test deep-merge with base.yaml next to the config."""
        _write(
            tmp_path / "base.yaml",
            """
training:
  cv_folds: 5
  test_size: 0.25
report:
  formats: [pdf]
""",
        )
        path = _write(
            tmp_path / "study.yaml",
            """
project: study
data:
  phenotypes: p.tsv
  genotypes: g.tsv
training:
  cv_folds: 4
""",
        )
        config = load_config(path)
        assert config.training.cv_folds == 4
        assert config.training.test_size == 0.25
        assert config.report.formats == ["pdf"]

    def test_env_var_interpolation(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test ${VAR} and ${VAR:default} in YAML values."""
        monkeypatch.setenv("PIGMENT_DATA", "/srv/cohort")
        monkeypatch.delenv("PIGMENT_OUT", raising=False)
        path = _write(
            tmp_path / "env.yaml",
            """
project: env
data:
  root: ${PIGMENT_DATA}
  phenotypes: p.tsv
  genotypes: g.tsv
output:
  root: ${PIGMENT_OUT:./results}
""",
        )
        config = load_config(path)
        assert config.data_paths.data_root == Path("/srv/cohort")
        assert config.output.output_root == Path("./results")

    def test_target_overrides_inherit_defaults(self, tmp_path: Path) -> None:
        """Test that a partial target entry keeps the default levels and recoding."""
        path = _write(
            tmp_path / "targets.yaml",
            """
project: t
data:
  phenotypes: p.tsv
  genotypes: g.tsv
targets:
  eye_colour:
    reported_column: EyeColour
    reference_probabilities:
      Blue: P_blue
""",
        )
        config = load_config(path)
        assert config.target_names == ["eye_colour"]
        eye = config.get_target("eye_colour")
        assert eye.reported_column == "EyeColour"
        assert eye.levels == ["Blue", "Intermediate", "Brown"]
        assert eye.recoding
        assert eye.reference_probabilities == {"Blue": "P_blue"}

    def test_replaced_levels_clear_default_recoding(self, tmp_path: Path) -> None:
        """Test that new levels without recoding drop the default patterns."""
        path = _write(
            tmp_path / "levels.yaml",
            """
project: t
data:
  phenotypes: p.tsv
  genotypes: g.tsv
targets:
  - name: eye_colour
    levels: [Light, Dark]
""",
        )
        eye = load_config(path).get_target("eye_colour")
        assert eye.levels == ["Light", "Dark"]
        assert eye.recoding == {}

    def test_invalid_targets_type(self, tmp_path: Path) -> None:
        """Test that targets must be a mapping or list."""
        path = _write(
            tmp_path / "bad.yaml",
            "project: t\ndata:\n  phenotypes: p\n  genotypes: g\ntargets: hair\n",
        )
        with pytest.raises(ValueError, match="mapping or a list"):
            load_config(path)

    def test_shipped_example_config(self) -> None:
        """Test that the example config in configs/ loads."""
        root = Path(__file__).parent.parent
        config = load_config(root / "configs" / "hirisplex.yaml")
        assert config.project == "hirisplex"
        assert config.columns.genotype_id == "IID"
        assert config.columns.separator == "\t"
        assert config.report.formats == ["html", "pdf"]
        assert config.get_target("eye_colour").has_reference


class TestLoaderHelpers:
    """Tests for loader helper functions."""

    def test_deep_merge(self) -> None:
        """Test nested dictionaries merge key by key."""
        merged = _deep_merge({"a": {"b": 1, "c": 2}, "d": 1}, {"a": {"c": 3}, "e": 4})
        assert merged == {"a": {"b": 1, "c": 3}, "d": 1, "e": 4}

    def test_interpolate_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test default values may contain colons."""
        monkeypatch.delenv("MISSING_URI", raising=False)
        assert _interpolate_env_vars("${MISSING_URI:sqlite:///mlflow.db}") == "sqlite:///mlflow.db"
