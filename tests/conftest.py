"""Pytest configuration and shared fixtures."""

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import matplotlib
import numpy as np
import pandas as pd
import pytest
import structlog
import yaml

from pigmentrf.config.settings import (
    DataPathsConfig,
    ModelConfig,
    OutputConfig,
    PipelineConfig,
    ReportConfig,
    TrainingConfig,
    default_targets,
)
from pigmentrf.ingestion import load_genotypes, load_phenotypes
from pigmentrf.modeling.data import PreparedDataset, TargetData, prepare_dataset, split_target
from pigmentrf.modeling.training import TrainedModel, train_target

matplotlib.use("Agg")

MARKERS = ["rs12913832", "rs1800407", "rs16891982", "rs1805007", "rs12896399"]

HAIR_LEVELS = ["Blond", "Brown", "Red", "Black"]
EYE_LEVELS = ["Blue", "Intermediate", "Brown"]

HAIR_TEXT = {
    "Blond": ["blond", "Fair", "light blonde"],
    "Brown": ["brown", "Brunette", "chestnut"],
    "Red": ["red", "Auburn", "ginger"],
    "Black": ["black", "Black", "dark brown"],
}
EYE_TEXT = {
    "Blue": ["blue", "Grey", "blue-grey"],
    "Intermediate": ["green", "Hazel", "intermediate"],
    "Brown": ["brown", "Dark brown", "BROWN"],
}

EYE_PROBA_COLUMNS = {
    "Blue": "P_blue_eye",
    "Intermediate": "P_intermediate_eye",
    "Brown": "P_brown_eye",
}

N_SAMPLES = 60


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Drop logging config bound to streams captured by a previous test."""
    yield
    structlog.reset_defaults()


def _call(genotype: str, i: int) -> str:
    """Write a call in one of several export styles."""
    style = i % 3
    if style == 0:
        return f"{genotype[0]}/{genotype[1]}"
    if style == 1:
        return genotype[::-1]
    return genotype.lower()


@pytest.fixture
def cohort() -> pd.DataFrame:
    """True classes and genotypes of a synthetic cohort."""
    rng = np.random.default_rng(42)
    rows = []
    for i in range(N_SAMPLES):
        hair = HAIR_LEVELS[i % 4]
        eye = EYE_LEVELS[i % 3]
        herc2 = {"Blue": "GG", "Intermediate": "AG", "Brown": "AA"}[eye]
        slc45a2 = {"Blond": "CC", "Brown": "CG", "Black": "GG", "Red": "CG"}[hair]
        mc1r = "TT" if hair == "Red" else "CC"
        if i % 10 == 7:
            herc2 = "AG"
        rows.append(
            {
                "sample_id": f"S{i:03d}",
                "hair": hair,
                "eye": eye,
                "rs12913832": herc2,
                "rs1800407": rng.choice(["CC", "CT", "TT"]),
                "rs16891982": slc45a2,
                "rs1805007": mc1r,
                "rs12896399": rng.choice(["GG", "GT", "TT"]),
            }
        )
    return pd.DataFrame(rows)


@pytest.fixture
def phenotype_table(cohort: pd.DataFrame) -> pd.DataFrame:
    """Phenotype table with free-text labels and reference probabilities."""
    rows = []
    for i, row in cohort.iterrows():
        hair_text = HAIR_TEXT[row["hair"]][i % 3]
        eye_text = EYE_TEXT[row["eye"]][i % 3]
        if i == 58:
            hair_text = "purple"

        # Reference is right for most samples, wrong for every 6th
        predicted = row["eye"] if i % 6 else EYE_LEVELS[(i + 1) % 3]
        proba = {level: 0.15 for level in EYE_LEVELS}
        proba[predicted] = 0.70
        rows.append(
            {
                "sample_id": f" {row['sample_id']} " if i == 0 else row["sample_id"],
                "hair_colour": hair_text,
                "eye_colour": eye_text,
                **{
                    column: f"{proba[level]:.2f}".replace(".", ",") if i == 1 else f"{proba[level]:.2f}"
                    for level, column in EYE_PROBA_COLUMNS.items()
                },
            }
        )
    rows.append(
        {
            "sample_id": "P999",
            "hair_colour": "red",
            "eye_colour": "blue",
            **{column: "0.33" for column in EYE_PROBA_COLUMNS.values()},
        }
    )
    return pd.DataFrame(rows)


@pytest.fixture
def genotype_table(cohort: pd.DataFrame) -> pd.DataFrame:
    """Genotype table with mixed call styles, a missing call and extras."""
    df = cohort[["sample_id", *MARKERS]].copy()
    for i in df.index:
        for marker in MARKERS:
            df.loc[i, marker] = _call(df.loc[i, marker], i)
    df.loc[59, "rs1800407"] = "NA"
    extra = pd.DataFrame(
        [
            {"sample_id": "G999", **{m: "AA" for m in MARKERS}},
            {"sample_id": "S010", **{m: "CC" for m in MARKERS}},
        ]
    )
    df = pd.concat([df, extra], ignore_index=True)
    df["rs_unused"] = "AG"
    return df


@pytest.fixture
def input_files(
    tmp_path: Path,
    phenotype_table: pd.DataFrame,
    genotype_table: pd.DataFrame,
) -> tuple[Path, Path]:
    """Write both tables as TSV into tmp_path/data."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    pheno_path = data_dir / "phenotypes.tsv"
    geno_path = data_dir / "genotypes.tsv"
    phenotype_table.to_csv(pheno_path, sep="\t", index=False)
    genotype_table.to_csv(geno_path, sep="\t", index=False)
    return pheno_path, geno_path


def _targets_with_reference() -> list[Any]:
    hair, eye = default_targets()
    eye = eye.model_copy(update={"reference_probabilities": dict(EYE_PROBA_COLUMNS)})
    return [hair, eye]


@pytest.fixture
def pipeline_config(tmp_path: Path, input_files: tuple[Path, Path]) -> PipelineConfig:
    """Small, fast configuration over the synthetic cohort."""
    return PipelineConfig(
        project="test-cohort",
        data_paths=DataPathsConfig(
            data_root=tmp_path / "data",
            phenotypes=Path("phenotypes.tsv"),
            genotypes=Path("genotypes.tsv"),
        ),
        markers=MARKERS,
        targets=_targets_with_reference(),
        training=TrainingConfig(test_size=0.3, cv_folds=3, random_state=7),
        model=ModelConfig(params={"n_estimators": 25, "n_jobs": 1}),
        report=ReportConfig(formats=["html", "pdf"], top_n_markers=5),
        output=OutputConfig(output_root=tmp_path / "output"),
    )


@pytest.fixture
def config_dict(tmp_path: Path) -> dict[str, Any]:
    """YAML-ready configuration equivalent to pipeline_config."""
    return {
        "project": "test-cohort",
        "data": {
            "root": str(tmp_path / "data"),
            "phenotypes": "phenotypes.tsv",
            "genotypes": "genotypes.tsv",
        },
        "markers": MARKERS,
        "targets": {
            "hair_colour": {},
            "eye_colour": {"reference_probabilities": dict(EYE_PROBA_COLUMNS)},
        },
        "training": {"cv_folds": 3, "random_state": 7},
        "model": {"params": {"n_estimators": 25, "n_jobs": 1}},
        "report": {"formats": ["html"]},
        "output": {"root": str(tmp_path / "output")},
    }


@pytest.fixture
def config_file(
    tmp_path: Path,
    config_dict: dict[str, Any],
    input_files: tuple[Path, Path],
) -> Path:
    """Configuration YAML written to tmp_path/configs."""
    config_dir = tmp_path / "configs"
    config_dir.mkdir()
    path = config_dir / "test.yaml"
    path.write_text(yaml.safe_dump(config_dict), encoding="utf-8")
    return path


@pytest.fixture
def dataset(pipeline_config: PipelineConfig) -> PreparedDataset:
    """Joined and cleaned synthetic cohort."""
    return prepare_dataset(
        load_phenotypes(pipeline_config),
        load_genotypes(pipeline_config),
        pipeline_config,
    )


@pytest.fixture
def eye_split(dataset: PreparedDataset, pipeline_config: PipelineConfig) -> TargetData:
    """Stratified eye colour split with reference predictions."""
    return split_target(dataset, "eye_colour", pipeline_config)


@pytest.fixture
def eye_model(eye_split: TargetData, pipeline_config: PipelineConfig) -> TrainedModel:
    """Untuned eye colour forest."""
    return train_target(eye_split, pipeline_config, tune=False)
