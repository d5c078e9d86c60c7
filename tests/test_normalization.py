"""Tests for genotype and label normalization."""

import numpy as np
import pandas as pd
import pytest

from pigmentrf.config.settings import TargetConfig, default_targets
from pigmentrf.normalization.genotypes import normalize_genotype_call, normalize_genotypes
from pigmentrf.normalization.labels import (
    recode_labels,
    reference_labels,
    reference_probabilities,
)


@pytest.fixture
def hair() -> TargetConfig:
    """Default hair colour target."""
    return default_targets()[0]


@pytest.fixture
def eye() -> TargetConfig:
    """Eye colour target with reference probability columns."""
    return default_targets()[1].model_copy(
        update={"reference_probabilities": {"Blue": "P_blue", "Brown": "P_brown"}}
    )


class TestNormalizeGenotypeCall:
    """Tests for single genotype calls."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("AG", "AG"),
            ("GA", "AG"),
            ("A/G", "AG"),
            ("g|a", "AG"),
            (" t:c ", "CT"),
            ("I/D", "DI"),
            ("1", "1"),
        ],
    )
    def test_canonical_form(self, raw: str, expected: str) -> None:
        """Test that separators, case and allele order are normalized."""
        assert normalize_genotype_call(raw) == expected

    @pytest.mark.parametrize("raw", ["", "NA", "n/a", "--", "-/-", "00", "NN", "?", None, np.nan])
    def test_missing_tokens(self, raw: object) -> None:
        """Test that missing-value tokens become None."""
        assert normalize_genotype_call(raw) is None

    @pytest.mark.parametrize("raw", ["AXG", "A", "AGT", "3"])
    def test_unparseable(self, raw: str) -> None:
        """Test that malformed calls become None."""
        assert normalize_genotype_call(raw) is None


class TestNormalizeGenotypes:
    """Tests for table-level genotype normalization."""

    def test_normalizes_markers_only(self) -> None:
        """Test that only the listed markers are touched."""
        df = pd.DataFrame(
            {
                "sample_id": ["S1", "S2", "S3"],
                "rs1": ["A/G", "ga", "NA"],
                "rs2": ["CC", "xx", "C|T"],
            }
        )
        result = normalize_genotypes(df, ["rs1", "rs2"])
        assert result["rs1"].tolist()[:2] == ["AG", "AG"]
        assert pd.isna(result.loc[2, "rs1"])
        assert pd.isna(result.loc[1, "rs2"])
        assert result.loc[2, "rs2"] == "CT"
        assert result["sample_id"].tolist() == ["S1", "S2", "S3"]

    def test_input_unchanged(self) -> None:
        """Test that the input frame is not modified."""
        df = pd.DataFrame({"sample_id": ["S1"], "rs1": ["G/A"]})
        normalize_genotypes(df, ["rs1"])
        assert df.loc[0, "rs1"] == "G/A"


class TestRecodeLabels:
    """Tests for free-text label recoding."""

    def test_exact_and_pattern_matches(self, eye: TargetConfig) -> None:
        """Test exact level names and regex patterns."""
        series = pd.Series(["Blue", "grey", "Hazel", "dark brown", "BROWN"], name="eye")
        result = recode_labels(series, eye.recoding, eye.levels)
        assert result.tolist() == ["Blue", "Blue", "Intermediate", "Brown", "Brown"]

    def test_first_pattern_wins(self, hair: TargetConfig) -> None:
        """Test that patterns are tried in configured order."""
        series = pd.Series(["strawberry blond red", "dark brown", "chestnut"])
        result = recode_labels(series, hair.recoding, hair.levels)
        assert result.tolist() == ["Red", "Black", "Brown"]

    def test_unmatched_and_empty_become_missing(self, hair: TargetConfig) -> None:
        """Test that unknown or empty labels are missing."""
        series = pd.Series(["purple", "", None, "blond"])
        result = recode_labels(series, hair.recoding, hair.levels)
        assert result.isna().tolist() == [True, True, True, False]

    def test_ordered_categories(self, hair: TargetConfig) -> None:
        """Test that the result keeps configured level order."""
        result = recode_labels(pd.Series(["black", "blond"]), hair.recoding, hair.levels)
        assert list(result.cat.categories) == ["Blond", "Brown", "Red", "Black"]
        assert result.cat.ordered

    def test_without_mapping(self) -> None:
        """Test that level names match case-insensitively without patterns."""
        result = recode_labels(pd.Series(["light", "DARK", "medium"]), {}, ["Light", "Dark"])
        assert result.tolist()[:2] == ["Light", "Dark"]
        assert pd.isna(result.iloc[2])


class TestReference:
    """Tests for reference predictor extraction."""

    @pytest.fixture
    def table(self) -> pd.DataFrame:
        """Phenotype rows with probability strings."""
        return pd.DataFrame(
            {
                "P_blue": ["0.8", "0,1", "0.5", ""],
                "P_brown": ["0.1", "0,7", "0.5", "0.4"],
            }
        )

    def test_probabilities(self, table: pd.DataFrame, eye: TargetConfig) -> None:
        """Test comma decimals and zero-filled unconfigured levels."""
        proba = reference_probabilities(table, eye)
        assert proba is not None
        assert list(proba.columns) == ["Blue", "Intermediate", "Brown"]
        assert proba.loc[1, "Blue"] == pytest.approx(0.1)
        assert (proba["Intermediate"] == 0.0).all()
        assert pd.isna(proba.loc[3, "Blue"])

    def test_labels_from_probabilities(self, table: pd.DataFrame, eye: TargetConfig) -> None:
        """Test argmax labels, first level on ties, missing when incomplete."""
        labels = reference_labels(table, eye)
        assert labels is not None
        assert labels.name == "eye_colour_reference"
        assert labels.iloc[:3].tolist() == ["Blue", "Brown", "Blue"]
        assert pd.isna(labels.iloc[3])

    def test_labels_from_prediction_column(self, hair: TargetConfig) -> None:
        """Test that a predicted-label column is recoded like self-reports."""
        target = hair.model_copy(update={"reference_prediction": "hair_pred"})
        df = pd.DataFrame({"hair_pred": ["auburn", "Blond"]})
        labels = reference_labels(df, target)
        assert labels is not None
        assert labels.tolist() == ["Red", "Blond"]

    def test_no_reference(self, hair: TargetConfig) -> None:
        """Test that targets without a reference return None."""
        df = pd.DataFrame({"hair_colour": ["red"]})
        assert reference_probabilities(df, hair) is None
        assert reference_labels(df, hair) is None
