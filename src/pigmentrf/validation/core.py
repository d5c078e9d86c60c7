"""
Core validation logic for the input tables.

Validates the phenotype and genotype tables against their Pandera schemas
without running the analysis.
"""

from dataclasses import dataclass
from pathlib import Path

import pandas as pd
import pandera.pandas as pa

from pigmentrf.config.settings import PipelineConfig
from pigmentrf.ingestion.base import DataLoader
from pigmentrf.ingestion.genotype import GenotypeLoader
from pigmentrf.ingestion.phenotype import PhenotypeLoader
from pigmentrf.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class ValidationResult:
    """Result of validating a single input table."""

    dataset_name: str
    schema_name: str | None
    file_path: Path
    exists: bool
    schema_valid: bool | None
    row_count: int | None
    error_message: str | None


# Input table name -> loader class
DATASET_LOADERS: dict[str, type[DataLoader]] = {
    "phenotypes": PhenotypeLoader,
    "genotypes": GenotypeLoader,
}


class ValidationRunner:
    """
    Runs validation for both input tables.

    Validates data files against their schemas and reports results.
    """

    def __init__(self, config: PipelineConfig) -> None:
        """
        Initialize validation runner.

        Args:
            config: Pipeline configuration containing data paths.
        """
        self.config = config

    def run(self) -> list[ValidationResult]:
        """
        Run validation for all input tables.

        Returns:
            List of validation results, one per table.
        """
        return [self._validate_dataset(name) for name in DATASET_LOADERS]

    def _validate_dataset(self, dataset_name: str) -> ValidationResult:
        """
        Validate a single input table.

        Args:
            dataset_name: Attribute name from DataPathsConfig.

        Returns:
            ValidationResult for the table.
        """
        loader = DATASET_LOADERS[dataset_name](self.config)
        file_path = loader.path

        if not file_path.exists():
            log.warning("Data file not found", dataset=dataset_name, path=str(file_path))
            return ValidationResult(
                dataset_name=dataset_name,
                schema_name=None,
                file_path=file_path,
                exists=False,
                schema_valid=None,
                row_count=None,
                error_message="File not found",
            )

        df: pd.DataFrame | None = None
        schema_name: str | None = None
        try:
            df = loader.load(validate=False)
            schema = loader.schema()
            schema_name = schema.name
            schema.validate(df, lazy=True)

        except (pa.errors.SchemaError, pa.errors.SchemaErrors) as e:
            error_msg = self._format_schema_error(e)
            log.error(
                "Schema validation failed",
                dataset=dataset_name,
                schema=schema_name,
                error=error_msg,
            )
            return ValidationResult(
                dataset_name=dataset_name,
                schema_name=schema_name,
                file_path=file_path,
                exists=True,
                schema_valid=False,
                row_count=len(df) if df is not None else None,
                error_message=error_msg,
            )

        except (ValueError, OSError) as e:
            # Unreadable file or missing configured columns
            error_msg = f"{type(e).__name__}: {e!s}"
            log.error("Validation error", dataset=dataset_name, error=error_msg)
            return ValidationResult(
                dataset_name=dataset_name,
                schema_name=schema_name,
                file_path=file_path,
                exists=True,
                schema_valid=False,
                row_count=None,
                error_message=error_msg,
            )

        log.info(
            "Validation passed",
            dataset=dataset_name,
            schema=schema_name,
            rows=len(df),
        )
        return ValidationResult(
            dataset_name=dataset_name,
            schema_name=schema_name,
            file_path=file_path,
            exists=True,
            schema_valid=True,
            row_count=len(df),
            error_message=None,
        )

    def _format_schema_error(self, error: pa.errors.SchemaError | pa.errors.SchemaErrors) -> str:
        """
        Format schema error for user-friendly display.

        Args:
            error: Pandera SchemaError or lazy SchemaErrors.

        Returns:
            Formatted error message (first 5 violations).
        """
        failures = getattr(error, "failure_cases", None)
        if isinstance(failures, pd.DataFrame):
            n_failures = len(failures)
            columns = [c for c in ("column", "check", "failure_case", "index") if c in failures]
            shown = failures[columns] if columns else failures
            if n_failures > 5:
                failures_str = shown.head(5).to_string(index=False)
                return f"{n_failures} validation errors (showing first 5):\n{failures_str}"
            return f"{n_failures} validation error(s):\n{shown.to_string(index=False)}"

        return str(error).split("\n")[0][:200]
