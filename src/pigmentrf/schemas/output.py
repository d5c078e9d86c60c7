"""
Pandera schemas for analysis outputs.
"""

import pandas as pd
import pandera.pandas as pa
from pandera.typing import Series


class PredictionOutputSchema(pa.DataFrameModel):
    """
    Schema for per-sample test-set predictions of one target.

    Probability columns are named `p_<level>`.
    """

    sample_id: Series[str] = pa.Field(description="Sample identifier")
    reported: Series[str] = pa.Field(description="Self-reported class")
    predicted: Series[str] = pa.Field(description="Predicted class")
    correct: Series[bool] = pa.Field(description="predicted == reported")
    probabilities: Series[float] = pa.Field(
        alias="^p_",
        regex=True,
        ge=0.0,
        le=1.0,
        description="Class probabilities",
    )

    @pa.dataframe_check
    def correct_matches_labels(cls, df: pd.DataFrame) -> Series[bool]:
        """The correct flag must agree with the label columns."""
        return df["correct"] == (df["reported"] == df["predicted"])

    class Config:
        """Schema configuration."""

        name = "PredictionOutputSchema"
        strict = False
        coerce = True
