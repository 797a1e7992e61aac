"""
Per-run detection parameters.

AnomalyDetectionParameters is the only tunable surface of the detectors.
It is frozen, so a run cannot change it while columns are processed in
parallel. Field aliases accept the camelCase names used by callers
(zScoreThreshold, movingAverageWindow, ...).
"""

from typing import Any, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from anomaly_engine.errors import InvalidParameterError


class AnomalyDetectionParameters(BaseModel):
    """
    Detection parameters, validated on construction.

    Attributes:
        z_score_threshold: |z| must exceed this to flag a point (default 3.0).
        moving_average_window: Preceding points in the rolling window (default 10).
        percentile_thresholds: Lower/upper percentile cut-offs (default 5, 95).
        text_similarity_threshold: Topic similarity floor and keyword
            ratio band, in (0, 1] (default 0.8).
        minimum_anomaly_duration: Shortest retained run of flagged points
            (default 1).

    Example:
        >>> params = AnomalyDetectionParameters(zScoreThreshold=2.5)
        >>> params.z_score_threshold
        2.5
    """

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}

    z_score_threshold: float = Field(
        default=3.0,
        alias="zScoreThreshold",
        gt=0.0,
        description="Z-score threshold for flagging points",
    )
    moving_average_window: int = Field(
        default=10,
        alias="movingAverageWindow",
        gt=0,
        description="Number of preceding points in the rolling window",
    )
    percentile_thresholds: Tuple[float, float] = Field(
        default=(5.0, 95.0),
        alias="percentileThresholds",
        description="Lower and upper percentile thresholds",
    )
    text_similarity_threshold: float = Field(
        default=0.8,
        alias="textSimilarityThreshold",
        gt=0.0,
        le=1.0,
        description="Similarity floor for topic drift and keyword ratio band",
    )
    minimum_anomaly_duration: int = Field(
        default=1,
        alias="minimumAnomalyDuration",
        gt=0,
        description="Minimum contiguous flagged points to keep a candidate",
    )

    @field_validator("percentile_thresholds")
    @classmethod
    def check_percentiles(cls, v: Tuple[float, float]) -> Tuple[float, float]:
        """Percentiles must be strictly positive, ordered and at most 100."""
        low, high = v
        if low <= 0.0:
            raise ValueError(f"lower percentile must be > 0, got {low}")
        if high > 100.0:
            raise ValueError(f"upper percentile must be <= 100, got {high}")
        if low >= high:
            raise ValueError(f"lower percentile ({low}) must be < upper ({high})")
        return v

    @property
    def lower_percentile(self) -> float:
        return self.percentile_thresholds[0]

    @property
    def upper_percentile(self) -> float:
        return self.percentile_thresholds[1]


def validate_parameters(
    data: Optional[Union[AnomalyDetectionParameters, Mapping[str, Any]]] = None,
) -> AnomalyDetectionParameters:
    """
    Validate detection parameters before a run.

    Args:
        data: Parameters model, raw mapping (snake_case or camelCase keys),
            or None for defaults.

    Returns:
        AnomalyDetectionParameters: Validated parameters.

    Raises:
        InvalidParameterError: If any value is outside its documented range.
    """
    if data is None:
        return AnomalyDetectionParameters()

    try:
        if isinstance(data, AnomalyDetectionParameters):
            # Re-validate: model_construct() can bypass validation
            return AnomalyDetectionParameters.model_validate(data.model_dump())
        return AnomalyDetectionParameters.model_validate(dict(data))
    except ValidationError as e:
        raise InvalidParameterError(
            f"Invalid detection parameters: {e}",
            cause=e,
        ) from e
