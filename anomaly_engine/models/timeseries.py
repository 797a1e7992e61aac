"""
Time series data models.

This module defines the cleaned numeric series handed in by the data
processor, together with its precomputed summary statistics.

Models:
    TrendDirection: Direction of the least-squares trend
    SeasonalityDescriptor: Inferred seasonal period and its strength
    TimeSeriesPoint: A single timestamped observation
    TimeSeriesStatistics: Summary statistics of a point sequence
    TimeSeries: Ordered, immutable sequence of points with statistics
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from pydantic import BaseModel, Field, PrivateAttr, field_validator

from anomaly_engine.stats import dominant_period, linear_slope, sample_std

# Percentiles always present in TimeSeriesStatistics.percentiles
STATISTICS_PERCENTILES: Tuple[int, ...] = (5, 25, 75, 95)

# Total trend change below this fraction of one standard deviation is "stable"
TREND_STABILITY_RATIO: float = 0.5


class TrendDirection(str, Enum):
    """
    Direction of the series trend.

    Attributes:
        INCREASING: Values rise over the series.
        DECREASING: Values fall over the series.
        STABLE: No meaningful overall change.
    """

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class SeasonalityDescriptor(BaseModel):
    """
    Seasonality inferred from the autocorrelation function.

    Attributes:
        period: Autocorrelation-peak lag, None when no seasonality found.
        strength: Autocorrelation at that lag (0.0 when none).
    """

    model_config = {"frozen": True, "extra": "forbid"}

    period: Optional[int] = Field(default=None, ge=2)
    strength: float = Field(default=0.0)

    @property
    def is_seasonal(self) -> bool:
        """Check if a seasonal period was found."""
        return self.period is not None


class TimeSeriesPoint(BaseModel):
    """
    A single observation of a numeric column.

    is_anomaly and anomaly_score are written by the time-series detector
    only; ingestion always leaves them at their defaults.

    Attributes:
        timestamp: Observation time.
        value: Observed (cleaned) value. Must be finite; missing values are
            imputed before the series reaches the engine.
        is_anomaly: Whether any detector sub-method flagged this point.
        anomaly_score: Highest normalized score across sub-methods.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    timestamp: datetime
    value: float = Field(..., allow_inf_nan=False)
    is_anomaly: bool = False
    anomaly_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class TimeSeriesStatistics(BaseModel):
    """
    Summary statistics of a series.

    Attributes:
        mean: Arithmetic mean.
        standard_deviation: Sample standard deviation (n-1).
        median: Median value.
        percentiles: Percentile values keyed by 5, 25, 75 and 95.
        trend_direction: Direction of the least-squares trend.
        seasonality: Inferred seasonality.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    mean: float = 0.0
    standard_deviation: float = Field(default=0.0, ge=0.0)
    median: float = 0.0
    percentiles: Dict[int, float] = Field(default_factory=dict)
    trend_direction: TrendDirection = TrendDirection.STABLE
    seasonality: SeasonalityDescriptor = Field(default_factory=SeasonalityDescriptor)

    @property
    def is_constant(self) -> bool:
        """Check if the series has zero variance."""
        return self.standard_deviation == 0.0

    @classmethod
    def from_values(cls, values: Sequence[float]) -> "TimeSeriesStatistics":
        """
        Compute statistics for a value sequence.

        Args:
            values: Series values in timestamp order.

        Returns:
            TimeSeriesStatistics: Statistics; all zeros for an empty sequence.
        """
        if len(values) == 0:
            return cls(percentiles={p: 0.0 for p in STATISTICS_PERCENTILES})

        data = np.asarray(values, dtype=float)
        std = sample_std(data)
        percentile_values = np.percentile(data, STATISTICS_PERCENTILES)

        trend = TrendDirection.STABLE
        if std > 0.0:
            total_change = linear_slope(data) * (data.shape[0] - 1)
            if abs(total_change) >= std * TREND_STABILITY_RATIO:
                trend = (
                    TrendDirection.INCREASING
                    if total_change > 0
                    else TrendDirection.DECREASING
                )

        seasonality = SeasonalityDescriptor()
        peak = dominant_period(data) if std > 0.0 else None
        if peak is not None:
            seasonality = SeasonalityDescriptor(period=peak[0], strength=peak[1])

        return cls(
            mean=float(data.mean()),
            standard_deviation=std,
            median=float(np.median(data)),
            percentiles={
                p: float(v) for p, v in zip(STATISTICS_PERCENTILES, percentile_values)
            },
            trend_direction=trend,
            seasonality=seasonality,
        )


class TimeSeries(BaseModel):
    """
    Ordered, immutable sequence of points for one numeric column.

    Points must be strictly increasing in timestamp. Statistics are derived
    lazily from the point tuple; since the tuple cannot change, every new
    point sequence (with_points, with_anomaly_flags) gets fresh statistics.

    Example:
        >>> series = TimeSeries.from_values(
        ...     "headcount",
        ...     timestamps=[datetime(2024, 1, d) for d in range(1, 4)],
        ...     values=[10.0, 11.0, 12.0],
        ... )
        >>> series.statistics.mean
        11.0
    """

    model_config = {"frozen": True, "extra": "forbid"}

    name: str = Field(..., min_length=1, description="Column name / data source")
    points: Tuple[TimeSeriesPoint, ...] = Field(default=())

    _statistics: Optional[TimeSeriesStatistics] = PrivateAttr(default=None)

    @field_validator("points")
    @classmethod
    def check_strictly_increasing(
        cls, v: Tuple[TimeSeriesPoint, ...]
    ) -> Tuple[TimeSeriesPoint, ...]:
        """Reject out-of-order or duplicate timestamps."""
        for previous, current in zip(v, v[1:]):
            if current.timestamp <= previous.timestamp:
                raise ValueError(
                    f"timestamps must be strictly increasing: "
                    f"{current.timestamp.isoformat()} follows {previous.timestamp.isoformat()}"
                )
        return v

    @classmethod
    def from_values(
        cls,
        name: str,
        timestamps: Sequence[datetime],
        values: Sequence[float],
    ) -> "TimeSeries":
        """Build a series from parallel timestamp and value sequences."""
        if len(timestamps) != len(values):
            raise ValueError(
                f"timestamps ({len(timestamps)}) and values ({len(values)}) differ in length"
            )
        return cls(
            name=name,
            points=tuple(
                TimeSeriesPoint(timestamp=t, value=float(v))
                for t, v in zip(timestamps, values)
            ),
        )

    @property
    def values(self) -> List[float]:
        """Point values in order."""
        return [p.value for p in self.points]

    @property
    def timestamps(self) -> List[datetime]:
        """Point timestamps in order."""
        return [p.timestamp for p in self.points]

    @property
    def statistics(self) -> TimeSeriesStatistics:
        """Statistics of the current point sequence."""
        if self._statistics is None:
            self._statistics = TimeSeriesStatistics.from_values(self.values)
        return self._statistics

    def __len__(self) -> int:
        return len(self.points)

    def with_points(self, points: Sequence[TimeSeriesPoint]) -> "TimeSeries":
        """Return a new series over different points (statistics recomputed)."""
        return TimeSeries(name=self.name, points=tuple(points))

    def with_anomaly_flags(self, scores: Mapping[int, float]) -> "TimeSeries":
        """
        Return a copy with detector flags written onto points.

        Args:
            scores: Point index to highest normalized anomaly score.

        Returns:
            TimeSeries: New series; unflagged points are reset to defaults.
        """
        points = []
        for index, point in enumerate(self.points):
            score = scores.get(index)
            points.append(
                point.model_copy(
                    update={
                        "is_anomaly": score is not None,
                        "anomaly_score": score,
                    }
                )
            )
        return self.with_points(points)
