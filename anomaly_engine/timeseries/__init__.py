"""
Time-series detection.

Components:
    decomposer: SeasonalDecomposer splitting trend, seasonal and residual
    detector: TimeSeriesDetector running z-score, moving-average,
        percentile and seasonal-residual checks

Example:
    >>> from anomaly_engine.timeseries import TimeSeriesDetector
    >>> result = TimeSeriesDetector(parameters).detect(series)
"""

from anomaly_engine.timeseries.decomposer import (
    Decomposition,
    SeasonalDecomposer,
)
from anomaly_engine.timeseries.detector import (
    FlaggedPoint,
    SeriesDetection,
    TimeSeriesDetector,
    contiguous_runs,
    moving_average_flags,
    percentile_flags,
    zscore_flags,
)

__all__ = [
    # Decomposer
    "Decomposition",
    "SeasonalDecomposer",
    # Detector
    "FlaggedPoint",
    "SeriesDetection",
    "TimeSeriesDetector",
    "contiguous_runs",
    "zscore_flags",
    "moving_average_flags",
    "percentile_flags",
]
