"""
Shared Pydantic data models for the detection engine.

Modules:
    timeseries: Time series points, statistics and series
    text: Text documents, buckets and per-bucket features
    anomaly: Anomaly types, severity, candidates and resolved anomalies
    parameters: Per-run detection parameters
    results: Column reports and the run report

Example:
    >>> from anomaly_engine.models import TimeSeries, Anomaly, Severity
"""

# Time series models
from anomaly_engine.models.timeseries import (
    SeasonalityDescriptor,
    TimeSeries,
    TimeSeriesPoint,
    TimeSeriesStatistics,
    TrendDirection,
)

# Text models
from anomaly_engine.models.text import (
    SentimentDistribution,
    TextBucket,
    TextData,
    TextDocument,
    TextFeatures,
)

# Anomaly models
from anomaly_engine.models.anomaly import (
    AffectedRegion,
    Anomaly,
    AnomalyCandidate,
    AnomalyType,
    DetectionMethod,
    Severity,
    SourceKind,
    TimeWindow,
)

# Parameters
from anomaly_engine.models.parameters import (
    AnomalyDetectionParameters,
    validate_parameters,
)

# Results
from anomaly_engine.models.results import (
    ColumnReport,
    ColumnStatus,
    DetectionReport,
    SkippedMethod,
)

__all__ = [
    # Time series
    "TrendDirection",
    "SeasonalityDescriptor",
    "TimeSeriesPoint",
    "TimeSeriesStatistics",
    "TimeSeries",
    # Text
    "TextDocument",
    "TextBucket",
    "TextData",
    "SentimentDistribution",
    "TextFeatures",
    # Anomalies
    "AnomalyType",
    "Severity",
    "DetectionMethod",
    "SourceKind",
    "TimeWindow",
    "AffectedRegion",
    "AnomalyCandidate",
    "Anomaly",
    # Parameters
    "AnomalyDetectionParameters",
    "validate_parameters",
    # Results
    "SkippedMethod",
    "ColumnStatus",
    "ColumnReport",
    "DetectionReport",
]
