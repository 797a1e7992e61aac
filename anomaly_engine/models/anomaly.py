"""
Anomaly data models for the detection engine.

This module defines the closed set of anomaly types, the severity scale,
the uniform candidate shape every detector emits, and the resolved
anomaly record handed to downstream collaborators.

Models:
    AnomalyType: Closed set of anomaly kinds (SPIKE, DROP, ...)
    Severity: Ordered severity levels (LOW < MEDIUM < HIGH)
    DetectionMethod: Detector sub-method that produced a candidate
    SourceKind: Whether a data source is numeric or text
    TimeWindow: Timestamp span of an anomaly
    AffectedRegion: Column/source plus driving keywords or categories
    AnomalyCandidate: Raw detector output, before severity assignment
    Anomaly: Resolved, immutable anomaly record
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field, model_validator


class AnomalyType(str, Enum):
    """
    Anomaly kinds.

    Attributes:
        SPIKE: Numeric value above the expected range.
        DROP: Numeric value below the expected range.
        KEYWORD_DRIFT: Keyword frequency or topic drift in text.
        CATEGORY_SHIFT: Category or sentiment distribution shift in text.
    """

    SPIKE = "SPIKE"
    DROP = "DROP"
    KEYWORD_DRIFT = "KEYWORD_DRIFT"
    CATEGORY_SHIFT = "CATEGORY_SHIFT"


class Severity(str, Enum):
    """
    Severity levels, ordered LOW < MEDIUM < HIGH.

    Use rank for comparisons; the string values do not sort by severity.
    """

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        """Numeric rank (LOW=0, MEDIUM=1, HIGH=2)."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


class DetectionMethod(str, Enum):
    """Detector sub-method that produced a candidate."""

    ZSCORE = "zscore"
    MOVING_AVERAGE = "moving_average"
    PERCENTILE = "percentile"
    SEASONAL_RESIDUAL = "seasonal_residual"
    KEYWORD_FREQUENCY = "keyword_frequency"
    TOPIC = "topic"
    CATEGORY_DISTRIBUTION = "category_distribution"
    SENTIMENT = "sentiment"


class SourceKind(str, Enum):
    """Kind of data source."""

    TIME_SERIES = "time_series"
    TEXT = "text"


class TimeWindow(BaseModel):
    """
    Timestamp span over which an anomaly holds.

    A single-point anomaly has start == end.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def check_order(self) -> "TimeWindow":
        """Ensure start <= end."""
        if self.start > self.end:
            raise ValueError(
                f"window start {self.start.isoformat()} is after end {self.end.isoformat()}"
            )
        return self

    @property
    def is_single_point(self) -> bool:
        """Check if the window covers a single timestamp."""
        return self.start == self.end

    def overlaps(self, other: "TimeWindow") -> bool:
        """Check if two windows share at least one instant."""
        return self.start <= other.end and other.start <= self.end

    def span(self, other: "TimeWindow") -> "TimeWindow":
        """Smallest window covering both windows."""
        return TimeWindow(
            start=min(self.start, other.start),
            end=max(self.end, other.end),
        )


class AffectedRegion(BaseModel):
    """
    What an anomaly pertains to.

    Attributes:
        source: Column or text source name.
        source_kind: Numeric or text source.
        keywords: Driving keywords (text only).
        categories: Driving categories or sentiment labels (text only).
    """

    model_config = {"frozen": True, "extra": "forbid"}

    source: str
    source_kind: SourceKind
    keywords: Tuple[str, ...] = ()
    categories: Tuple[str, ...] = ()


class AnomalyCandidate(BaseModel):
    """
    Raw output of a detector sub-method.

    Every detector emits this same shape; severity is assigned only when the
    scorer resolves candidates into anomalies.

    Attributes:
        source: Column or text source name.
        source_kind: Numeric or text source.
        method: Sub-method that flagged the candidate.
        anomaly_type: Candidate classification.
        window: Flagged timestamp span.
        start_position: Index of the first flagged point or bucket.
        end_position: Index of the last flagged point or bucket.
        score: Normalized raw score in [0, 1].
        value: Observed value (time series only).
        baseline: Pre-anomaly baseline mean (time series only).
        magnitude: Percentage(-point) change supplied by text detectors.
        keywords: Driving keywords.
        categories: Driving categories.
        details: Method-specific context (z-score, proportions, ...).
    """

    model_config = {"frozen": True, "extra": "forbid"}

    source: str
    source_kind: SourceKind
    method: DetectionMethod
    anomaly_type: AnomalyType
    window: TimeWindow
    start_position: int = Field(..., ge=0)
    end_position: int = Field(..., ge=0)
    score: float = Field(..., ge=0.0, le=1.0)
    value: Optional[float] = None
    baseline: Optional[float] = None
    magnitude: Optional[float] = None
    keywords: Tuple[str, ...] = ()
    categories: Tuple[str, ...] = ()
    details: Dict[str, Any] = Field(default_factory=dict)

    @property
    def merge_key(self) -> Tuple[str, DetectionMethod, AnomalyType]:
        """Candidates sharing this key may be merged into one anomaly."""
        return (self.source, self.method, self.anomaly_type)


class Anomaly(BaseModel):
    """
    Resolved anomaly record.

    Created only by the scorer. Immutable; the explanation generator may
    attach text through with_explanation(), which returns a copy.

    Attributes:
        id: Deterministic identifier derived from source, method, type and window.
        type: Anomaly kind.
        severity: Severity bucket of the score.
        data_source: Column or text source name.
        time_window: Span of the anomaly.
        affected_region: Source plus driving keywords/categories.
        score: Maximum normalized score of merged candidates.
        magnitude: Percent change vs. baseline (numeric) or percentage-point
            change (text proportions); None when undefined.
        method: Detector sub-method.
        metadata: Context for explanation (candidate count, peak, proportions).
        explanation: Human-readable text attached downstream.

    Example:
        >>> anomaly = Anomaly(
        ...     id="a1",
        ...     type=AnomalyType.SPIKE,
        ...     severity=Severity.HIGH,
        ...     data_source="headcount",
        ...     time_window=TimeWindow(start=t, end=t),
        ...     affected_region=AffectedRegion(
        ...         source="headcount", source_kind=SourceKind.TIME_SERIES
        ...     ),
        ...     score=0.92,
        ...     method=DetectionMethod.ZSCORE,
        ... )
    """

    model_config = {"frozen": True, "extra": "forbid"}

    id: str = Field(..., min_length=1)
    type: AnomalyType
    severity: Severity
    data_source: str
    time_window: TimeWindow
    affected_region: AffectedRegion
    score: float = Field(..., ge=0.0, le=1.0)
    magnitude: Optional[float] = None
    method: DetectionMethod
    metadata: Dict[str, Any] = Field(default_factory=dict)
    explanation: Optional[str] = None

    @property
    def keywords(self) -> Tuple[str, ...]:
        """Driving keywords (text anomalies)."""
        return self.affected_region.keywords

    @property
    def categories(self) -> Tuple[str, ...]:
        """Driving categories (text anomalies)."""
        return self.affected_region.categories

    def with_explanation(self, explanation: str) -> "Anomaly":
        """
        Attach an explanation.

        Args:
            explanation: Human-readable text.

        Returns:
            Anomaly: Copy carrying the explanation.
        """
        return self.model_copy(update={"explanation": explanation})
