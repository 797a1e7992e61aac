"""
Run result models.

Models:
    SkippedMethod: A sub-method that could not run for a column, and why
    ColumnStatus: Whether a column was analyzed, skipped on timeout or failed
    ColumnReport: Per-column outcome of a run
    DetectionReport: Prioritized anomalies plus per-column outcomes
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from anomaly_engine.models.anomaly import Anomaly, DetectionMethod, SourceKind
from anomaly_engine.models.timeseries import TimeSeries


class SkippedMethod(BaseModel):
    """
    A sub-method skipped for one column.

    Attributes:
        method: The skipped sub-method.
        reason: Short machine-readable reason (e.g. "insufficient_data").
        message: Details for humans.
        position: Bucket index for per-bucket text skips.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    method: DetectionMethod
    reason: str
    message: str = ""
    position: Optional[int] = None


class ColumnStatus(str, Enum):
    """
    Outcome of one column.

    Attributes:
        ANALYZED: All sub-methods ran (or were skipped for data reasons).
        SKIPPED_TIMEOUT: Run was cancelled before the column finished.
        FAILED: The column task raised an unexpected error.
    """

    ANALYZED = "analyzed"
    SKIPPED_TIMEOUT = "skipped: timeout"
    FAILED = "failed"


class ColumnReport(BaseModel):
    """
    Per-column outcome.

    Attributes:
        source: Column or text source name.
        kind: Numeric or text source.
        status: Analyzed, skipped on timeout, or failed.
        skipped_methods: Sub-methods skipped for data reasons.
        candidate_count: Raw candidates emitted by the detectors.
        anomaly_count: Anomalies resolved for this column.
        error: Error message of a failed column.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    source: str
    kind: SourceKind
    status: ColumnStatus
    skipped_methods: List[SkippedMethod] = Field(default_factory=list)
    candidate_count: int = Field(default=0, ge=0)
    anomaly_count: int = Field(default=0, ge=0)
    error: Optional[str] = None

    @property
    def is_analyzed(self) -> bool:
        """Check if the column was fully analyzed."""
        return self.status == ColumnStatus.ANALYZED


class DetectionReport(BaseModel):
    """
    Result of one detection run.

    Attributes:
        anomalies: Resolved anomalies in priority order.
        columns: Every submitted column keyed by source name.
        annotated_series: Analyzed numeric columns with point flags written.
        timed_out: Whether any column was skipped because the run hit its
            time budget or was cancelled.
        elapsed_seconds: Wall-clock duration of the run.
    """

    model_config = {"extra": "forbid"}

    anomalies: List[Anomaly] = Field(default_factory=list)
    columns: Dict[str, ColumnReport] = Field(default_factory=dict)
    annotated_series: Dict[str, TimeSeries] = Field(default_factory=dict)
    timed_out: bool = False
    elapsed_seconds: float = Field(default=0.0, ge=0.0)

    def anomalies_for(self, source: str) -> List[Anomaly]:
        """Anomalies of one column, in priority order."""
        return [a for a in self.anomalies if a.data_source == source]
