"""
Scoring, prioritization and run orchestration.

Components:
    scorer: AnomalyScorer merging candidates and assigning severity
    prioritizer: prioritize() ordering anomalies for presentation
    engine: AnomalyDetectionEngine running detectors over a dataset

Example:
    >>> from anomaly_engine.detection import AnomalyDetectionEngine
    >>>
    >>> engine = AnomalyDetectionEngine({"zScoreThreshold": 3.0})
    >>> report = engine.detect(time_series=[series], text_data=[text])
    >>> report.anomalies[0].severity
"""

from anomaly_engine.detection.scorer import (
    AnomalyScorer,
    create_scorer,
    severity_for_score,
    HIGH_SEVERITY_SCORE,
    MEDIUM_SEVERITY_SCORE,
)
from anomaly_engine.detection.prioritizer import prioritize
from anomaly_engine.detection.engine import (
    AnomalyDetectionEngine,
    ColumnOutcome,
    create_engine,
)

__all__ = [
    # Scorer
    "AnomalyScorer",
    "create_scorer",
    "severity_for_score",
    "MEDIUM_SEVERITY_SCORE",
    "HIGH_SEVERITY_SCORE",
    # Prioritizer
    "prioritize",
    # Engine
    "AnomalyDetectionEngine",
    "ColumnOutcome",
    "create_engine",
]
