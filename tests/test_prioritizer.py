from datetime import datetime, timedelta

from anomaly_engine.detection import prioritize
from anomaly_engine.models import (
    AffectedRegion,
    Anomaly,
    AnomalyType,
    DetectionMethod,
    Severity,
    SourceKind,
    TimeWindow,
)

T0 = datetime(2024, 6, 1)


def anomaly(name, severity, score, day):
    ts = T0 + timedelta(days=day)
    return Anomaly(
        id=name,
        type=AnomalyType.SPIKE,
        severity=severity,
        data_source="revenue",
        time_window=TimeWindow(start=ts, end=ts),
        affected_region=AffectedRegion(
            source="revenue", source_kind=SourceKind.TIME_SERIES
        ),
        score=score,
        method=DetectionMethod.ZSCORE,
    )


def ids(anomalies):
    return [a.id for a in anomalies]


def test_severity_then_score():
    t1 = anomaly("t1", Severity.HIGH, 0.9, 1)
    t2 = anomaly("t2", Severity.MEDIUM, 0.9, 2)
    t3 = anomaly("t3", Severity.HIGH, 0.5, 3)

    assert ids(prioritize([t1, t2, t3])) == ["t1", "t3", "t2"]
    assert ids(prioritize([t2, t3, t1])) == ["t1", "t3", "t2"]


def test_most_recent_first_on_equal_score():
    older = anomaly("older", Severity.LOW, 0.2, 1)
    newer = anomaly("newer", Severity.LOW, 0.2, 5)

    assert ids(prioritize([older, newer])) == ["newer", "older"]


def test_exact_ties_keep_input_order():
    a = anomaly("a", Severity.MEDIUM, 0.5, 3)
    b = anomaly("b", Severity.MEDIUM, 0.5, 3)
    c = anomaly("c", Severity.MEDIUM, 0.5, 3)

    assert ids(prioritize([b, c, a])) == ["b", "c", "a"]


def test_input_not_mutated():
    items = [anomaly("low", Severity.LOW, 0.1, 1), anomaly("high", Severity.HIGH, 0.9, 1)]

    prioritize(items)

    assert ids(items) == ["low", "high"]
