from datetime import datetime, timedelta

import pytest

from anomaly_engine.detection import (
    HIGH_SEVERITY_SCORE,
    MEDIUM_SEVERITY_SCORE,
    AnomalyScorer,
    severity_for_score,
)
from anomaly_engine.models import (
    AnomalyCandidate,
    AnomalyType,
    DetectionMethod,
    Severity,
    SourceKind,
    TimeWindow,
)

T0 = datetime(2024, 3, 1)


def series_candidate(position, score=0.5, value=150.0, baseline=100.0,
                     method=DetectionMethod.ZSCORE, anomaly_type=AnomalyType.SPIKE,
                     source="revenue"):
    ts = T0 + timedelta(days=position)
    return AnomalyCandidate(
        source=source,
        source_kind=SourceKind.TIME_SERIES,
        method=method,
        anomaly_type=anomaly_type,
        window=TimeWindow(start=ts, end=ts),
        start_position=position,
        end_position=position,
        score=score,
        value=value,
        baseline=baseline,
        details={"statistic": 4.0},
    )


def text_candidate(position, magnitude, score=0.6, keywords=(), categories=()):
    start = T0 + timedelta(days=7 * position)
    return AnomalyCandidate(
        source="complaints",
        source_kind=SourceKind.TEXT,
        method=DetectionMethod.CATEGORY_DISTRIBUTION,
        anomaly_type=AnomalyType.CATEGORY_SHIFT,
        window=TimeWindow(start=start, end=start + timedelta(days=6)),
        start_position=position,
        end_position=position,
        score=score,
        magnitude=magnitude,
        keywords=tuple(keywords),
        categories=tuple(categories),
    )


@pytest.mark.parametrize(
    "score, expected",
    [
        (0.0, Severity.LOW),
        (0.39, Severity.LOW),
        (MEDIUM_SEVERITY_SCORE, Severity.MEDIUM),
        (0.69, Severity.MEDIUM),
        (HIGH_SEVERITY_SCORE, Severity.HIGH),
        (1.0, Severity.HIGH),
    ],
)
def test_severity_buckets(score, expected):
    assert severity_for_score(score) == expected


def test_severity_is_monotonic_in_score():
    scores = [i / 100 for i in range(101)]
    ranks = [severity_for_score(s).rank for s in scores]

    assert ranks == sorted(ranks)


def test_adjacent_candidates_merge():
    candidates = [
        series_candidate(4, score=0.8, value=300.0),
        series_candidate(3, score=0.5, value=150.0),
    ]

    anomalies = AnomalyScorer().resolve(candidates)

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.time_window.start == T0 + timedelta(days=3)
    assert anomaly.time_window.end == T0 + timedelta(days=4)
    assert anomaly.score == 0.8
    assert anomaly.severity == Severity.HIGH
    assert anomaly.magnitude == pytest.approx(200.0)
    assert anomaly.metadata["candidate_count"] == 2
    assert anomaly.metadata["peak_value"] == 300.0


def test_separated_candidates_stay_apart():
    anomalies = AnomalyScorer().resolve([series_candidate(3), series_candidate(6)])

    assert len(anomalies) == 2
    assert [a.metadata["start_position"] for a in anomalies] == [3, 6]


def test_different_methods_never_merge():
    candidates = [
        series_candidate(3, method=DetectionMethod.ZSCORE),
        series_candidate(3, method=DetectionMethod.PERCENTILE),
    ]

    anomalies = AnomalyScorer().resolve(candidates)

    assert {a.method for a in anomalies} == {
        DetectionMethod.ZSCORE,
        DetectionMethod.PERCENTILE,
    }


def test_different_types_never_merge():
    candidates = [
        series_candidate(3, anomaly_type=AnomalyType.SPIKE),
        series_candidate(4, value=50.0, anomaly_type=AnomalyType.DROP),
    ]

    assert len(AnomalyScorer().resolve(candidates)) == 2


def test_drop_magnitude_is_negative():
    (anomaly,) = AnomalyScorer().resolve(
        [series_candidate(2, value=25.0, anomaly_type=AnomalyType.DROP)]
    )

    assert anomaly.magnitude == pytest.approx(-75.0)


def test_zero_baseline_has_no_magnitude():
    (anomaly,) = AnomalyScorer().resolve([series_candidate(0, value=5.0, baseline=0.0)])

    assert anomaly.magnitude is None


def test_text_magnitude_and_region():
    candidates = [
        text_candidate(1, magnitude=30.0, categories=("billing",)),
        text_candidate(2, magnitude=-45.0, score=0.9, categories=("shipping", "billing")),
    ]

    (anomaly,) = AnomalyScorer().resolve(candidates)

    assert anomaly.magnitude == pytest.approx(-45.0)
    assert anomaly.categories == ("billing", "shipping")
    assert anomaly.affected_region.source == "complaints"
    assert anomaly.affected_region.source_kind == SourceKind.TEXT
    assert anomaly.metadata["buckets"] == 2
    assert anomaly.severity == Severity.HIGH


def test_resolving_twice_is_identical():
    candidates = [
        series_candidate(1, score=0.3),
        series_candidate(2, score=0.45),
        series_candidate(9, score=0.95, source="headcount"),
        text_candidate(0, magnitude=25.0, keywords=("fraud",)),
    ]
    scorer = AnomalyScorer()

    first = scorer.resolve(candidates)
    second = scorer.resolve(list(candidates))

    assert [a.id for a in first] == [a.id for a in second]
    assert first == second
    assert len({a.id for a in first}) == len(first)


def test_empty_input():
    assert AnomalyScorer().resolve([]) == []
