from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from anomaly_engine.errors import InvalidParameterError
from anomaly_engine.models import (
    AffectedRegion,
    Anomaly,
    AnomalyDetectionParameters,
    AnomalyType,
    DetectionMethod,
    SentimentDistribution,
    Severity,
    SourceKind,
    TextBucket,
    TextDocument,
    TextFeatures,
    TimeSeries,
    TimeSeriesPoint,
    TimeWindow,
    TrendDirection,
    validate_parameters,
)

T0 = datetime(2024, 1, 1)


def test_series_rejects_unordered_timestamps():
    with pytest.raises(ValidationError):
        TimeSeries(
            name="x",
            points=(
                TimeSeriesPoint(timestamp=T0 + timedelta(days=1), value=1.0),
                TimeSeriesPoint(timestamp=T0, value=2.0),
            ),
        )


def test_series_rejects_duplicate_timestamps():
    with pytest.raises(ValidationError):
        TimeSeries(
            name="x",
            points=(
                TimeSeriesPoint(timestamp=T0, value=1.0),
                TimeSeriesPoint(timestamp=T0, value=2.0),
            ),
        )


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_point_rejects_non_finite_value(value):
    with pytest.raises(ValidationError):
        TimeSeriesPoint(timestamp=T0, value=value)


def test_from_values_rejects_missing_value():
    with pytest.raises(ValidationError):
        TimeSeries.from_values("headcount", [T0, T0 + timedelta(days=1)], [1.0, float("nan")])


def test_from_values_length_mismatch():
    with pytest.raises(ValueError):
        TimeSeries.from_values("x", [T0], [1.0, 2.0])


def test_statistics_of_increasing_series(make_series):
    stats = make_series([1.0, 2.0, 3.0, 4.0, 5.0]).statistics

    assert stats.mean == pytest.approx(3.0)
    assert stats.standard_deviation == pytest.approx(2.5 ** 0.5)
    assert stats.median == pytest.approx(3.0)
    assert set(stats.percentiles) == {5, 25, 75, 95}
    assert stats.trend_direction == TrendDirection.INCREASING


def test_statistics_detects_seasonal_period(make_series):
    stats = make_series([0.0, 10.0, 20.0, 10.0] * 6).statistics

    assert stats.seasonality.is_seasonal
    assert stats.seasonality.period == 4
    assert stats.trend_direction == TrendDirection.STABLE


def test_statistics_of_constant_series(make_series):
    stats = make_series([7.0] * 12).statistics

    assert stats.is_constant
    assert stats.trend_direction == TrendDirection.STABLE
    assert not stats.seasonality.is_seasonal


def test_statistics_of_empty_series():
    stats = TimeSeries(name="empty").statistics

    assert stats.mean == 0.0
    assert stats.standard_deviation == 0.0
    assert stats.percentiles == {5: 0.0, 25: 0.0, 75: 0.0, 95: 0.0}


def test_with_anomaly_flags_returns_new_series(make_series):
    series = make_series([1.0, 2.0, 3.0])
    flagged = series.with_anomaly_flags({1: 0.8})

    assert [p.is_anomaly for p in flagged.points] == [False, True, False]
    assert flagged.points[1].anomaly_score == 0.8
    assert not any(p.is_anomaly for p in series.points)


def test_sentiment_distribution_must_sum_to_one():
    with pytest.raises(ValidationError):
        SentimentDistribution(positive=0.5, neutral=0.2, negative=0.2)

    assert SentimentDistribution().as_dict() == {
        "positive": 0.0,
        "neutral": 0.0,
        "negative": 0.0,
    }


def test_text_features_category_proportions_must_sum_to_one():
    with pytest.raises(ValidationError):
        TextFeatures(
            bucket_start=T0,
            bucket_end=T0,
            document_count=2,
            categorized_count=2,
            category_proportions={"a": 0.5, "b": 0.4},
        )


def test_bucket_bounds_checked():
    with pytest.raises(ValidationError):
        TextBucket(start=T0 + timedelta(days=1), end=T0)


def test_bucket_rejects_duplicate_document_ids():
    docs = [
        TextDocument(id="ticket-1", content="refund delayed", timestamp=T0),
        TextDocument(id="ticket-1", content="login failure", timestamp=T0),
    ]

    with pytest.raises(ValidationError, match="duplicate document id"):
        TextBucket(start=T0, end=T0 + timedelta(days=6), documents=docs)


def test_time_window_span_and_overlap():
    a = TimeWindow(start=T0, end=T0 + timedelta(days=2))
    b = TimeWindow(start=T0 + timedelta(days=2), end=T0 + timedelta(days=5))
    c = TimeWindow(start=T0 + timedelta(days=6), end=T0 + timedelta(days=6))

    assert a.overlaps(b)
    assert not a.overlaps(c)
    assert c.is_single_point
    assert a.span(c) == TimeWindow(start=T0, end=T0 + timedelta(days=6))

    with pytest.raises(ValidationError):
        TimeWindow(start=T0 + timedelta(days=1), end=T0)


def test_severity_rank_order():
    assert Severity.LOW.rank < Severity.MEDIUM.rank < Severity.HIGH.rank


def test_anomaly_is_immutable():
    anomaly = Anomaly(
        id="a1",
        type=AnomalyType.SPIKE,
        severity=Severity.HIGH,
        data_source="headcount",
        time_window=TimeWindow(start=T0, end=T0),
        affected_region=AffectedRegion(
            source="headcount", source_kind=SourceKind.TIME_SERIES
        ),
        score=0.9,
        method=DetectionMethod.ZSCORE,
    )

    with pytest.raises(ValidationError):
        anomaly.score = 0.1

    explained = anomaly.with_explanation("Headcount jumped ninefold.")
    assert explained.explanation == "Headcount jumped ninefold."
    assert anomaly.explanation is None
    assert explained.id == anomaly.id


def test_parameters_accept_camel_case():
    params = validate_parameters(
        {
            "zScoreThreshold": 2.5,
            "movingAverageWindow": 5,
            "percentileThresholds": [1, 99],
            "textSimilarityThreshold": 0.7,
            "minimumAnomalyDuration": 2,
        }
    )

    assert params.z_score_threshold == 2.5
    assert params.moving_average_window == 5
    assert params.lower_percentile == 1.0
    assert params.upper_percentile == 99.0
    assert params.text_similarity_threshold == 0.7
    assert params.minimum_anomaly_duration == 2


def test_parameters_defaults():
    params = validate_parameters()

    assert params == AnomalyDetectionParameters()
    assert params.z_score_threshold == 3.0
    assert params.moving_average_window == 10
    assert params.percentile_thresholds == (5.0, 95.0)
    assert params.text_similarity_threshold == 0.8
    assert params.minimum_anomaly_duration == 1


@pytest.mark.parametrize(
    "raw",
    [
        {"zScoreThreshold": 0},
        {"zScoreThreshold": -1.0},
        {"movingAverageWindow": 0},
        {"movingAverageWindow": 2.5},
        {"percentileThresholds": [95, 5]},
        {"percentileThresholds": [0, 95]},
        {"percentileThresholds": [5, 101]},
        {"textSimilarityThreshold": 0},
        {"textSimilarityThreshold": 1.5},
        {"minimumAnomalyDuration": 0},
        {"unknownParameter": 1},
    ],
)
def test_invalid_parameters_rejected(raw):
    with pytest.raises(InvalidParameterError):
        validate_parameters(raw)


def test_invalid_parameter_error_is_value_error():
    with pytest.raises(ValueError):
        validate_parameters({"zScoreThreshold": -3})
