import pytest

from anomaly_engine.cancellation import CancellationToken
from anomaly_engine.config import BaselineStrategy, TextDriftSettings
from anomaly_engine.errors import DetectionTimeoutError
from anomaly_engine.models import AnomalyType, DetectionMethod
from anomaly_engine.text import (
    Baseline,
    TextDriftDetector,
    TextFeatureExtractor,
    proportion_changes,
)


def extract(text):
    return TextFeatureExtractor(text.documents).extract_all(text)


def by_method(candidates, method):
    return [c for c in candidates if c.method == method]


def test_doubled_keyword_is_reported(keyword_drift_text, params):
    features = extract(keyword_drift_text)

    result = TextDriftDetector(params).detect("complaints", features)

    keyword = by_method(result.candidates, DetectionMethod.KEYWORD_FREQUENCY)
    assert len(keyword) == 1
    candidate = keyword[0]
    assert candidate.anomaly_type == AnomalyType.KEYWORD_DRIFT
    assert candidate.keywords == ("fraud",)
    assert candidate.start_position == 1
    assert candidate.magnitude == pytest.approx(50.0)
    assert candidate.details["terms"]["fraud"]["relative_change"] == pytest.approx(0.5)
    assert 0.0 < candidate.score < 1.0


def test_halved_keyword_is_reported(make_text_data, params):
    common = [
        ("budget review meeting", None),
        ("budget review meeting", None),
        ("fraud report filed", None),
        ("fraud report filed", None),
    ]
    text = make_text_data([common + [("fraud", None), ("fraud", None)], common])

    result = TextDriftDetector(params).detect("complaints", extract(text))

    keyword = by_method(result.candidates, DetectionMethod.KEYWORD_FREQUENCY)
    assert [c.keywords for c in keyword] == [("fraud",)]
    assert keyword[0].magnitude < 0


def test_rare_terms_are_not_eligible(make_text_data, params):
    common = [("budget review meeting", None), ("budget review meeting", None)]
    text = make_text_data([common, common + [("audit", None)]])

    result = TextDriftDetector(params).detect("minutes", extract(text))

    assert by_method(result.candidates, DetectionMethod.KEYWORD_FREQUENCY) == []


def test_disjoint_topics_trigger_topic_drift(make_text_data, params):
    text = make_text_data(
        [
            [("budget review meeting", None)] * 3,
            [("fraud report filed", None)] * 3,
        ]
    )

    result = TextDriftDetector(params).detect("minutes", extract(text))

    topic = by_method(result.candidates, DetectionMethod.TOPIC)
    assert len(topic) == 1
    assert topic[0].anomaly_type == AnomalyType.KEYWORD_DRIFT
    assert topic[0].details["similarity"] == pytest.approx(0.0)
    assert topic[0].score == pytest.approx(1.0)
    assert topic[0].keywords == ("filed", "fraud", "report")


def test_category_shift(make_text_data, params):
    text = make_text_data(
        [
            [("late refund", "billing")] * 3 + [("parcel lost", "shipping")],
            [("late refund", "billing")] + [("parcel lost", "shipping")] * 3,
        ]
    )

    result = TextDriftDetector(params).detect("tickets", extract(text))

    shift = by_method(result.candidates, DetectionMethod.CATEGORY_DISTRIBUTION)
    assert len(shift) == 1
    candidate = shift[0]
    assert candidate.anomaly_type == AnomalyType.CATEGORY_SHIFT
    assert candidate.categories == ("billing", "shipping")
    assert candidate.magnitude == pytest.approx(-50.0)
    assert candidate.score == pytest.approx(1.0)
    assert candidate.details["old_proportions"] == pytest.approx(
        {"billing": 0.75, "shipping": 0.25}
    )


def test_small_category_change_is_ignored(make_text_data, params):
    text = make_text_data(
        [
            [("late refund", "billing")] * 5 + [("parcel lost", "shipping")] * 5,
            [("late refund", "billing")] * 6 + [("parcel lost", "shipping")] * 4,
        ]
    )

    result = TextDriftDetector(params).detect("tickets", extract(text))

    assert by_method(result.candidates, DetectionMethod.CATEGORY_DISTRIBUTION) == []


def test_sentiment_shift(make_text_data, params):
    text = make_text_data(
        [
            [("great success", None)] * 3,
            [("payment delay problem", None)] * 3,
        ]
    )

    result = TextDriftDetector(params).detect("feedback", extract(text))

    sentiment = by_method(result.candidates, DetectionMethod.SENTIMENT)
    assert len(sentiment) == 1
    assert sentiment[0].anomaly_type == AnomalyType.CATEGORY_SHIFT
    assert sentiment[0].categories == ("negative", "positive")
    assert sentiment[0].magnitude == pytest.approx(100.0)


def test_empty_bucket_is_skipped_without_anomalies(make_text_data, params):
    docs = [("fraud report filed", None), ("budget review meeting", None)]
    text = make_text_data([docs, [], docs])

    result = TextDriftDetector(params).detect("complaints", extract(text))

    assert result.candidates == []
    at_empty = [s for s in result.skipped if s.position == 1]
    assert {s.method for s in at_empty} == {
        DetectionMethod.KEYWORD_FREQUENCY,
        DetectionMethod.TOPIC,
        DetectionMethod.CATEGORY_DISTRIBUTION,
        DetectionMethod.SENTIMENT,
    }
    assert all(s.reason == "degenerate_input" for s in at_empty)


def test_all_empty_column(make_text_data, params):
    text = make_text_data([[], [], []])

    result = TextDriftDetector(params).detect("complaints", extract(text))

    assert result.candidates == []


def test_trailing_baseline_skips_empty_buckets(make_text_data, params):
    docs = [("fraud report", None)]
    features = extract(make_text_data([docs, [], docs, docs]))
    detector = TextDriftDetector(params, TextDriftSettings(baseline_buckets=3))

    assert detector.baseline_for(features, 0) is None
    assert detector.baseline_for(features, 3) == [features[0], features[2]]


def test_reference_baseline_uses_first_buckets(make_text_data, params):
    docs = [("fraud report", None)]
    features = extract(make_text_data([docs, docs, docs, docs]))
    settings = TextDriftSettings(
        baseline_strategy=BaselineStrategy.REFERENCE,
        baseline_buckets=2,
    )
    detector = TextDriftDetector(params, settings)

    assert detector.baseline_for(features, 1) is None
    assert detector.baseline_for(features, 3) == features[:2]


def test_baseline_aggregate_weights_by_documents(make_text_data):
    features = extract(
        make_text_data(
            [
                [("late refund", "billing")],
                [("parcel lost", "shipping")] * 3,
            ]
        )
    )

    baseline = Baseline.aggregate(features)

    assert baseline.document_count == 4
    assert baseline.category_proportions == pytest.approx(
        {"billing": 0.25, "shipping": 0.75}
    )


def test_proportion_changes_cover_both_sides():
    assert proportion_changes({"a": 0.5, "b": 0.5}, {"b": 0.25, "c": 0.75}) == pytest.approx(
        {"a": -0.5, "b": -0.25, "c": 0.75}
    )


def test_cancelled_token_interrupts_text_detection(keyword_drift_text, params):
    token = CancellationToken()
    token.cancel()

    with pytest.raises(DetectionTimeoutError):
        TextDriftDetector(params).detect("complaints", extract(keyword_drift_text), token)
