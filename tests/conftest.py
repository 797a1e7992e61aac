"""
Shared fixtures for the anomaly engine tests.
"""
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

import pytest

from anomaly_engine.models import (
    AnomalyDetectionParameters,
    TextBucket,
    TextData,
    TextDocument,
    TimeSeries,
)

START = datetime(2024, 1, 1)


def day(offset: int) -> datetime:
    return START + timedelta(days=offset)


@pytest.fixture
def params():
    return AnomalyDetectionParameters()


@pytest.fixture
def make_series():
    """Build a daily series from a list of values."""

    def _make(values: Sequence[float], name: str = "headcount") -> TimeSeries:
        return TimeSeries.from_values(
            name,
            timestamps=[day(i) for i in range(len(values))],
            values=list(values),
        )

    return _make


@pytest.fixture
def spike_series(make_series):
    """20 points at 100 with a single 1000 at index 10."""
    values = [100.0] * 20
    values[10] = 1000.0
    return make_series(values)


@pytest.fixture
def make_bucket():
    """
    Build a weekly text bucket.

    Documents are (content, category) pairs; ids are unique per bucket.
    """

    def _make(
        index: int,
        documents: Sequence[Tuple[str, Optional[str]]] = (),
    ) -> TextBucket:
        start = day(index * 7)
        end = day(index * 7 + 6)
        return TextBucket(
            start=start,
            end=end,
            documents=tuple(
                TextDocument(
                    id=f"doc-{index}-{n}",
                    content=content,
                    timestamp=start,
                    category=category,
                )
                for n, (content, category) in enumerate(documents)
            ),
        )

    return _make


@pytest.fixture
def make_text_data(make_bucket):
    """Build a text column from per-bucket document lists."""

    def _make(
        buckets: List[Sequence[Tuple[str, Optional[str]]]],
        name: str = "complaints",
    ) -> TextData:
        return TextData(
            name=name,
            buckets=tuple(make_bucket(i, docs) for i, docs in enumerate(buckets)),
        )

    return _make


@pytest.fixture
def keyword_drift_text(make_text_data):
    """Second bucket doubles the frequency of "fraud"; everything else unchanged."""
    baseline = [
        ("budget review meeting", None),
        ("budget review meeting", None),
        ("fraud report filed", None),
        ("fraud report filed", None),
    ]
    drifted = baseline + [("fraud", None), ("fraud", None)]
    return make_text_data([baseline, drifted])
