"""
Text drift detection.

Compares each bucket's TextFeatures against a baseline and emits one
candidate per firing check. The four checks are independent and may fire
for the same bucket:

    keyword_frequency  smoothed relative term frequency ratio outside
                       [s, 1/s], s = textSimilarityThreshold  -> KEYWORD_DRIFT
    topic              cosine similarity of TF-IDF centroids < s -> KEYWORD_DRIFT
    category           any category proportion change > proportion_delta
                                                              -> CATEGORY_SHIFT
    sentiment          any sentiment proportion change > proportion_delta
                                                              -> CATEGORY_SHIFT

The baseline is configurable (TextDriftSettings.baseline_strategy):
    trailing   aggregate of the preceding N non-empty buckets
    reference  aggregate of the first N buckets; evaluation starts at bucket N

Classes:
    Baseline: Aggregated features of the baseline buckets
    TextDetection: Detector output for one text column
    TextDriftDetector: Runs the four checks over a bucket sequence
"""

import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog
from sklearn.metrics.pairwise import cosine_similarity

from anomaly_engine.cancellation import CancellationToken
from anomaly_engine.config.models import BaselineStrategy, TextDriftSettings
from anomaly_engine.errors import DegenerateInputError
from anomaly_engine.models.anomaly import (
    AnomalyCandidate,
    AnomalyType,
    DetectionMethod,
    SourceKind,
    TimeWindow,
)
from anomaly_engine.models.parameters import AnomalyDetectionParameters
from anomaly_engine.models.results import SkippedMethod
from anomaly_engine.models.text import TextFeatures
from anomaly_engine.text.features import weighted_centroid

logger = structlog.get_logger(__name__)


@dataclass
class Baseline:
    """
    Aggregate of one or more baseline buckets.

    Attributes:
        document_count: Total documents.
        categorized_count: Total documents with a category.
        term_frequencies: Summed term counts.
        centroid: Document-weighted TF-IDF centroid (None if unavailable).
        category_proportions: Categorized-document-weighted proportions.
        sentiment: Document-weighted sentiment proportions.
    """

    document_count: int = 0
    categorized_count: int = 0
    term_frequencies: Counter = field(default_factory=Counter)
    centroid: Optional[np.ndarray] = None
    category_proportions: Dict[str, float] = field(default_factory=dict)
    sentiment: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def aggregate(cls, features: Sequence[TextFeatures]) -> "Baseline":
        """Combine bucket features, weighting by document counts."""
        baseline = cls()
        category_totals: Counter = Counter()
        sentiment_totals: Counter = Counter()

        for f in features:
            baseline.document_count += f.document_count
            baseline.categorized_count += f.categorized_count
            baseline.term_frequencies.update(f.term_frequencies)
            for name, share in f.category_proportions.items():
                category_totals[name] += share * f.categorized_count
            for label, share in f.sentiment.as_dict().items():
                sentiment_totals[label] += share * f.document_count

        if baseline.categorized_count:
            baseline.category_proportions = {
                name: total / baseline.categorized_count
                for name, total in category_totals.items()
            }
        if baseline.document_count:
            baseline.sentiment = {
                label: total / baseline.document_count
                for label, total in sentiment_totals.items()
            }
        baseline.centroid = weighted_centroid(features)
        return baseline


@dataclass
class TextDetection:
    """
    Detector output for one text column.

    Attributes:
        source: Text column name.
        candidates: Candidates from all checks and buckets.
        skipped: Checks that could not run, with bucket positions.
    """

    source: str
    candidates: List[AnomalyCandidate] = field(default_factory=list)
    skipped: List[SkippedMethod] = field(default_factory=list)


def proportion_changes(
    old: Dict[str, float], new: Dict[str, float]
) -> Dict[str, float]:
    """Signed change per label over the union of both distributions."""
    return {
        label: new.get(label, 0.0) - old.get(label, 0.0)
        for label in sorted(set(old) | set(new))
    }


class TextDriftDetector:
    """
    Flags keyword, topic, category and sentiment drift between buckets.

    Example:
        >>> detector = TextDriftDetector(AnomalyDetectionParameters())
        >>> result = detector.detect("complaints", features)
        >>> [c.keywords for c in result.candidates]
    """

    def __init__(
        self,
        parameters: AnomalyDetectionParameters,
        settings: Optional[TextDriftSettings] = None,
    ) -> None:
        """
        Initialize the detector.

        Args:
            parameters: Validated detection parameters.
            settings: Baseline and delta settings (defaults if omitted).
        """
        self.parameters = parameters
        self.settings = settings or TextDriftSettings()

    @property
    def similarity_threshold(self) -> float:
        return self.parameters.text_similarity_threshold

    def baseline_for(
        self, features: Sequence[TextFeatures], position: int
    ) -> Optional[List[TextFeatures]]:
        """
        Baseline buckets for the bucket at `position`.

        Returns:
            Optional[List[TextFeatures]]: Baseline buckets (possibly empty
                when none is usable), or None when the position is itself
                part of the reference window and is not evaluated.
        """
        size = self.settings.baseline_buckets
        if self.settings.baseline_strategy == BaselineStrategy.REFERENCE:
            if position < size:
                return None
            return [f for f in features[:size] if f.document_count]

        if position == 0:
            return None
        preceding = [f for f in features[:position] if f.document_count]
        return preceding[-size:]

    def detect(
        self,
        source: str,
        features: Sequence[TextFeatures],
        cancel_token: Optional[CancellationToken] = None,
    ) -> TextDetection:
        """
        Run all checks over a bucket sequence.

        Args:
            source: Text column name.
            features: Per-bucket features in chronological order.
            cancel_token: Checked before each bucket.

        Returns:
            TextDetection: Candidates and skipped checks.

        Raises:
            DetectionTimeoutError: If the token is cancelled mid-column.
        """
        result = TextDetection(source=source)
        checks = [
            (DetectionMethod.KEYWORD_FREQUENCY, self.keyword_drift),
            (DetectionMethod.TOPIC, self.topic_drift),
            (DetectionMethod.CATEGORY_DISTRIBUTION, self.category_shift),
            (DetectionMethod.SENTIMENT, self.sentiment_shift),
        ]

        for position, current in enumerate(features):
            baseline_features = self.baseline_for(features, position)
            if baseline_features is None:
                continue

            if cancel_token is not None:
                cancel_token.raise_if_cancelled(source)

            baseline = Baseline.aggregate(baseline_features)
            for method, check in checks:
                try:
                    candidate = check(source, position, current, baseline)
                except DegenerateInputError as e:
                    logger.debug(
                        "text_check_skipped",
                        source=source,
                        method=method.value,
                        position=position,
                        error=e.message,
                    )
                    result.skipped.append(
                        SkippedMethod(
                            method=method,
                            reason="degenerate_input",
                            message=e.message,
                            position=position,
                        )
                    )
                    continue
                if candidate is not None:
                    result.candidates.append(candidate)

        logger.info(
            "text_detection_complete",
            source=source,
            buckets=len(features),
            candidates=len(result.candidates),
            skipped=len(result.skipped),
        )
        return result

    def keyword_drift(
        self,
        source: str,
        position: int,
        current: TextFeatures,
        baseline: Baseline,
    ) -> Optional[AnomalyCandidate]:
        """
        Flag terms whose relative frequency ratio leaves [s, 1/s].

        Relative frequencies are Laplace-smoothed over the union vocabulary
        so terms absent on one side still have a finite ratio. Only terms
        seen at least min_term_count times on either side are eligible.

        Raises:
            DegenerateInputError: If either side has no terms.
        """
        current_total = current.total_terms
        baseline_total = sum(baseline.term_frequencies.values())
        if current_total == 0 or baseline_total == 0:
            raise DegenerateInputError("Empty vocabulary, no keyword comparison possible")

        s = self.similarity_threshold
        vocabulary = set(current.term_frequencies) | set(baseline.term_frequencies)
        size = len(vocabulary)

        drifted: List[Tuple[str, float, float, float]] = []
        for term in vocabulary:
            current_count = current.term_frequencies.get(term, 0)
            baseline_count = baseline.term_frequencies.get(term, 0)
            if max(current_count, baseline_count) < self.settings.min_term_count:
                continue
            current_rf = (current_count + 1) / (current_total + size)
            baseline_rf = (baseline_count + 1) / (baseline_total + size)
            ratio = current_rf / baseline_rf
            if ratio > 1.0 / s or ratio < s:
                drifted.append((term, ratio, baseline_rf, current_rf))

        if not drifted:
            return None

        drifted.sort(key=lambda item: (-abs(item[1] - 1.0), item[0]))
        top = drifted[: self.settings.top_keywords]
        largest_log_ratio = max(abs(math.log(ratio)) for _, ratio, _, _ in drifted)

        return AnomalyCandidate(
            source=source,
            source_kind=SourceKind.TEXT,
            method=DetectionMethod.KEYWORD_FREQUENCY,
            anomaly_type=AnomalyType.KEYWORD_DRIFT,
            window=TimeWindow(start=current.bucket_start, end=current.bucket_end),
            start_position=position,
            end_position=position,
            score=largest_log_ratio / (1.0 + largest_log_ratio),
            magnitude=(top[0][1] - 1.0) * 100.0,
            keywords=tuple(term for term, _, _, _ in top),
            details={
                "drifted_terms": len(drifted),
                "terms": {
                    term: {
                        "baseline_frequency": baseline_rf,
                        "current_frequency": current_rf,
                        "relative_change": ratio - 1.0,
                    }
                    for term, ratio, baseline_rf, current_rf in top
                },
                "ratio_band": [s, 1.0 / s],
            },
        )

    def topic_drift(
        self,
        source: str,
        position: int,
        current: TextFeatures,
        baseline: Baseline,
    ) -> Optional[AnomalyCandidate]:
        """
        Flag a bucket whose TF-IDF centroid moved away from the baseline.

        Raises:
            DegenerateInputError: If either centroid is missing or zero.
        """
        if not current.centroid or baseline.centroid is None:
            raise DegenerateInputError("No TF-IDF centroid, no topic comparison possible")

        current_centroid = np.asarray(current.centroid, dtype=float)
        if not current_centroid.any() or not baseline.centroid.any():
            raise DegenerateInputError("Zero TF-IDF centroid, no topic comparison possible")

        similarity = float(
            cosine_similarity(
                current_centroid.reshape(1, -1),
                baseline.centroid.reshape(1, -1),
            )[0, 0]
        )
        if similarity >= self.similarity_threshold:
            return None

        return AnomalyCandidate(
            source=source,
            source_kind=SourceKind.TEXT,
            method=DetectionMethod.TOPIC,
            anomaly_type=AnomalyType.KEYWORD_DRIFT,
            window=TimeWindow(start=current.bucket_start, end=current.bucket_end),
            start_position=position,
            end_position=position,
            score=min(1.0, max(0.0, 1.0 - similarity)),
            magnitude=(1.0 - similarity) * 100.0,
            keywords=self._emerging_terms(current, baseline),
            details={
                "similarity": similarity,
                "threshold": self.similarity_threshold,
            },
        )

    def category_shift(
        self,
        source: str,
        position: int,
        current: TextFeatures,
        baseline: Baseline,
    ) -> Optional[AnomalyCandidate]:
        """
        Flag a bucket whose category mix moved by more than proportion_delta.

        Raises:
            DegenerateInputError: If either side has no categorized documents.
        """
        if current.categorized_count == 0 or baseline.categorized_count == 0:
            raise DegenerateInputError("No categorized documents, no category comparison possible")

        return self._proportion_shift(
            source,
            position,
            current,
            DetectionMethod.CATEGORY_DISTRIBUTION,
            baseline.category_proportions,
            current.category_proportions,
        )

    def sentiment_shift(
        self,
        source: str,
        position: int,
        current: TextFeatures,
        baseline: Baseline,
    ) -> Optional[AnomalyCandidate]:
        """
        Flag a bucket whose sentiment mix moved by more than proportion_delta.

        Raises:
            DegenerateInputError: If either side has no documents.
        """
        if current.document_count == 0 or baseline.document_count == 0:
            raise DegenerateInputError("Empty bucket, no sentiment comparison possible")

        return self._proportion_shift(
            source,
            position,
            current,
            DetectionMethod.SENTIMENT,
            baseline.sentiment,
            current.sentiment.as_dict(),
        )

    def _proportion_shift(
        self,
        source: str,
        position: int,
        current: TextFeatures,
        method: DetectionMethod,
        old: Dict[str, float],
        new: Dict[str, float],
    ) -> Optional[AnomalyCandidate]:
        """Shared delta rule for category and sentiment distributions."""
        delta = self.settings.proportion_delta
        changes = proportion_changes(old, new)
        shifted = sorted(
            (label for label, change in changes.items() if abs(change) > delta),
            key=lambda label: (-abs(changes[label]), label),
        )
        if not shifted:
            return None

        largest = abs(changes[shifted[0]])
        return AnomalyCandidate(
            source=source,
            source_kind=SourceKind.TEXT,
            method=method,
            anomaly_type=AnomalyType.CATEGORY_SHIFT,
            window=TimeWindow(start=current.bucket_start, end=current.bucket_end),
            start_position=position,
            end_position=position,
            score=min(1.0, largest / (2.0 * delta)),
            magnitude=changes[shifted[0]] * 100.0,
            categories=tuple(shifted),
            details={
                "old_proportions": dict(old),
                "new_proportions": dict(new),
                "changes": changes,
                "proportion_delta": delta,
            },
        )

    def _emerging_terms(
        self, current: TextFeatures, baseline: Baseline
    ) -> Tuple[str, ...]:
        """Terms whose share grew most against the baseline."""
        current_total = current.total_terms
        baseline_total = sum(baseline.term_frequencies.values())
        if current_total == 0:
            return ()

        def growth(term: str) -> float:
            base = baseline.term_frequencies.get(term, 0) / baseline_total if baseline_total else 0.0
            return current.term_frequencies[term] / current_total - base

        ranked = sorted(current.term_frequencies, key=lambda t: (-growth(t), t))
        return tuple(t for t in ranked[: self.settings.top_keywords] if growth(t) > 0)
