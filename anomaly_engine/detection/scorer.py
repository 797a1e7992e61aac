"""
Anomaly scorer and window resolver.

Turns raw detector candidates into resolved Anomaly records. This is the
only place severity is assigned.

Responsibilities:
    - Map normalized scores onto LOW / MEDIUM / HIGH
    - Merge overlapping or adjacent candidates that share source, method
      and type into one anomaly (window = earliest to latest, score = max)
    - Compute magnitude: percent change against the pre-anomaly baseline
      for time series, detector-supplied percentage(-point) change for text
    - Compute the affected region (source plus driving keywords/categories)

Resolution is a pure function of the candidates: ids are derived from
source, method, type and window, so resolving the same candidates twice
yields identical anomalies.

Example:
    >>> scorer = AnomalyScorer()
    >>> anomalies = scorer.resolve(series_detection.candidates)
"""

import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from anomaly_engine.models.anomaly import (
    AffectedRegion,
    Anomaly,
    AnomalyCandidate,
    AnomalyType,
    DetectionMethod,
    Severity,
    SourceKind,
)

logger = structlog.get_logger(__name__)


# Severity policy: score < 0.4 -> LOW, 0.4 <= score < 0.7 -> MEDIUM, else HIGH
MEDIUM_SEVERITY_SCORE = 0.4
HIGH_SEVERITY_SCORE = 0.7

# Namespace for deterministic anomaly ids
ANOMALY_ID_NAMESPACE = uuid.UUID("6f1c1c52-8a0e-4a55-9a8e-3d0f4b7e2c91")


def severity_for_score(score: float) -> Severity:
    """
    Bucket a normalized score into a severity.

    Args:
        score: Normalized score in [0, 1].

    Returns:
        Severity: LOW below 0.4, MEDIUM below 0.7, HIGH otherwise.
    """
    if score >= HIGH_SEVERITY_SCORE:
        return Severity.HIGH
    if score >= MEDIUM_SEVERITY_SCORE:
        return Severity.MEDIUM
    return Severity.LOW


def anomaly_id(
    source: str,
    method: DetectionMethod,
    anomaly_type: AnomalyType,
    start: Any,
    end: Any,
) -> str:
    """Deterministic id for an anomaly window."""
    name = f"{source}|{method.value}|{anomaly_type.value}|{start.isoformat()}|{end.isoformat()}"
    return str(uuid.uuid5(ANOMALY_ID_NAMESPACE, name))


def _ordered_union(groups: Iterable[Sequence[str]]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for group in groups:
        for item in group:
            seen.setdefault(item, None)
    return tuple(seen)


class AnomalyScorer:
    """
    Resolves candidates into scored, merged anomalies.

    Stateless; safe to call from any thread. The engine calls it from a
    single merge stage so one source is never resolved twice concurrently.
    """

    def resolve(self, candidates: Sequence[AnomalyCandidate]) -> List[Anomaly]:
        """
        Merge candidates and assign severity.

        Args:
            candidates: Raw candidates from any detectors.

        Returns:
            List[Anomaly]: Resolved anomalies, grouped in first-seen order of
                (source, method, type) and chronological within a group.
        """
        groups: Dict[Tuple[str, DetectionMethod, AnomalyType], List[AnomalyCandidate]] = {}
        for candidate in candidates:
            groups.setdefault(candidate.merge_key, []).append(candidate)

        anomalies: List[Anomaly] = []
        for group in groups.values():
            for cluster in self._clusters(group):
                anomalies.append(self._build_anomaly(cluster))

        logger.info(
            "anomalies_resolved",
            candidates=len(candidates),
            anomalies=len(anomalies),
        )
        return anomalies

    @staticmethod
    def _clusters(group: List[AnomalyCandidate]) -> List[List[AnomalyCandidate]]:
        """Split one group into runs of overlapping or adjacent candidates."""
        ordered = sorted(group, key=lambda c: (c.start_position, c.window.start))
        clusters: List[List[AnomalyCandidate]] = []
        end_position = -1
        end_time = None

        for candidate in ordered:
            if clusters and (
                candidate.start_position <= end_position + 1
                or (end_time is not None and candidate.window.start <= end_time)
            ):
                clusters[-1].append(candidate)
                end_position = max(end_position, candidate.end_position)
                end_time = max(end_time, candidate.window.end)
            else:
                clusters.append([candidate])
                end_position = candidate.end_position
                end_time = candidate.window.end
        return clusters

    def _build_anomaly(self, cluster: List[AnomalyCandidate]) -> Anomaly:
        """Build one anomaly from a merged cluster."""
        first = cluster[0]
        window = first.window
        for candidate in cluster[1:]:
            window = window.span(candidate.window)

        score = max(c.score for c in cluster)
        metadata: Dict[str, Any] = {
            "candidate_count": len(cluster),
            "start_position": min(c.start_position for c in cluster),
            "end_position": max(c.end_position for c in cluster),
        }

        if first.source_kind == SourceKind.TIME_SERIES:
            magnitude = self._series_magnitude(cluster, metadata)
        else:
            magnitude = self._text_magnitude(cluster, metadata)

        return Anomaly(
            id=anomaly_id(first.source, first.method, first.anomaly_type, window.start, window.end),
            type=first.anomaly_type,
            severity=severity_for_score(score),
            data_source=first.source,
            time_window=window,
            affected_region=AffectedRegion(
                source=first.source,
                source_kind=first.source_kind,
                keywords=_ordered_union(c.keywords for c in cluster),
                categories=_ordered_union(c.categories for c in cluster),
            ),
            score=score,
            magnitude=magnitude,
            method=first.method,
            metadata=metadata,
        )

    @staticmethod
    def _series_magnitude(
        cluster: List[AnomalyCandidate], metadata: Dict[str, Any]
    ) -> Optional[float]:
        """Percent change of the peak value against the pre-anomaly baseline."""
        baseline = cluster[0].baseline
        with_values = [c for c in cluster if c.value is not None]
        if not with_values:
            return None

        if baseline is None:
            peak = max(with_values, key=lambda c: c.score)
        else:
            peak = max(with_values, key=lambda c: abs(c.value - baseline))

        metadata["peak_value"] = peak.value
        metadata["peak_timestamp"] = peak.window.start.isoformat()
        metadata["baseline_mean"] = baseline
        metadata["statistic"] = peak.details.get("statistic")

        if baseline is None or baseline == 0.0:
            return None
        return (peak.value - baseline) / abs(baseline) * 100.0

    @staticmethod
    def _text_magnitude(
        cluster: List[AnomalyCandidate], metadata: Dict[str, Any]
    ) -> Optional[float]:
        """Largest detector-supplied change across merged buckets."""
        peak = max(cluster, key=lambda c: c.score)
        metadata["buckets"] = len(cluster)
        metadata.update(peak.details)

        magnitudes = [c.magnitude for c in cluster if c.magnitude is not None]
        if not magnitudes:
            return None
        return max(magnitudes, key=abs)


def create_scorer() -> AnomalyScorer:
    """
    Factory function to create an AnomalyScorer.

    Returns:
        AnomalyScorer: A new scorer instance.
    """
    return AnomalyScorer()
