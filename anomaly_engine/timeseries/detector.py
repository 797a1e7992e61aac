"""
Time-series anomaly detector.

Runs four independent sub-methods over one numeric column and emits raw
flagged points as AnomalyCandidate objects. Merging and severity are left
to the scorer.

Sub-methods (all thresholds are exclusive: a point exactly at the
threshold is not flagged):
    zscore: |value - mean| / std > zScoreThreshold
    moving_average: |value - rolling mean| / rolling std > zScoreThreshold,
        using the movingAverageWindow preceding points
    percentile: value < P_low or value > P_high
    seasonal_residual: zscore logic on the decomposition residual

Scores are normalized to [0, 1]: min(1, |z| / (2 x threshold)) for the
z-based methods and min(1, distance / (P_high - P_low)) for percentiles.

Classes:
    FlaggedPoint: A point flagged by one sub-method
    SeriesDetection: Detector output for one column
    TimeSeriesDetector: Runs all sub-methods over a series
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog

from anomaly_engine.cancellation import CancellationToken
from anomaly_engine.errors import DegenerateInputError, InsufficientDataError
from anomaly_engine.models.anomaly import (
    AnomalyCandidate,
    AnomalyType,
    DetectionMethod,
    SourceKind,
    TimeWindow,
)
from anomaly_engine.models.parameters import AnomalyDetectionParameters
from anomaly_engine.models.results import SkippedMethod
from anomaly_engine.models.timeseries import TimeSeries
from anomaly_engine.timeseries.decomposer import SeasonalDecomposer

logger = structlog.get_logger(__name__)


@dataclass
class FlaggedPoint:
    """
    A point flagged by one sub-method.

    Attributes:
        index: Position of the point in the series.
        anomaly_type: SPIKE (above) or DROP (below).
        score: Normalized score in [0, 1].
        statistic: Method statistic (z-score, or distance for percentiles).
    """

    index: int
    anomaly_type: AnomalyType
    score: float
    statistic: float


@dataclass
class SeriesDetection:
    """
    Detector output for one column.

    Attributes:
        source: Column name.
        candidates: Flagged points that survived the duration filter.
        skipped: Sub-methods that could not run, with reasons.
        annotated_series: Series with is_anomaly/anomaly_score written.
    """

    source: str
    candidates: List[AnomalyCandidate] = field(default_factory=list)
    skipped: List[SkippedMethod] = field(default_factory=list)
    annotated_series: Optional[TimeSeries] = None


def normalized_z_score(z: float, threshold: float) -> float:
    """Map a z-score to [0, 1]: min(1, |z| / (2 x threshold))."""
    return min(1.0, abs(z) / (2.0 * threshold))


def zscore_flags(
    values: Sequence[float],
    mean: float,
    std: float,
    threshold: float,
) -> List[FlaggedPoint]:
    """
    Flag values whose |z| strictly exceeds the threshold.

    Raises:
        DegenerateInputError: If std is zero (no anomaly possible).
    """
    if std <= 0.0:
        raise DegenerateInputError("Zero standard deviation")

    flags: List[FlaggedPoint] = []
    for index, value in enumerate(values):
        z = (value - mean) / std
        if abs(z) > threshold:
            flags.append(
                FlaggedPoint(
                    index=index,
                    anomaly_type=AnomalyType.SPIKE if z > 0 else AnomalyType.DROP,
                    score=normalized_z_score(z, threshold),
                    statistic=float(z),
                )
            )
    return flags


def moving_average_flags(
    values: Sequence[float],
    window: int,
    threshold: float,
) -> List[FlaggedPoint]:
    """
    Flag values deviating from the rolling mean of the preceding window.

    Points without a full preceding window are not evaluated, nor are points
    whose preceding window has zero spread.

    Raises:
        InsufficientDataError: If no point has `window` preceding points.
        DegenerateInputError: If window < 2 (rolling std undefined).
    """
    data = np.asarray(values, dtype=float)
    if data.shape[0] <= window:
        raise InsufficientDataError(
            f"{data.shape[0]} points, moving average needs more than {window}"
        )
    if window < 2:
        raise DegenerateInputError("Rolling standard deviation needs a window of 2+")

    # Row k holds the window preceding point k + window
    windows = np.lib.stride_tricks.sliding_window_view(data, window)[:-1]
    means = windows.mean(axis=1)
    stds = windows.std(axis=1, ddof=1)

    flags: List[FlaggedPoint] = []
    for offset, (mean, std) in enumerate(zip(means, stds)):
        if std <= 0.0:
            continue
        index = offset + window
        z = (data[index] - mean) / std
        if abs(z) > threshold:
            flags.append(
                FlaggedPoint(
                    index=index,
                    anomaly_type=AnomalyType.SPIKE if z > 0 else AnomalyType.DROP,
                    score=normalized_z_score(z, threshold),
                    statistic=float(z),
                )
            )
    return flags


def percentile_flags(
    values: Sequence[float],
    lower: float,
    upper: float,
) -> List[FlaggedPoint]:
    """
    Flag values strictly outside the [P_lower, P_upper] band.

    Raises:
        InsufficientDataError: If the series is empty.
        DegenerateInputError: If the percentile span is zero.
    """
    data = np.asarray(values, dtype=float)
    if data.shape[0] == 0:
        raise InsufficientDataError("Percentiles need at least one point")

    low, high = (float(v) for v in np.percentile(data, [lower, upper]))
    span = high - low
    if span <= 0.0:
        raise DegenerateInputError("Zero percentile span")

    flags: List[FlaggedPoint] = []
    for index, value in enumerate(data):
        if value > high:
            distance = float(value - high)
            flags.append(
                FlaggedPoint(index, AnomalyType.SPIKE, min(1.0, distance / span), distance)
            )
        elif value < low:
            distance = float(low - value)
            flags.append(
                FlaggedPoint(index, AnomalyType.DROP, min(1.0, distance / span), distance)
            )
    return flags


def contiguous_runs(flags: Sequence[FlaggedPoint]) -> List[List[FlaggedPoint]]:
    """Group flags into runs of consecutive indices with the same type."""
    runs: List[List[FlaggedPoint]] = []
    for flag in sorted(flags, key=lambda f: f.index):
        if (
            runs
            and runs[-1][-1].index + 1 == flag.index
            and runs[-1][-1].anomaly_type == flag.anomaly_type
        ):
            runs[-1].append(flag)
        else:
            runs.append([flag])
    return runs


class TimeSeriesDetector:
    """
    Runs the four sub-methods over one numeric series.

    A point may be flagged by several sub-methods; each yields its own
    candidate. Runs of flagged points shorter than minimumAnomalyDuration
    are dropped here, before the scorer sees them.

    Example:
        >>> detector = TimeSeriesDetector(AnomalyDetectionParameters())
        >>> result = detector.detect(series)
        >>> for candidate in result.candidates:
        ...     print(candidate.method, candidate.anomaly_type, candidate.score)
    """

    def __init__(
        self,
        parameters: AnomalyDetectionParameters,
        decomposer: Optional[SeasonalDecomposer] = None,
    ) -> None:
        """
        Initialize the detector.

        Args:
            parameters: Validated detection parameters.
            decomposer: Seasonal decomposer (default: period inferred per series).
        """
        self.parameters = parameters
        self.decomposer = decomposer or SeasonalDecomposer()

    def detect(
        self,
        series: TimeSeries,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SeriesDetection:
        """
        Run all sub-methods over a series.

        Args:
            series: Cleaned series for one column.
            cancel_token: Checked between sub-methods.

        Returns:
            SeriesDetection: Candidates, skipped methods and annotated series.

        Raises:
            DetectionTimeoutError: If the token is cancelled mid-column.
        """
        result = SeriesDetection(source=series.name)
        methods: List[Tuple[DetectionMethod, Callable[[TimeSeries], List[FlaggedPoint]]]] = [
            (DetectionMethod.ZSCORE, self._run_zscore),
            (DetectionMethod.MOVING_AVERAGE, self._run_moving_average),
            (DetectionMethod.PERCENTILE, self._run_percentile),
            (DetectionMethod.SEASONAL_RESIDUAL, self._run_seasonal_residual),
        ]

        for method, run in methods:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(series.name)

            try:
                flags = run(series)
            except InsufficientDataError as e:
                result.skipped.append(self._skip(series, method, "insufficient_data", e))
                continue
            except DegenerateInputError as e:
                result.skipped.append(self._skip(series, method, "degenerate_input", e))
                continue

            result.candidates.extend(self._build_candidates(series, method, flags))

        scores: Dict[int, float] = {}
        for candidate in result.candidates:
            index = candidate.start_position
            scores[index] = max(scores.get(index, 0.0), candidate.score)
        result.annotated_series = series.with_anomaly_flags(scores)

        logger.info(
            "series_detection_complete",
            source=series.name,
            points=len(series),
            candidates=len(result.candidates),
            skipped=[s.method.value for s in result.skipped],
        )
        return result

    def _run_zscore(self, series: TimeSeries) -> List[FlaggedPoint]:
        stats = series.statistics
        if len(series) < 2:
            raise InsufficientDataError("z-score needs at least 2 points")
        return zscore_flags(
            series.values,
            stats.mean,
            stats.standard_deviation,
            self.parameters.z_score_threshold,
        )

    def _run_moving_average(self, series: TimeSeries) -> List[FlaggedPoint]:
        return moving_average_flags(
            series.values,
            self.parameters.moving_average_window,
            self.parameters.z_score_threshold,
        )

    def _run_percentile(self, series: TimeSeries) -> List[FlaggedPoint]:
        return percentile_flags(
            series.values,
            self.parameters.lower_percentile,
            self.parameters.upper_percentile,
        )

    def _run_seasonal_residual(self, series: TimeSeries) -> List[FlaggedPoint]:
        if len(series) < 2:
            raise InsufficientDataError("residual z-score needs at least 2 points")

        try:
            residual = self.decomposer.decompose(series).residual
        except InsufficientDataError as e:
            # Too short to decompose: treat the raw values as the residual
            logger.debug(
                "decomposition_fallback_raw_values",
                source=series.name,
                reason=e.message,
            )
            residual = np.asarray(series.values, dtype=float)

        std = float(np.std(residual, ddof=1))
        return zscore_flags(
            residual,
            float(residual.mean()),
            std,
            self.parameters.z_score_threshold,
        )

    def _build_candidates(
        self,
        series: TimeSeries,
        method: DetectionMethod,
        flags: List[FlaggedPoint],
    ) -> List[AnomalyCandidate]:
        """Apply the duration filter and convert surviving flags to candidates."""
        values = series.values
        window = self.parameters.moving_average_window
        candidates: List[AnomalyCandidate] = []

        for run in contiguous_runs(flags):
            if len(run) < self.parameters.minimum_anomaly_duration:
                logger.debug(
                    "candidate_run_below_minimum_duration",
                    source=series.name,
                    method=method.value,
                    start_index=run[0].index,
                    length=len(run),
                )
                continue

            baseline = self._baseline(values, run[0].index, run[-1].index, window)
            for flag in run:
                point = series.points[flag.index]
                candidates.append(
                    AnomalyCandidate(
                        source=series.name,
                        source_kind=SourceKind.TIME_SERIES,
                        method=method,
                        anomaly_type=flag.anomaly_type,
                        window=TimeWindow(start=point.timestamp, end=point.timestamp),
                        start_position=flag.index,
                        end_position=flag.index,
                        score=flag.score,
                        value=point.value,
                        baseline=baseline,
                        details={"statistic": flag.statistic, "run_length": len(run)},
                    )
                )
        return candidates

    @staticmethod
    def _baseline(
        values: Sequence[float], start: int, end: int, window: int
    ) -> Optional[float]:
        """
        Mean of the `window` points preceding a run.

        Runs starting at the first point use the points following the run.
        """
        if start > 0:
            reference = values[max(0, start - window) : start]
        else:
            reference = values[end + 1 : end + 1 + window]
        if not reference:
            return None
        return float(np.mean(reference))

    @staticmethod
    def _skip(
        series: TimeSeries,
        method: DetectionMethod,
        reason: str,
        error: Exception,
    ) -> SkippedMethod:
        logger.info(
            "detection_method_skipped",
            source=series.name,
            method=method.value,
            reason=reason,
            error=str(error),
        )
        return SkippedMethod(method=method, reason=reason, message=str(error))
