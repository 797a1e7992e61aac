"""
Detection engine orchestrating one batch run.

This module provides the AnomalyDetectionEngine which runs the time-series
and text detectors over every submitted column and turns their candidates
into a prioritized list of anomalies.

Key Features:
    - Validates parameters once, before any detector starts
    - Runs each column as an independent task on a thread pool
    - Enforces the run time budget through a shared CancellationToken
    - Merges candidates in a single stage, one source at a time
    - Reports unfinished columns as "skipped: timeout" instead of dropping them
    - Reports a column whose task raises as "failed" and keeps the others

Example:
    >>> engine = AnomalyDetectionEngine({"zScoreThreshold": 2.5})
    >>> report = engine.detect(time_series=[headcount], text_data=[complaints])
    >>> for anomaly in report.anomalies:
    ...     print(anomaly.severity, anomaly.type, anomaly.data_source)
"""

import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import structlog

from anomaly_engine.cancellation import CancellationToken
from anomaly_engine.config.models import EngineConfig, EngineSettings, TextDriftSettings
from anomaly_engine.detection.prioritizer import prioritize
from anomaly_engine.detection.scorer import create_scorer
from anomaly_engine.errors import DetectionTimeoutError
from anomaly_engine.models.anomaly import Anomaly, AnomalyCandidate, SourceKind
from anomaly_engine.models.parameters import AnomalyDetectionParameters, validate_parameters
from anomaly_engine.models.results import (
    ColumnReport,
    ColumnStatus,
    DetectionReport,
    SkippedMethod,
)
from anomaly_engine.models.text import TextData
from anomaly_engine.models.timeseries import TimeSeries
from anomaly_engine.text.drift import TextDriftDetector
from anomaly_engine.text.features import TextFeatureExtractor
from anomaly_engine.timeseries.detector import TimeSeriesDetector

logger = structlog.get_logger(__name__)


@dataclass
class ColumnOutcome:
    """
    Raw result of one finished column task.

    Attributes:
        source: Column or text source name.
        kind: Numeric or text source.
        candidates: Detector candidates for the column.
        skipped: Sub-methods skipped for data reasons.
        annotated_series: Flagged series (numeric columns only).
    """

    source: str
    kind: SourceKind
    candidates: List[AnomalyCandidate] = field(default_factory=list)
    skipped: List[SkippedMethod] = field(default_factory=list)
    annotated_series: Optional[TimeSeries] = None


class AnomalyDetectionEngine:
    """
    Runs every detector over a dataset and prioritizes the results.

    Parameters are read-only for the lifetime of the engine. Column tasks
    share no mutable state; the only shared object is the CancellationToken.

    Attributes:
        parameters: Validated detection parameters.
        text_settings: Text drift baseline settings.
        engine_settings: Worker pool size and time budget.
        scorer: Resolver turning candidates into anomalies.

    Example:
        >>> engine = AnomalyDetectionEngine(
        ...     parameters=AnomalyDetectionParameters(minimumAnomalyDuration=2),
        ...     engine_settings=EngineSettings(max_workers=4),
        ... )
        >>> report = engine.detect(time_series=series_list)
        >>> report.columns["headcount"].status
        <ColumnStatus.ANALYZED: 'analyzed'>
    """

    def __init__(
        self,
        parameters: Optional[Union[AnomalyDetectionParameters, Mapping[str, Any]]] = None,
        text_settings: Optional[TextDriftSettings] = None,
        engine_settings: Optional[EngineSettings] = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            parameters: Parameters model or raw mapping (defaults if None).
            text_settings: Text drift settings (defaults if None).
            engine_settings: Run settings (defaults if None).

        Raises:
            InvalidParameterError: If any parameter is out of range.
        """
        self.parameters = validate_parameters(parameters)
        self.text_settings = text_settings or TextDriftSettings()
        self.engine_settings = engine_settings or EngineSettings()

        self.scorer = create_scorer()
        self.series_detector = TimeSeriesDetector(self.parameters)
        self.drift_detector = TextDriftDetector(self.parameters, self.text_settings)

        logger.info(
            "detection_engine_initialized",
            z_score_threshold=self.parameters.z_score_threshold,
            moving_average_window=self.parameters.moving_average_window,
            percentile_thresholds=list(self.parameters.percentile_thresholds),
            text_similarity_threshold=self.parameters.text_similarity_threshold,
            minimum_anomaly_duration=self.parameters.minimum_anomaly_duration,
            baseline_strategy=self.text_settings.baseline_strategy.value,
            max_workers=self.engine_settings.max_workers,
            time_budget_seconds=self.engine_settings.time_budget_seconds,
        )

    def detect(
        self,
        time_series: Sequence[TimeSeries] = (),
        text_data: Sequence[TextData] = (),
        cancel_token: Optional[CancellationToken] = None,
    ) -> DetectionReport:
        """
        Run one detection pass over a dataset.

        Args:
            time_series: Cleaned numeric columns.
            text_data: Bucketed text columns.
            cancel_token: Token to cancel the run from outside. When given,
                its own deadline applies instead of the configured budget.

        Returns:
            DetectionReport: Prioritized anomalies and a report for every
                submitted column.

        Raises:
            ValueError: If two columns share a source name.
        """
        started = time.monotonic()
        tasks = self._build_tasks(time_series, text_data)
        token = cancel_token or CancellationToken(self.engine_settings.time_budget_seconds)

        logger.info(
            "detection_run_started",
            series_columns=len(time_series),
            text_columns=len(text_data),
            time_budget_seconds=token.remaining_seconds,
        )

        outcomes, failures = self._run_tasks(tasks, token)

        # Merge stage: one source at a time, in input order
        anomalies: List[Anomaly] = []
        columns: Dict[str, ColumnReport] = {}
        annotated: Dict[str, TimeSeries] = {}

        for source, kind, _ in tasks:
            if source in failures:
                columns[source] = ColumnReport(
                    source=source,
                    kind=kind,
                    status=ColumnStatus.FAILED,
                    error=failures[source],
                )
                continue

            outcome = outcomes.get(source)
            if outcome is None:
                columns[source] = ColumnReport(
                    source=source,
                    kind=kind,
                    status=ColumnStatus.SKIPPED_TIMEOUT,
                )
                continue

            resolved = self.scorer.resolve(outcome.candidates)
            anomalies.extend(resolved)
            if outcome.annotated_series is not None:
                annotated[source] = outcome.annotated_series
            columns[source] = ColumnReport(
                source=source,
                kind=kind,
                status=ColumnStatus.ANALYZED,
                skipped_methods=outcome.skipped,
                candidate_count=len(outcome.candidates),
                anomaly_count=len(resolved),
            )

        report = DetectionReport(
            anomalies=prioritize(anomalies),
            columns=columns,
            annotated_series=annotated,
            timed_out=any(
                c.status == ColumnStatus.SKIPPED_TIMEOUT for c in columns.values()
            ),
            elapsed_seconds=time.monotonic() - started,
        )

        logger.info(
            "detection_run_complete",
            anomalies=len(report.anomalies),
            analyzed_columns=sum(1 for c in columns.values() if c.is_analyzed),
            skipped_columns=[
                c.source for c in columns.values() if c.status == ColumnStatus.SKIPPED_TIMEOUT
            ],
            failed_columns=list(failures),
            timed_out=report.timed_out,
            elapsed_seconds=round(report.elapsed_seconds, 3),
        )
        return report

    def _build_tasks(
        self,
        time_series: Sequence[TimeSeries],
        text_data: Sequence[TextData],
    ) -> List[Tuple[str, SourceKind, Callable[[CancellationToken], ColumnOutcome]]]:
        """One task per column; rejects duplicate source names."""
        tasks: List[Tuple[str, SourceKind, Callable[[CancellationToken], ColumnOutcome]]] = []
        seen = set()

        for series in time_series:
            if series.name in seen:
                raise ValueError(f"Duplicate data source name: {series.name}")
            seen.add(series.name)
            tasks.append(
                (series.name, SourceKind.TIME_SERIES, lambda t, s=series: self._analyze_series(s, t))
            )

        for text in text_data:
            if text.name in seen:
                raise ValueError(f"Duplicate data source name: {text.name}")
            seen.add(text.name)
            tasks.append(
                (text.name, SourceKind.TEXT, lambda t, d=text: self._analyze_text(d, t))
            )

        return tasks

    def _run_tasks(
        self,
        tasks: List[Tuple[str, SourceKind, Callable[[CancellationToken], ColumnOutcome]]],
        token: CancellationToken,
    ) -> Tuple[Dict[str, ColumnOutcome], Dict[str, str]]:
        """
        Execute column tasks on the worker pool within the token's budget.

        Returns:
            Tuple[Dict[str, ColumnOutcome], Dict[str, str]]: Outcomes of the
                columns that finished, and error messages of the columns
                whose task raised.
        """
        if not tasks:
            return {}, {}

        workers = min(self.engine_settings.max_workers, len(tasks))
        futures: Dict[str, Future] = {}

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="anomaly-column")
        try:
            for source, _, task in tasks:
                futures[source] = executor.submit(task, token)

            _, pending = wait(futures.values(), timeout=token.remaining_seconds)
            if pending:
                logger.warning(
                    "detection_time_budget_exceeded",
                    pending_columns=len(pending),
                )
                token.cancel("timeout")
        finally:
            # Running columns stop at their next checkpoint
            executor.shutdown(wait=True, cancel_futures=True)

        outcomes: Dict[str, ColumnOutcome] = {}
        failures: Dict[str, str] = {}
        for source, future in futures.items():
            if future.cancelled():
                logger.warning("column_skipped_timeout", source=source, stage="queued")
                continue
            try:
                outcomes[source] = future.result()
            except DetectionTimeoutError as e:
                logger.warning(
                    "column_skipped_timeout",
                    source=source,
                    stage="running",
                    error=e.message,
                )
            except Exception as e:
                logger.error(
                    "column_detection_failed",
                    source=source,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                failures[source] = f"{type(e).__name__}: {e}"
        return outcomes, failures

    def _analyze_series(self, series: TimeSeries, token: CancellationToken) -> ColumnOutcome:
        token.raise_if_cancelled(series.name)
        result = self.series_detector.detect(series, token)
        return ColumnOutcome(
            source=series.name,
            kind=SourceKind.TIME_SERIES,
            candidates=result.candidates,
            skipped=result.skipped,
            annotated_series=result.annotated_series,
        )

    def _analyze_text(self, text: TextData, token: CancellationToken) -> ColumnOutcome:
        token.raise_if_cancelled(text.name)
        extractor = TextFeatureExtractor(text.documents)
        features = extractor.extract_all(text)
        result = self.drift_detector.detect(text.name, features, token)
        return ColumnOutcome(
            source=text.name,
            kind=SourceKind.TEXT,
            candidates=result.candidates,
            skipped=result.skipped,
        )


def create_engine(config: Optional[EngineConfig] = None) -> AnomalyDetectionEngine:
    """
    Factory function to create an engine from configuration.

    Args:
        config: Loaded configuration (defaults if None).

    Returns:
        AnomalyDetectionEngine: Engine using the configured parameters.

    Example:
        >>> from anomaly_engine.config import load_config
        >>> engine = create_engine(load_config("config"))
    """
    config = config or EngineConfig()
    return AnomalyDetectionEngine(
        parameters=config.parameters,
        text_settings=config.text_drift,
        engine_settings=config.engine,
    )
