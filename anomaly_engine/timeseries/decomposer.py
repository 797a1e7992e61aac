"""
Classical seasonal decomposition.

Splits a cleaned series into trend, seasonal and residual components with
statsmodels' additive seasonal_decompose:

    trend     centered moving average over one period (2 x period
              average for even periods), edges extrapolated linearly
    seasonal  mean detrended value per phase position, centered to zero
    residual  value - trend - seasonal

The period is supplied by the caller or inferred as the strongest
autocorrelation peak. At least 2 x period points are required.

Classes:
    Decomposition: Aligned trend/seasonal/residual arrays
    SeasonalDecomposer: Decomposer with period inference
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import structlog
from statsmodels.tsa.seasonal import seasonal_decompose

from anomaly_engine.errors import DegenerateInputError, InsufficientDataError
from anomaly_engine.models.anomaly import DetectionMethod
from anomaly_engine.models.timeseries import TimeSeries

logger = structlog.get_logger(__name__)


@dataclass
class Decomposition:
    """
    Result of a decomposition.

    Attributes:
        period: Period used (None for a constant series decomposed trivially).
        trend: Trend component, same length as the series.
        seasonal: Seasonal component, same length as the series.
        residual: Residual component, same length as the series.
    """

    period: Optional[int]
    trend: np.ndarray
    seasonal: np.ndarray
    residual: np.ndarray


class SeasonalDecomposer:
    """
    Additive classical decomposition.

    Example:
        >>> decomposer = SeasonalDecomposer()
        >>> result = decomposer.decompose(series)  # period inferred
        >>> result.residual.shape == (len(series),)
        True
    """

    def __init__(self, period: Optional[int] = None) -> None:
        """
        Initialize the decomposer.

        Args:
            period: Fixed period; None to infer it per series.

        Raises:
            ValueError: If period < 2.
        """
        if period is not None and period < 2:
            raise ValueError(f"period must be >= 2, got {period}")
        self.period = period

    def infer_period(self, series: TimeSeries) -> int:
        """
        Infer the period as the autocorrelation-peak lag.

        Raises:
            DegenerateInputError: If the series shows no seasonal peak.
        """
        seasonality = series.statistics.seasonality
        if seasonality.period is None:
            raise DegenerateInputError(
                f"No seasonal period found in {series.name}",
                method=DetectionMethod.SEASONAL_RESIDUAL.value,
            )
        return seasonality.period

    def decompose(
        self, series: TimeSeries, period: Optional[int] = None
    ) -> Decomposition:
        """
        Decompose a series.

        Args:
            series: Series to decompose.
            period: Period override for this call.

        Returns:
            Decomposition: Aligned components.

        Raises:
            InsufficientDataError: If fewer than 2 x period points exist.
            DegenerateInputError: If no period is given and none can be inferred.
        """
        values = np.asarray(series.values, dtype=float)
        n = values.shape[0]
        period = period if period is not None else self.period

        if n == 0:
            raise InsufficientDataError(
                f"Cannot decompose empty series {series.name}",
                method=DetectionMethod.SEASONAL_RESIDUAL.value,
            )

        if series.statistics.is_constant:
            # Nothing to separate: the residual is identically zero
            if period is not None and n < 2 * period:
                raise InsufficientDataError(
                    f"{series.name} has {n} points, decomposition needs {2 * period}",
                    method=DetectionMethod.SEASONAL_RESIDUAL.value,
                )
            return Decomposition(
                period=period,
                trend=values.copy(),
                seasonal=np.zeros(n),
                residual=np.zeros(n),
            )

        if period is None:
            period = self.infer_period(series)

        if n < 2 * period:
            raise InsufficientDataError(
                f"{series.name} has {n} points, decomposition needs {2 * period}",
                method=DetectionMethod.SEASONAL_RESIDUAL.value,
            )

        result = seasonal_decompose(
            values,
            model="additive",
            period=period,
            extrapolate_trend="freq",
        )
        trend = np.asarray(result.trend, dtype=float)
        seasonal = np.asarray(result.seasonal, dtype=float)
        residual = np.asarray(result.resid, dtype=float)

        logger.debug(
            "series_decomposed",
            source=series.name,
            period=period,
            points=n,
            residual_std=float(residual.std()),
        )

        return Decomposition(
            period=period,
            trend=trend,
            seasonal=seasonal,
            residual=residual,
        )
