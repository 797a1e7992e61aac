"""
Numeric helpers shared by the statistics model and the detectors.

All helpers accept any float sequence and return plain floats or numpy
arrays. Standard deviation uses the sample formula (n-1 in denominator).
"""

from typing import Optional, Sequence, Tuple

import numpy as np
from statsmodels.tsa.stattools import acf

# Minimum autocorrelation for a lag to count as a seasonal period
MIN_SEASONAL_STRENGTH: float = 0.1


def sample_std(values: Sequence[float]) -> float:
    """Sample standard deviation, 0.0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float), ddof=1))


def autocorrelation(values: Sequence[float], max_lag: int) -> np.ndarray:
    """
    Autocorrelation function for lags 0..max_lag.

    Args:
        values: Input series.
        max_lag: Largest lag to compute (clipped to len(values) - 1).

    Returns:
        np.ndarray: ACF values; all zeros for a constant series.
    """
    data = np.asarray(values, dtype=float)
    n = data.shape[0]
    max_lag = max(0, min(max_lag, n - 1))

    # acf divides by the variance
    if n < 2 or float(np.ptp(data)) == 0.0:
        return np.zeros(max_lag + 1)

    return acf(data, nlags=max_lag, fft=True)


def dominant_period(
    values: Sequence[float],
    min_lag: int = 2,
    max_lag: Optional[int] = None,
    min_strength: float = MIN_SEASONAL_STRENGTH,
) -> Optional[Tuple[int, float]]:
    """
    Infer the seasonal period as the strongest autocorrelation peak.

    A lag is a peak when its ACF exceeds the previous lag and is not below
    the next one. Only lags in [min_lag, max_lag] are considered, where
    max_lag defaults to len(values) // 2 so that two full periods fit.

    Returns:
        Optional[Tuple[int, float]]: (period, strength), or None when no
            peak reaches min_strength.
    """
    n = len(values)
    if max_lag is None:
        max_lag = n // 2
    if max_lag < min_lag:
        return None

    # One extra lag so the last candidate can be compared to its neighbour
    acf = autocorrelation(values, max_lag + 1)

    best: Optional[Tuple[int, float]] = None
    for lag in range(max(min_lag, 1), min(max_lag, acf.shape[0] - 2) + 1):
        value = acf[lag]
        if value > acf[lag - 1] and value >= acf[lag + 1] and value >= min_strength:
            if best is None or value > best[1]:
                best = (lag, float(value))
    return best


def linear_slope(values: Sequence[float]) -> float:
    """Least-squares slope of values against their index."""
    if len(values) < 2:
        return 0.0
    data = np.asarray(values, dtype=float)
    slope, _ = np.polyfit(np.arange(data.shape[0], dtype=float), data, 1)
    return float(slope)
