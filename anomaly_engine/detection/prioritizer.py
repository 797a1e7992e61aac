"""
Anomaly prioritizer.

Orders resolved anomalies for presentation:
    1. severity descending (HIGH > MEDIUM > LOW)
    2. score descending
    3. time window start descending (most recent first)

Anomalies equal on all three keys keep their input order.

Example:
    >>> ranked = prioritize(anomalies)
    >>> ranked[0].severity
    <Severity.HIGH: 'HIGH'>
"""

from typing import Iterable, List

from anomaly_engine.models.anomaly import Anomaly


def prioritize(anomalies: Iterable[Anomaly]) -> List[Anomaly]:
    """
    Sort anomalies by severity, score and recency.

    Args:
        anomalies: Resolved anomalies in any order.

    Returns:
        List[Anomaly]: New list in priority order.
    """
    # sorted() is stable, and reverse=True keeps ties in input order
    return sorted(
        anomalies,
        key=lambda a: (a.severity.rank, a.score, a.time_window.start),
        reverse=True,
    )
