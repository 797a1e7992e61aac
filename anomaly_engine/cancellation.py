"""
Cooperative cancellation for detection runs.

A CancellationToken is shared by every column task of a run. Detectors call
raise_if_cancelled() between sub-methods; once the run deadline passes or
cancel() is called, the next checkpoint raises DetectionTimeoutError and the
column is reported as skipped instead of being silently dropped.
"""

import threading
import time
from typing import Optional

import structlog

from anomaly_engine.errors import DetectionTimeoutError

logger = structlog.get_logger(__name__)


class CancellationToken:
    """
    Thread-safe cancellation flag with an optional deadline.

    Example:
        >>> token = CancellationToken(time_budget_seconds=30.0)
        >>> token.raise_if_cancelled()  # no-op while within budget
        >>> token.cancel("caller_abort")
        >>> token.is_cancelled
        True
    """

    def __init__(self, time_budget_seconds: Optional[float] = None) -> None:
        """
        Initialize the token.

        Args:
            time_budget_seconds: Budget from now; None means no deadline.
        """
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[str] = None
        self._deadline: Optional[float] = (
            time.monotonic() + time_budget_seconds
            if time_budget_seconds is not None
            else None
        )

    @property
    def reason(self) -> Optional[str]:
        """Why the token was cancelled, if it was."""
        return self._reason

    @property
    def is_cancelled(self) -> bool:
        """Check cancellation, cancelling automatically past the deadline."""
        if not self._event.is_set() and self.remaining_seconds == 0.0:
            self.cancel("timeout")
        return self._event.is_set()

    @property
    def remaining_seconds(self) -> Optional[float]:
        """Seconds left before the deadline (None without a deadline)."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cancel(self, reason: str = "cancelled") -> None:
        """Cancel the run. The first reason given is kept."""
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
        logger.info("detection_run_cancelled", reason=reason)

    def raise_if_cancelled(self, source: Optional[str] = None) -> None:
        """
        Cancellation checkpoint.

        Args:
            source: Column being processed (for the error message).

        Raises:
            DetectionTimeoutError: If the run was cancelled or is out of time.
        """
        if self.is_cancelled:
            raise DetectionTimeoutError(
                f"Detection cancelled ({self._reason})"
                + (f" while processing {source}" if source else "")
            )
