"""
Import Run Performance Tracking

Provides automatic performance and health monitoring for import scripts:
    - RunMetricsTracker: Tracks metrics for a single script execution
    - track_run_performance(): Context manager for automatic tracking
    - get_current_tracker(): Access tracker from provider clients

Provider clients report API calls, retries and rate limit hits to the
active tracker; the executor logs the summary when the run ends.
"""

import time
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from engmetrics.core.logging_config import get_logger, log_with_context

logger = get_logger(__name__)

# Global tracker instance for provider client access
_current_tracker: "RunMetricsTracker | None" = None

RATE_LIMIT_WARNING_THRESHOLD = 3


class RunMetricsTracker:
    """
    Tracks performance and health metrics for a single import script run.

    Attributes:
        script_key: "{data source}:{resource}" identifier (e.g., "GITHUB:issue")
        start_time: Timestamp when tracker was started (None before start())
        execution_time_ms: Total execution time in milliseconds
        success: Whether the script completed without a fatal error
        container_count: Number of containers (repositories/projects) processed
        api_call_count: Number of API requests made
        rate_limit_hits: Number of 429 rate limit responses
        retry_count: Number of transient error retries
        error_message: Error text if failed (None if successful)
        error_type: Exception class name if failed (None if successful)

    Example:
        >>> tracker = RunMetricsTracker("GITHUB:issue")
        >>> tracker.start()
        >>> tracker.record_api_call()
        >>> tracker.end(success=True)
        >>> tracker.api_call_count
        1
    """

    def __init__(self, script_key: str):
        self.script_key = script_key
        self.start_time: float | None = None
        self.execution_time_ms: float = 0
        self.success: bool = False
        self.container_count: int = 0
        self.api_call_count: int = 0
        self.rate_limit_hits: int = 0
        self.retry_count: int = 0
        self.error_message: str | None = None
        self.error_type: str | None = None

    def start(self) -> None:
        """Record the start timestamp."""
        self.start_time = time.time()
        logger.debug(f"Started tracking: {self.script_key}")

    def end(self, success: bool, error: Exception | None = None) -> None:
        """
        End tracking and calculate execution time.

        Args:
            success: Whether the script completed successfully
            error: Exception if failed (None if successful)
        """
        if self.start_time is not None:
            self.execution_time_ms = (time.time() - self.start_time) * 1000

        self.success = success

        if error:
            self.error_message = str(error)
            self.error_type = type(error).__name__

    def record_api_call(self) -> None:
        self.api_call_count += 1

    def record_rate_limit_hit(self) -> None:
        """
        Record a rate limit hit (429 response).

        Logs a warning once the run exceeds the rate limit threshold.
        """
        self.rate_limit_hits += 1
        if self.rate_limit_hits > RATE_LIMIT_WARNING_THRESHOLD:
            log_with_context(
                logger,
                "warning",
                f"Rate limit threshold exceeded for {self.script_key}",
                script=self.script_key,
                rate_limit_hits=self.rate_limit_hits,
            )

    def record_retry(self) -> None:
        self.retry_count += 1

    def to_dict(self) -> dict[str, Any]:
        """
        Convert metrics to dictionary for JSON serialization.

        Returns:
            Dictionary with all metric fields
        """
        return {
            "timestamp": datetime.now(UTC).isoformat(),
            "script": self.script_key,
            "execution_time_ms": round(self.execution_time_ms, 2),
            "success": self.success,
            "container_count": self.container_count,
            "api_call_count": self.api_call_count,
            "rate_limit_hits": self.rate_limit_hits,
            "retry_count": self.retry_count,
            "error_message": self.error_message,
            "error_type": self.error_type,
        }


def get_current_tracker() -> "RunMetricsTracker | None":
    """
    Get the currently active tracker (for provider client use).

    Returns:
        Active tracker or None if no script run is being tracked
    """
    return _current_tracker


@contextmanager
def track_run_performance(script_key: str) -> Generator[RunMetricsTracker, None, None]:
    """
    Context manager for automatic import run performance tracking.

    Tracks execution time, success/failure state, and API usage reported by
    provider clients. The summary is logged as a structured record when the
    block exits; exceptions are re-raised unchanged.

    Args:
        script_key: "{data source}:{resource}" identifier

    Yields:
        RunMetricsTracker for the duration of the block

    Example:
        with track_run_performance("JIRA:issue") as tracker:
            await script.run(storage, context)
    """
    global _current_tracker

    tracker = RunMetricsTracker(script_key)
    previous = _current_tracker
    _current_tracker = tracker
    tracker.start()

    try:
        yield tracker
    except Exception as e:
        tracker.end(success=False, error=e)
        raise
    else:
        tracker.end(success=True)
    finally:
        _current_tracker = previous
        log_with_context(logger, "info", f"Run metrics for {script_key}", **tracker.to_dict())
