"""Latency monitor for search requests."""

import logging
import time

from jobsearch.schemas.search import SearchQuery

logger = logging.getLogger(__name__)


class LatencyMonitor:
    """Measure wall-clock time of a request and warn when it is slow.

    Used as a context manager around the whole request. The normalized
    query can be attached once it is known; it is included in the slow
    request warning as structured `extra` data. The monitor never raises
    and never suppresses the wrapped block's exception.

    Example:
        with LatencyMonitor(threshold_ms=300, operation="search") as monitor:
            monitor.query = query
            ...
        response.headers["X-Search-Time-Ms"] = f"{monitor.elapsed_ms:.2f}"
    """

    def __init__(
        self,
        threshold_ms: float = 300.0,
        operation: str = "search",
        query: SearchQuery | None = None,
    ):
        self.threshold_ms = threshold_ms
        self.operation = operation
        self.query = query
        self.elapsed_ms: float | None = None
        self._start: float | None = None

    def __enter__(self) -> "LatencyMonitor":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.elapsed_ms = round((time.perf_counter() - self._start) * 1000, 2)
        self._report(failed=exc_type is not None)
        return False

    @property
    def is_slow(self) -> bool:
        return self.elapsed_ms is not None and self.elapsed_ms > self.threshold_ms

    def _report(self, failed: bool) -> None:
        try:
            if self.is_slow:
                query = self.query.log_context() if self.query is not None else None
                logger.warning(
                    f"Slow {self.operation} request: {self.elapsed_ms}ms "
                    f"(threshold {self.threshold_ms}ms)",
                    extra={
                        "operation": self.operation,
                        "elapsed_ms": self.elapsed_ms,
                        "threshold_ms": self.threshold_ms,
                        "query": query,
                        "failed": failed,
                    },
                )
            else:
                logger.debug(f"{self.operation} request took {self.elapsed_ms}ms")
        except Exception as e:
            logger.error(f"Latency reporting failed: {type(e).__name__}: {e}")
