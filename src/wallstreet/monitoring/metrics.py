"""In-process settlement metrics.

Counters and gauges are kept in memory and emitted through structlog by
:meth:`Metrics.log_summary`, which the scheduler calls after every tick.
"""

from __future__ import annotations

import threading
import time
from typing import Any

import structlog

logger = structlog.get_logger("wallstreet.monitoring.metrics")


class Metrics:
    """Thread-safe in-memory metrics store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}
        self._gauges: dict[str, float] = {}
        self._start_time = time.monotonic()

    def increment(self, name: str, value: int = 1) -> None:
        """Increment a counter by *value*."""
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value

    def set_gauge(self, name: str, value: float) -> None:
        """Set a gauge to an absolute value."""
        with self._lock:
            self._gauges[name] = value

    def counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def reset(self) -> None:
        """Drop all counters and gauges."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._start_time = time.monotonic()

    def snapshot(self) -> dict[str, Any]:
        """Return a point-in-time snapshot of all metrics."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "gauges": dict(self._gauges),
                "uptime_seconds": round(time.monotonic() - self._start_time, 1),
            }

    def log_summary(self) -> None:
        """Emit a structured log with all current metrics."""
        snap = self.snapshot()
        logger.info("metrics_summary", **snap)


# Singleton instance — import this from other modules.
metrics = Metrics()
