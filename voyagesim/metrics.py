"""
Resolution Metrics Module.

Counts cache traffic and times the external lookups made while resolving
last-mile legs:
- Timing of geocoding and directions calls
- Cache hit/miss counters per cache
- Fallback and failure counters

Usage:
    from voyagesim.metrics import metrics

    with metrics.timer("directions"):
        route = await provider.directions(start, end)

    metrics.increment("route_cache_hits")

    summary = metrics.get_summary()
"""

import logging
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class TimingStats:
    """Statistics for a timed operation."""
    name: str
    count: int = 0
    total_ms: float = 0.0
    min_ms: float = float('inf')
    max_ms: float = 0.0
    recent_ms: deque = field(default_factory=lambda: deque(maxlen=50))

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.count > 0 else 0.0

    def record(self, duration_ms: float):
        """Record a timing measurement."""
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)
        self.recent_ms.append(duration_ms)

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "avg_ms": round(self.avg_ms, 3),
            "min_ms": round(self.min_ms, 3) if self.min_ms != float('inf') else 0,
            "max_ms": round(self.max_ms, 3),
        }


class PerformanceMetrics:
    """
    Metrics collector for the resolution layer.

    All callers share the host event loop, so no locking is needed: updates
    happen between suspension points.
    """

    # Lookups slower than this are logged (ms)
    SLOW_THRESHOLD_MS = 2000.0

    def __init__(self):
        self._timings: Dict[str, TimingStats] = {}
        self._counters: Dict[str, int] = {}
        self._start_time = datetime.now()

    @contextmanager
    def timer(self, name: str):
        """
        Context manager for timing a block of code.

        Works across ``await`` inside the block; elapsed time includes the
        suspension.
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self._record_timing(name, elapsed_ms)

    def _record_timing(self, name: str, elapsed_ms: float):
        if name not in self._timings:
            self._timings[name] = TimingStats(name=name)
        self._timings[name].record(elapsed_ms)

        if elapsed_ms > self.SLOW_THRESHOLD_MS:
            logger.warning(
                f"Slow lookup: {name} took {elapsed_ms:.1f}ms "
                f"(threshold: {self.SLOW_THRESHOLD_MS}ms)"
            )

    def increment(self, name: str, amount: int = 1):
        """Increment a counter."""
        self._counters[name] = self._counters.get(name, 0) + amount

    def get_counter(self, name: str) -> int:
        """Get counter value."""
        return self._counters.get(name, 0)

    def get_timing(self, name: str) -> Optional[TimingStats]:
        """Get timing statistics for an operation."""
        return self._timings.get(name)

    def hit_ratio(self, cache_name: str) -> float:
        """Hit ratio for ``<cache_name>_cache_hits`` / ``_cache_misses`` counters."""
        hits = self.get_counter(f"{cache_name}_cache_hits")
        misses = self.get_counter(f"{cache_name}_cache_misses")
        total = hits + misses
        return hits / total if total else 0.0

    def get_summary(self) -> dict:
        """Get complete metrics summary."""
        uptime = (datetime.now() - self._start_time).total_seconds()
        return {
            "uptime_seconds": round(uptime, 1),
            "timings": {name: stats.to_dict() for name, stats in self._timings.items()},
            "counters": self._counters.copy(),
        }

    def reset(self):
        """Reset all metrics."""
        self._timings.clear()
        self._counters.clear()
        self._start_time = datetime.now()


# Global metrics instance
metrics = PerformanceMetrics()


def get_metrics() -> PerformanceMetrics:
    """Get the global metrics instance."""
    return metrics
