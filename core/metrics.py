"""
Core Module - Metrics.

============================================================
PURPOSE
============================================================
Injected metrics collection for the decision engines.

Engines never touch global counters. They receive a MetricsSink
and emit through it. Emission is fire-and-forget: a failing sink
must never change a decision.

METRIC TYPES:
- Counter: cumulative totals (evaluations, blocked launches)
- Histogram: distributions (latency, remediation task counts)

============================================================
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Protocol


logger = logging.getLogger(__name__)


# ============================================================
# SINK PROTOCOL
# ============================================================

class MetricsSink(Protocol):
    """Destination for engine metrics."""

    def increment_counter(self, name: str, value: int = 1) -> None:
        """Increment a named counter."""
        ...

    def record_histogram(self, name: str, value: float) -> None:
        """Record one observation of a named histogram."""
        ...


# ============================================================
# HISTOGRAM STATS
# ============================================================

@dataclass
class HistogramStats:
    """Running statistics for one histogram."""

    count: int = 0
    total: float = 0.0
    min_value: float = float("inf")
    max_value: float = 0.0

    @property
    def average(self) -> float:
        """Mean of all observations."""
        return self.total / self.count if self.count > 0 else 0.0

    def record(self, value: float) -> None:
        """Record an observation."""
        self.count += 1
        self.total += value
        self.min_value = min(self.min_value, value)
        self.max_value = max(self.max_value, value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "total": self.total,
            "min": self.min_value if self.count else 0.0,
            "max": self.max_value,
            "avg": self.average,
        }


# ============================================================
# IN-MEMORY COLLECTOR
# ============================================================

class InMemoryMetricsCollector:
    """
    Thread-safe in-process metrics sink.

    One lock guards every counter and histogram in the collector.
    Values only grow; they are reset by discarding the collector.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {}
        self._histograms: Dict[str, HistogramStats] = {}
        self._started_at = datetime.now(timezone.utc)

    def increment_counter(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value

    def record_histogram(self, name: str, value: float) -> None:
        with self._lock:
            stats = self._histograms.get(name)
            if stats is None:
                stats = HistogramStats()
                self._histograms[name] = stats
            stats.record(float(value))

    def get_counter(self, name: str) -> int:
        """Current value of a counter (0 if never incremented)."""
        with self._lock:
            return self._counters.get(name, 0)

    def get_histogram(self, name: str) -> HistogramStats:
        """Copy of a histogram's statistics."""
        with self._lock:
            stats = self._histograms.get(name)
            if stats is None:
                return HistogramStats()
            return HistogramStats(
                count=stats.count,
                total=stats.total,
                min_value=stats.min_value,
                max_value=stats.max_value,
            )

    def snapshot(self) -> Dict[str, Any]:
        """Point-in-time copy of every metric."""
        with self._lock:
            return {
                "started_at": self._started_at.isoformat(),
                "counters": dict(self._counters),
                "histograms": {
                    name: stats.to_dict()
                    for name, stats in self._histograms.items()
                },
            }


class NullMetricsSink:
    """Discards everything. Default when no sink is injected."""

    def increment_counter(self, name: str, value: int = 1) -> None:
        return None

    def record_histogram(self, name: str, value: float) -> None:
        return None


__all__ = [
    "MetricsSink",
    "HistogramStats",
    "InMemoryMetricsCollector",
    "NullMetricsSink",
]
