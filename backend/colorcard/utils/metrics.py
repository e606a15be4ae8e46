"""
Color Card Metrics Collection
In-process metrics collection for extraction and export monitoring.
"""
import time
from collections import defaultdict, deque, Counter
from typing import Any, Deque, Dict, Iterable, Optional
from threading import Lock

# Timing samples kept per operation; older samples are dropped
MAX_TIMING_SAMPLES = 1000


class MetricsCollector:
    """Simple in-process metrics collector."""

    def __init__(self, max_samples: int = MAX_TIMING_SAMPLES):
        """Initialize metrics collector."""
        self.max_samples = max_samples
        self._lock = Lock()
        self._counters: Dict[str, int] = Counter()
        self._timings: Dict[str, Deque[float]] = defaultdict(self._new_series)
        self._start_time = time.time()

    def _new_series(self) -> Deque[float]:
        return deque(maxlen=self.max_samples)

    def increment_extraction_count(self):
        """Increment color extraction counter."""
        with self._lock:
            self._counters["extract_requests_total"] += 1

    def increment_extraction_failure(self, error_code: str):
        """Increment extraction failure counter by error code."""
        with self._lock:
            self._counters[f"extract_failed_total_{error_code}"] += 1

    def increment_export_count(self, profile: str):
        """Increment export counter for a size profile."""
        with self._lock:
            self._counters["export_requests_total"] += 1
            self._counters[f"export_profile_total_{profile}"] += 1

    def increment_export_failure(self, error_code: str):
        """Increment export failure counter by error code."""
        with self._lock:
            self._counters[f"export_failed_total_{error_code}"] += 1

    def increment_gate_timeout(self):
        """Increment readiness-gate timeout escape counter."""
        with self._lock:
            self._counters["gate_timeout_total"] += 1

    def record_timing(self, operation: str, duration_ms: float):
        """Record timing for an operation."""
        with self._lock:
            self._timings[f"{operation}_duration_ms"].append(duration_ms)

    def get_counters(self) -> Dict[str, int]:
        """Get current counter values."""
        with self._lock:
            return dict(self._counters)

    def get_timing_stats(self) -> Dict[str, Dict[str, float]]:
        """Get timing statistics."""
        with self._lock:
            stats = {}
            for operation, timings in self._timings.items():
                if timings:
                    stats[operation] = {
                        "count": len(timings),
                        "mean": sum(timings) / len(timings),
                        "min": min(timings),
                        "max": max(timings),
                        "p50": self._percentile(timings, 50),
                        "p95": self._percentile(timings, 95)
                    }
            return stats

    def get_uptime_seconds(self) -> float:
        """Get service uptime in seconds."""
        return time.time() - self._start_time

    def get_summary(self) -> Dict[str, Any]:
        """Get complete metrics summary."""
        return {
            "uptime_seconds": self.get_uptime_seconds(),
            "counters": self.get_counters(),
            "timing_stats": self.get_timing_stats()
        }

    def reset(self):
        """Reset all metrics (for testing)."""
        with self._lock:
            self._counters.clear()
            self._timings.clear()
            self._start_time = time.time()

    @staticmethod
    def _percentile(data: Iterable[float], percentile: int) -> float:
        """Calculate percentile of data."""
        if not data:
            return 0.0

        sorted_data = sorted(data)
        k = (len(sorted_data) - 1) * percentile / 100
        f = int(k)
        c = k - f

        if f + 1 < len(sorted_data):
            return sorted_data[f] + c * (sorted_data[f + 1] - sorted_data[f])
        else:
            return sorted_data[f]


# Global metrics instance
_metrics: Optional[MetricsCollector] = None


def get_metrics() -> MetricsCollector:
    """Get or create global metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def reset_metrics():
    """Reset global metrics (for testing)."""
    global _metrics
    if _metrics is not None:
        _metrics.reset()
