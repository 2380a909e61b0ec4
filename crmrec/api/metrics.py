"""Latency tracking for recommendation strategies.

Singleton service keeping call counts and latency per strategy name.
"""

import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterator


class _StrategyStats:
    __slots__ = ("count", "total_ms", "min_ms", "max_ms")

    def __init__(self):
        self.count = 0
        self.total_ms = 0.0
        self.min_ms = float("inf")
        self.max_ms = 0.0

    def as_dict(self) -> Dict:
        return {
            "count": self.count,
            "average_latency_ms": round(self.total_ms / self.count, 2) if self.count else 0.0,
            "min_latency_ms": round(self.min_ms, 2) if self.count else 0.0,
            "max_latency_ms": round(self.max_ms, 2),
        }


class MetricsService:
    """Singleton service for tracking per-strategy call metrics."""

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._stats_lock = threading.Lock()
        self._stats: Dict[str, _StrategyStats] = {}
        self._initialized = True

    def record(self, strategy: str, latency_ms: float) -> None:
        """Record one call of ``strategy`` that took ``latency_ms``."""
        with self._stats_lock:
            stats = self._stats.setdefault(strategy, _StrategyStats())
            stats.count += 1
            stats.total_ms += latency_ms
            stats.min_ms = min(stats.min_ms, latency_ms)
            stats.max_ms = max(stats.max_ms, latency_ms)

    @contextmanager
    def track(self, strategy: str) -> Iterator[None]:
        """Time the enclosed block and record it under ``strategy``."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record(strategy, (time.perf_counter() - start) * 1000)

    def get_metrics(self) -> Dict:
        """Totals across strategies plus a breakdown per strategy."""
        with self._stats_lock:
            per_strategy = {name: s.as_dict() for name, s in sorted(self._stats.items())}
            total_calls = sum(s.count for s in self._stats.values())

        return {"total_calls": total_calls, "strategies": per_strategy}

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._stats_lock:
            self._stats.clear()


# Global singleton instance
metrics_service = MetricsService()
