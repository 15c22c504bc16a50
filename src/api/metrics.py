"""Metrics service for tracking recommendation performance.

Singleton service to track recommendation requests, fallbacks and latency.
"""

import threading
from typing import Dict


class MetricsService:
    """Singleton service for tracking recommendation metrics.

    Thread-safe counters and latency tracking for recommendation requests.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        """Create singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(MetricsService, cls).__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize metrics counters."""
        if self._initialized:
            return

        self._lock = threading.Lock()
        self._reset_counters()
        self._initialized = True

    def _reset_counters(self) -> None:
        self._request_count = 0
        self._fallback_count = 0
        self._empty_count = 0
        self._total_latency_ms = 0.0
        self._min_latency_ms = float('inf')
        self._max_latency_ms = 0.0

    def record_recommendation(
        self, latency_ms: float, num_results: int, fallback: bool = False
    ) -> None:
        """Record a recommendation request.

        Args:
            latency_ms: Latency in milliseconds
            num_results: Number of recommendations returned
            fallback: Whether the fallback strategy produced the results
        """
        with self._lock:
            self._request_count += 1
            self._total_latency_ms += latency_ms

            if fallback:
                self._fallback_count += 1
            if num_results == 0:
                self._empty_count += 1

            if latency_ms < self._min_latency_ms:
                self._min_latency_ms = latency_ms

            if latency_ms > self._max_latency_ms:
                self._max_latency_ms = latency_ms

    def get_metrics(self) -> Dict:
        """Get current metrics.

        Returns:
            Dictionary with metrics including:
            - request_count: Total number of recommendation requests
            - fallback_count: Requests answered by the fallback strategy
            - empty_count: Requests that returned no recommendations
            - average_latency_ms: Average latency in milliseconds
            - min_latency_ms: Minimum latency observed
            - max_latency_ms: Maximum latency observed
        """
        with self._lock:
            avg_latency = (
                self._total_latency_ms / self._request_count
                if self._request_count > 0
                else 0.0
            )

            return {
                "request_count": self._request_count,
                "fallback_count": self._fallback_count,
                "empty_count": self._empty_count,
                "average_latency_ms": round(avg_latency, 2),
                "min_latency_ms": round(self._min_latency_ms, 2) if self._min_latency_ms != float('inf') else 0.0,
                "max_latency_ms": round(self._max_latency_ms, 2),
            }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._reset_counters()


# Global singleton instance
metrics_service = MetricsService()
