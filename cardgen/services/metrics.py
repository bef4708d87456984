# ─────────────────────────────────────────────────────────────────────────────
# Service Metrics — thread-safe request outcome tracking
# ─────────────────────────────────────────────────────────────────────────────
# Tracks per-outcome request counts, provider attempts/retries, and latency
# percentiles. Exposed via GET /metrics and GET /metrics/prometheus.
#
# Bounded: latency history uses deque(maxlen=1000), auto-evicts oldest.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any

# Outcome label → counter attribute. Labels double as Prometheus label values.
OUTCOMES: dict[str, str] = {
    "success": "successes",
    "busy": "busy_rejections",
    "invalid_request": "invalid_requests",
    "rate_limited": "rate_limited",
    "timeout": "timeouts",
    "provider_error": "provider_errors",
    "malformed_response": "malformed_responses",
    "configuration_error": "configuration_errors",
    "unexpected_error": "unexpected_errors",
}


@dataclass
class ServiceMetrics:
    """Thread-safe card generation metrics."""

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    requests_total: int = 0
    successes: int = 0
    busy_rejections: int = 0
    invalid_requests: int = 0
    rate_limited: int = 0
    timeouts: int = 0
    provider_errors: int = 0
    malformed_responses: int = 0
    configuration_errors: int = 0
    unexpected_errors: int = 0

    provider_attempts: int = 0
    retries: int = 0

    # Bounded -- only keeps last 1000 latencies, oldest auto-evicted
    _latency_history: deque[float] = field(default_factory=lambda: deque(maxlen=1000), repr=False)

    _start_time: float = field(default_factory=time.time, repr=False)

    def record_request(self, outcome: str, latency_ms: float | None = None) -> None:
        """Record a finished request. Latency is only kept for admitted requests."""
        attr = OUTCOMES.get(outcome)
        if attr is None:
            raise ValueError(f"Unknown outcome: {outcome!r}")
        with self._lock:
            self.requests_total += 1
            setattr(self, attr, getattr(self, attr) + 1)
            if latency_ms is not None:
                self._latency_history.append(latency_ms)

    def record_provider_attempt(self) -> None:
        with self._lock:
            self.provider_attempts += 1

    def record_retry(self) -> None:
        with self._lock:
            self.retries += 1

    def to_dict(self) -> dict[str, Any]:
        """Serialize metrics for the /metrics endpoint."""
        with self._lock:
            latencies = sorted(self._latency_history)
            n = len(latencies)
            return {
                "requests_total": self.requests_total,
                **{attr: getattr(self, attr) for attr in OUTCOMES.values()},
                "provider_attempts": self.provider_attempts,
                "retries": self.retries,
                "latency_p50_ms": round(latencies[n // 2], 1) if n else 0,
                "latency_p95_ms": round(latencies[int(n * 0.95)], 1) if n else 0,
                "latency_mean_ms": round(sum(latencies) / n, 1) if n else 0,
                "uptime_seconds": int(time.time() - self._start_time),
            }
