from __future__ import annotations

from collections import defaultdict
from typing import Dict, Tuple

from prometheus_client import Counter, Gauge, Histogram

_PROVIDER_CALLS = Counter(
    "context_provider_calls_total",
    "Provider calls made during aggregation",
    labelnames=["provider", "method", "outcome"],
)
_PROVIDER_LATENCY = Histogram(
    "context_provider_call_duration_ms",
    "Provider call duration in ms",
    labelnames=["provider", "method"],
    buckets=(10, 50, 100, 200, 500, 1000, 3000, 5000, 10000),
)
_POOL_SIZE = Gauge(
    "context_provider_pool_size",
    "Number of live provider clients in the connection pool",
)

OUTCOME_SUCCESS = "success"
OUTCOME_EMPTY = "empty"
OUTCOME_NOT_APPLICABLE = "not_applicable"
OUTCOME_FAILURE = "failure"


class ProviderMetricsCollector:
    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        # In-memory mirror to provide summaries without scraping Prometheus
        self._call_totals: Dict[Tuple[str, str, str], int] = defaultdict(int)

    def record_provider_call(
        self, provider: str, method: str, outcome: str, duration_ms: float
    ) -> None:
        if not self.enabled:
            return
        _PROVIDER_CALLS.labels(provider=provider, method=method, outcome=outcome).inc()
        _PROVIDER_LATENCY.labels(provider=provider, method=method).observe(duration_ms)
        self._call_totals[(provider, method, outcome)] += 1

    def record_pool_size(self, size: int) -> None:
        if not self.enabled:
            return
        _POOL_SIZE.set(size)

    def call_count(self, provider: str, method: str, outcome: str) -> int:
        return self._call_totals.get((provider, method, outcome), 0)

    def summary(self) -> Dict[str, int]:
        return {
            f"{provider}:{method}:{outcome}": count
            for (provider, method, outcome), count in self._call_totals.items()
        }
