from __future__ import annotations

from prometheus_client import Counter, Histogram, start_http_server

completions_total = Counter(
    "llm_core_completions_total",
    "Total completions handled by the core",
    labelnames=["provider", "status"],
)

completion_latency_seconds = Histogram(
    "llm_core_completion_latency_seconds",
    "End-to-end completion latency, retries included",
    buckets=[0.1, 0.3, 0.5, 1, 2, 5, 10, 30, 60, 120],
    labelnames=["provider"],
)

retry_attempts_total = Counter(
    "llm_core_retry_attempts_total",
    "Retried provider calls, by the failure that triggered the retry",
    labelnames=["reason"],
)

tokens_total = Counter(
    "llm_core_tokens_total",
    "Tokens reported by providers",
    labelnames=["provider", "direction"],
)

estimated_cost_usd_total = Counter(
    "llm_core_estimated_cost_usd_total",
    "Estimated spend in USD for completions with known pricing",
    labelnames=["provider"],
)


def maybe_start_metrics(*, enable: bool, bind: str, port: int) -> None:
    if not enable:
        return
    start_http_server(port, addr=bind)
