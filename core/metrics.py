"""Prometheus metrics for the LLM routing layer.

Metrics are registered on the default prometheus_client registry so a host
application exposing ``/metrics`` picks them up without extra wiring.
Updating a metric never changes routing behaviour.
"""
from typing import Optional

import prometheus_client as prom

CACHE_LOOKUPS = prom.Counter(
    'llm_cache_lookups_total',
    'Response cache lookups by result',
    ['result'],  # hit, miss, corrupt, disabled
)

PROVIDER_ATTEMPTS = prom.Counter(
    'llm_provider_attempts_total',
    'Provider attempts by outcome',
    ['provider', 'outcome'],  # success, rate_limit, timeout, api_error, unavailable
)

PROVIDER_LATENCY = prom.Histogram(
    'llm_provider_latency_seconds',
    'Latency of provider generate calls',
    ['provider'],
    buckets=(0.25, 0.5, 1, 2.5, 5, 10, 30, 60, 120),
)

CHAIN_EXHAUSTED = prom.Counter(
    'llm_chain_exhausted_total',
    'Requests for which every provider was unavailable or failed',
)


def record_cache_lookup(result: str) -> None:
    CACHE_LOOKUPS.labels(result=result).inc()


def record_attempt(provider: str, outcome: str, latency_s: Optional[float] = None) -> None:
    PROVIDER_ATTEMPTS.labels(provider=provider, outcome=outcome).inc()
    if latency_s is not None:
        PROVIDER_LATENCY.labels(provider=provider).observe(latency_s)


def record_exhausted() -> None:
    CHAIN_EXHAUSTED.inc()
