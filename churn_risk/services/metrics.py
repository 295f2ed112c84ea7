"""
Prometheus collectors for the recompute job.

Exposed on /metrics by main.py; updated by ChurnRiskService after each run.
"""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

RECOMPUTE_RUNS_TOTAL = Counter(
    "churn_recompute_runs_total",
    "Churn risk recompute runs by outcome",
    labelnames=("status",),
)
RECOMPUTE_DURATION_SECONDS = Histogram(
    "churn_recompute_duration_seconds",
    "Wall time of a full churn risk recompute",
)
CONTRACTS_SCORED_TOTAL = Counter(
    "churn_contracts_scored_total",
    "Contracts scored across all recomputes",
)
CONTRACTS_BY_TIER = Gauge(
    "churn_contracts_by_tier",
    "Contracts per tier in the last successful recompute",
    labelnames=("tier",),
)


def record_recompute(status: str, duration_seconds: float) -> None:
    RECOMPUTE_RUNS_TOTAL.labels(status=status).inc()
    RECOMPUTE_DURATION_SECONDS.observe(duration_seconds)


def record_tier_counts(counts: dict[str, int]) -> None:
    total = 0
    for tier, count in counts.items():
        CONTRACTS_BY_TIER.labels(tier=tier).set(count)
        total += count
    CONTRACTS_SCORED_TOTAL.inc(total)
