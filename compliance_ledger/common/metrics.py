"""
Prometheus Metrics.

Metrics Categories:
1. Ledger Metrics - decisions created, duplicates, supersessions
2. Audit Metrics - aggregations, source failures, latency

All metrics follow Prometheus naming conventions:
- snake_case names
- Suffixes: _total (counters), _seconds (durations)
- Labels for dimensions
"""

from functools import wraps
from typing import Optional
import asyncio
import time

from prometheus_client import (
    Counter,
    Histogram,
    REGISTRY,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# ============================================================================
# LEDGER METRICS
# ============================================================================

DECISIONS_CREATED = Counter(
    "compliance_ledger_decisions_created_total",
    "Total number of compliance decisions written to the ledger",
    ["step", "outcome"],
)

DUPLICATE_DECISIONS = Counter(
    "compliance_ledger_duplicate_decisions_total",
    "Submissions resolved to an existing decision by duplicate detection",
    ["step"],
)

DECISIONS_SUPERSEDED = Counter(
    "compliance_ledger_decisions_superseded_total",
    "Supersession links recorded",
    ["status"],  # applied / rejected
)

DECISION_CREATE_DURATION = Histogram(
    "compliance_ledger_decision_create_seconds",
    "Time to evaluate and record a compliance decision",
    ["step"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

# ============================================================================
# AUDIT METRICS
# ============================================================================

AUDIT_AGGREGATIONS = Counter(
    "compliance_ledger_audit_aggregations_total",
    "Enterprise audit aggregations",
    ["status"],  # success / failed
)

AUDIT_SOURCE_FAILURES = Counter(
    "compliance_ledger_audit_source_failures_total",
    "Audit source read failures, timeouts included",
    ["source"],
)

AUDIT_AGGREGATION_DURATION = Histogram(
    "compliance_ledger_audit_aggregation_seconds",
    "Time to fan out, merge and sort enterprise audit entries",
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


# ============================================================================
# DECORATORS
# ============================================================================


def track_time(metric: Histogram, labels: Optional[dict] = None):
    """Decorator to track coroutine execution time."""
    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                duration = time.perf_counter() - start
                if labels:
                    metric.labels(**labels).observe(duration)
                else:
                    metric.observe(duration)

        if not asyncio.iscoroutinefunction(func):
            raise TypeError("track_time only wraps coroutine functions")
        return async_wrapper

    return decorator


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================


def record_decision_created(step: str, outcome: str, duration_seconds: float) -> None:
    """Record decision creation metrics."""
    DECISIONS_CREATED.labels(step=step, outcome=outcome).inc()
    DECISION_CREATE_DURATION.labels(step=step).observe(duration_seconds)


def record_duplicate(step: str) -> None:
    DUPLICATE_DECISIONS.labels(step=step).inc()


def record_supersession(applied: bool) -> None:
    DECISIONS_SUPERSEDED.labels(status="applied" if applied else "rejected").inc()


def get_metrics() -> bytes:
    """Get all metrics in Prometheus text format."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST
