"""Prometheus exporter helpers."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

oracle_requests_total = Counter(
    "smartlook_oracle_requests_total",
    "Oracle round trips by operation and outcome.",
    ["operation", "outcome"],
)

wardrobe_items = Gauge(
    "smartlook_wardrobe_items",
    "Number of garments currently held in the wardrobe.",
)


def record_oracle_call(operation: str, outcome: str) -> None:
    """Count one oracle call; ``outcome`` is ``ok`` or an ``OracleFailure`` value."""

    oracle_requests_total.labels(operation=operation, outcome=outcome).inc()
