# routes_metrics.py

"""Prometheus metrics and /metrics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

# Counters
http_requests_total = Counter(
    "http_requests_total", "Total HTTP requests", ["path", "method", "status"]
)

orders_created_total = Counter(
    "orders_created_total", "Total orders created", ["channel"]
)
orders_created_total.labels(channel="pos").inc(0)

order_transitions_total = Counter(
    "order_transitions_total", "Total committed status transitions", ["status"]
)
order_transitions_total.labels(status="paid").inc(0)

order_cas_conflicts_total = Counter(
    "order_cas_conflicts_total", "Total compare-and-swap conflicts on orders"
)
order_cas_conflicts_total.inc(0)

order_contention_total = Counter(
    "order_contention_total", "Total order writes abandoned after retries"
)
order_contention_total.inc(0)

order_numbers_degraded_total = Counter(
    "order_numbers_degraded_total",
    "Total order numbers issued without the daily counter",
)
order_numbers_degraded_total.inc(0)

client_total_mismatch_total = Counter(
    "client_total_mismatch_total",
    "Total orders whose client supplied total differed from the computed one",
)
client_total_mismatch_total.inc(0)

payment_intents_total = Counter(
    "payment_intents_total", "Total payment intent attempts", ["result"]
)
payment_intents_total.labels(result="ok").inc(0)

payment_verifications_total = Counter(
    "payment_verifications_total", "Total gateway payment verifications", ["result"]
)
payment_verifications_total.labels(result="ok").inc(0)
payment_verifications_total.labels(result="invalid_signature").inc(0)

payments_recorded_total = Counter(
    "payments_recorded_total", "Total payments appended to orders", ["method"]
)
payments_recorded_total.labels(method="cash").inc(0)

router = APIRouter()


@router.get("/metrics")
async def metrics_endpoint() -> Response:
    """Expose Prometheus metrics."""
    http_requests_total.labels(path="/metrics", method="GET", status="200").inc(0)
    data = generate_latest()
    return Response(data, media_type=CONTENT_TYPE_LATEST)
