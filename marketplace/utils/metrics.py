"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
orders_created_total = Counter(
    "orders_created_total",
    "Total number of orders created",
)

payment_events_total = Counter(
    "payment_events_total",
    "Payment webhook events by outcome",
    ["outcome"],  # applied, dropped, duplicate
)

access_decisions_total = Counter(
    "access_decisions_total",
    "Entitlement decisions by resulting access level",
    ["level"],
)

access_fail_closed_total = Counter(
    "access_fail_closed_total",
    "Entitlement lookups that failed and fell back to preview-only",
)

preview_renders_total = Counter(
    "preview_renders_total",
    "Protected previews rasterised",
)

payouts_created_total = Counter(
    "payouts_created_total",
    "Payout records created",
)

payout_amount_total = Counter(
    "payout_amount_total",
    "Sum of creator payout amounts (minor units)",
)

print_jobs_total = Counter(
    "print_jobs_total",
    "Print jobs sent to the fulfillment partner",
    ["status"],  # submitted, failed
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
preview_render_duration_seconds = Histogram(
    "preview_render_duration_seconds",
    "Preview rasterisation duration",
    buckets=[0.05, 0.1, 0.25, 0.5, 1, 2, 5],
)

print_partner_request_duration_seconds = Histogram(
    "print_partner_request_duration_seconds",
    "Print partner API request duration",
    buckets=[0.1, 0.5, 1, 2, 5, 10],
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
