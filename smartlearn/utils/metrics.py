"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
webhook_notifications_total = Counter(
    "webhook_notifications_total",
    "PayHere notify callbacks by status and outcome",
    ["status", "outcome"],  # outcome: applied, noop, stale, rejected
)

enrollment_transitions_total = Counter(
    "enrollment_transitions_total",
    "Enrollment state transitions",
    ["transition", "source"],  # source: manual, webhook, verify
)

payments_created_total = Counter(
    "payments_created_total",
    "Payments created",
    ["method"],
)

certificates_issued_total = Counter(
    "certificates_issued_total",
    "Certificates created on first completion",
)

certificate_artifacts_total = Counter(
    "certificate_artifacts_total",
    "Certificate PDF generation attempts",
    ["outcome"],  # ok, failed
)

deliveries_created_total = Counter(
    "deliveries_created_total",
    "Deliveries created after approval",
)

best_effort_failures_total = Counter(
    "best_effort_failures_total",
    "Failures of best-effort side effects (logged, not surfaced)",
    ["effect"],  # notification, delivery, email
)


router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
