"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
key_rotations_total = Counter(
    "key_rotations_total",
    "Total number of generated keys",
    ["reason"],  # initial, expired, reset
)

key_disclosures_total = Counter(
    "key_disclosures_total",
    "Total key read attempts",
    ["path", "outcome"],  # path: interactive, http; outcome: granted, denied
)

qualifying_events_total = Counter(
    "qualifying_events_total",
    "Total counted qualifying messages",
)

spam_timeouts_total = Counter(
    "spam_timeouts_total",
    "Total anti-spam timeouts applied",
)

moderation_actions_total = Counter(
    "moderation_actions_total",
    "Total moderation actions",
    ["action", "status"],  # status: ok, failed
)


router = APIRouter()


@router.get("/metrics")
def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
