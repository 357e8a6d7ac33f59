# deckshare/observability/metrics.py
# prometheus instrumentation for the render pipeline and id allocation

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

RENDER_REQUESTS = Counter(
    "deckshare_render_requests_total",
    "Deck image renders by outcome",
    ["outcome"],  # success | failed | error
)
RENDER_BACKEND_RESULTS = Counter(
    "deckshare_render_backend_results_total",
    "Render backend results by backend and result",
    ["backend", "result"],  # won | failed | rejected
)
RENDER_DURATION = Histogram(
    "deckshare_render_duration_seconds",
    "Time from render start to final store write",
    buckets=(0.25, 0.5, 1, 2, 5, 10, 20, 30, 60),
)
SHORTID_ROUNDS = Histogram(
    "deckshare_shortid_allocation_rounds",
    "Candidate batches needed to find a free short id",
    buckets=(1, 2, 3, 4, 6, 8, 12),
)
SHORTID_COLLISIONS = Counter(
    "deckshare_shortid_insert_collisions_total",
    "Inserts that lost a short id race and were retried",
)
IMAGE_POLLS = Counter(
    "deckshare_image_polls_total",
    "Image poll results",
    ["result"],  # hit | idle | timeout
)
STALE_RENDERS_RELEASED = Counter(
    "deckshare_stale_renders_released_total",
    "Render flags cleared by the stale-render sweep",
)


router = APIRouter(tags=["Metrics"])


@router.get("/metrics", include_in_schema=False)
async def prometheus_metrics() -> Response:
    """// expose /metrics"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
