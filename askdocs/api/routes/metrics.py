"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Exposes all registered Prometheus metrics including:
    - retrieval_outcomes_total{outcome}
    - answer_tier_total{tier}, answer_tier_failures_total{tier}
    - embedding_errors_total{phase}, ingest_chunks_total{status}
    - ask_latency_ms{outcome}
    """
    metrics_output = generate_latest()
    return Response(content=metrics_output, media_type=CONTENT_TYPE_LATEST)
