"""
Prometheus metrics endpoint.

Exposes /metrics endpoint for Prometheus scraping.
"""

from fastapi import APIRouter, Response

from ...monitoring.metrics import get_metrics_collector

router = APIRouter(tags=["monitoring"])


@router.get("/metrics")
async def get_metrics():
    """Prometheus metrics in text format"""
    collector = get_metrics_collector()

    return Response(
        content=collector.generate_metrics(),
        media_type=collector.content_type,
    )
