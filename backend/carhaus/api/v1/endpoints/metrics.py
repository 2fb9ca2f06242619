"""
Prometheus metrics endpoint.

Endpoints:
- /metrics - Prometheus text format metrics for scraping
- /metrics/summary - Human-readable JSON metrics summary
"""

from fastapi import APIRouter

from carhaus.core.metrics import generate_metrics_response, get_metrics_summary

router = APIRouter()


@router.get("")
async def get_metrics():
    """All registered metrics in Prometheus text format."""
    return generate_metrics_response()


@router.get("/summary")
async def get_metrics_summary_endpoint():
    return get_metrics_summary()
