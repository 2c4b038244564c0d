import logging

from fastapi import APIRouter
from fastapi.responses import Response

from productlens.config import settings
from productlens.core.metrics import get_metrics, get_metrics_content_type

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/health",
    summary="Liveness check",
    description="Basic liveness probe that returns HTTP 200 if the application process is running.",
)
async def liveness():
    """Liveness probe: 200 while the process is running."""
    return {"status": "healthy"}


@router.get(
    "/health/ready",
    summary="Readiness check",
    description="Readiness probe reporting the shared browser state. The browser is launched lazily on the first dynamic render, so 'not launched' is still ready.",
)
async def readiness():
    from productlens.services.browser import browser_manager

    checks = {
        "browser": "launched" if browser_manager.is_ready else "not launched",
        "browser_mode": browser_manager.mode,
    }
    return {"status": "ready", "checks": checks}


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose application metrics in Prometheus exposition format. Returns HTTP 404 if metrics collection is disabled.",
)
async def metrics():
    """Prometheus metrics endpoint."""
    if not settings.METRICS_ENABLED:
        return Response(content="Metrics disabled", status_code=404)

    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type(),
    )
