import json
import logging
import os

from fastapi import APIRouter
from fastapi.responses import Response

from siteflow.config import settings
from siteflow.core.metrics import get_metrics, get_metrics_content_type
from siteflow.services.engine import DockerRuntime
from siteflow.services.reports import ensure_dir

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def liveness():
    """Liveness probe: returns 200 if the process is running."""
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness():
    """Readiness probe: checks the reports directory and the Docker runtime.

    Docker being unavailable does not fail readiness: scans still run and
    fall back to the target URL alone.
    """
    checks = {}

    try:
        reports_dir = ensure_dir(settings.REPORTS_DIR)
        checks["reports_dir"] = "ok" if os.access(reports_dir, os.W_OK) else "not writable"
    except OSError as e:
        checks["reports_dir"] = f"error: {e}"

    try:
        available = await DockerRuntime().is_available()
        checks["docker"] = "ok" if available else "unavailable (fallback discovery)"
    except Exception as e:
        checks["docker"] = f"error: {e}"

    ready = checks["reports_dir"] == "ok"
    return Response(
        content=json.dumps({"status": "ready" if ready else "not ready", "checks": checks}),
        status_code=200 if ready else 503,
        media_type="application/json",
    )


@router.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    if not settings.METRICS_ENABLED:
        return Response(content="Metrics disabled", status_code=404)

    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type(),
    )
