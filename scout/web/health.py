"""Health check endpoints for monitoring and readiness probes."""

import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy import text

log = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> JSONResponse:
    """
    Basic health check endpoint.

    Returns:
        JSON with status and uptime information
    """
    uptime = int(time.time() - request.app.state.started_at)
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": uptime,
        "service": "steam-scout"
    })


@router.get("/readiness")
def readiness_check(request: Request) -> Response:
    """
    Kubernetes-style readiness probe.

    Returns:
        200 if the database answers
        503 if service is not ready
    """
    try:
        with request.app.state.session_factory() as session:
            session.execute(text("SELECT 1"))
        return Response(status_code=200, content="Ready")
    except Exception as e:
        log.warning(f"Readiness check failed: {e!r}")
        return Response(status_code=503, content=f"Not ready: {e}")


@router.get("/liveness")
async def liveness_check() -> Response:
    """Kubernetes-style liveness probe."""
    return Response(status_code=200, content="Alive")


@router.get("/metrics")
async def metrics(request: Request) -> Dict[str, Any]:
    """
    Basic metrics endpoint.

    Returns:
        Uptime, cache size and active rate-limit keys per limiter
    """
    state = request.app.state
    uptime = int(time.time() - state.started_at)
    return {
        "uptime_seconds": uptime,
        "start_time": state.started_at,
        "cache_entries": len(state.proxy.cache),
        "rate_limit_keys": state.limiters.stats(),
    }
