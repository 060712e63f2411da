import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from eyedoo.persistence import ping_store

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Liveness check.

    Returns 503 during graceful shutdown so the load balancer stops routing traffic.
    """
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(
            status_code=503,
            content={"status": "shutting_down", "service": "eyedoo-timeline"},
        )
    return {"status": "healthy", "service": "eyedoo-timeline"}


@router.get("/ready")
async def readiness_check():
    """Readiness check - verifies the timeline store answers."""
    checks = {"timeline_store": False}

    try:
        checks["timeline_store"] = await ping_store()
    except Exception as e:
        logger.error("store_health_check_failed", error=str(e), error_type=type(e).__name__)

    all_healthy = all(checks.values())
    status_code = 200 if all_healthy else 503

    return JSONResponse(
        status_code=status_code,
        content={"status": "ready" if all_healthy else "degraded", "checks": checks},
    )
