import logging

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError

from caseflow.core.config import settings
from caseflow.core.observability import metrics_registry

logger = logging.getLogger("caseflow.health")

router = APIRouter()

# mounted without the API prefix
root_router = APIRouter()


@root_router.get("/health")
async def health():
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
    }


@router.get("/health/live")
async def liveness():
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(request: Request):
    checks = {"database": "unhealthy"}
    try:
        await request.app.state.db.ping()
        checks["database"] = "healthy"
    except (SQLAlchemyError, OSError) as exc:
        logger.warning(f"readiness check failed: {exc}")

    status = "healthy" if all(value == "healthy" for value in checks.values()) else "unhealthy"
    return {"status": status, "checks": checks}


@router.get("/metrics", response_class=PlainTextResponse)
async def metrics():
    return metrics_registry.render_prometheus()
