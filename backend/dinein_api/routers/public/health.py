"""
Health check endpoints for the REST API.
Provides basic and detailed health status of the service and its dependencies.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from shared.config.logging import rest_api_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal
from dinein_api.services.sweeper import get_sweepers


router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health_check():
    """
    Basic health check endpoint.
    Returns service status without checking dependencies.
    """
    return {
        "status": "healthy",
        "service": "dinein-api",
        "environment": settings.environment,
    }


@router.get("/health/detailed")
def detailed_health_check():
    """
    Detailed health check: database connectivity and sweeper state.

    Returns 503 Service Unavailable if the database is unreachable.
    """
    database = {"status": "healthy"}
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Database health check failed", error=str(e))
        database = {"status": "unhealthy", "error": str(e)}

    sweepers = {
        s.name: {
            "running": s.running,
            "runs": s.runs,
            "failures": s.failures,
            "skipped_ticks": s.skipped_ticks,
        }
        for s in get_sweepers()
    }

    healthy = database["status"] == "healthy"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "service": "dinein-api",
        "environment": settings.environment,
        "dependencies": {"database": database},
        "sweepers": sweepers,
    }
    return JSONResponse(status_code=200 if healthy else 503, content=body)
