"""
Health check routes for monitoring.
Reports service status and database connectivity.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.config import settings
from app.core.logging import get_logger
from app.db.session import get_session

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check() -> dict:
    """
    Basic health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "version": settings.VERSION,
    }


@router.get("/health/db")
def database_health_check(session: Session = Depends(get_session)) -> dict:
    """
    Database health check endpoint.
    Verifies database connectivity by executing a simple query.
    """
    try:
        result = session.connection().execute(text("SELECT 1")).scalar()
        return {"status": "healthy", "database": "ok", "result": int(result or 1)}
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "database": "error", "error": str(e)}
