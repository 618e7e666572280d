"""
Health check and metrics endpoints.
"""
from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from journal.models.base import get_db
from journal.utils.logging import get_logger
from journal.utils.metrics import registry
from datetime import datetime, timezone

logger = get_logger(__name__)

router = APIRouter()

@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint.
    Verifies database connectivity.
    """
    try:
        # Test database connection
        db.execute(text("SELECT 1"))
        
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": "connected"
        }
    except SQLAlchemyError as e:
        logger.error("Database health check failed", error=str(e))
        return {
            "status": "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": "disconnected",
            "error": str(e)
        }

@router.get("/metrics")
def prometheus_metrics():
    """
    Prometheus exposition of the journal counters.
    """
    return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)
