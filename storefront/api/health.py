import logging

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import redis

from storefront.utils.cache import redis_client
from storefront.database import engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get(
    "/",
    summary="Health check",
    description="Basic liveness check."
)
def health_check():
    """Simple health check."""
    return {"status": "healthy"}


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check whether the product database and the view cache are reachable."
)
def readiness_check():
    """
    Readiness check for all dependencies.

    Failures are reported as booleans only; connection details stay in the log.
    """
    checks = {
        "database": False,
        "cache": False
    }

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            checks["database"] = True
    except SQLAlchemyError as e:
        logger.warning(f"Database readiness check failed: {e}")

    try:
        redis_client.ping()
        checks["cache"] = True
    except redis.RedisError as e:
        logger.warning(f"Cache readiness check failed: {e}")

    return {
        "status": "ready" if all(checks.values()) else "not_ready",
        "checks": checks
    }
