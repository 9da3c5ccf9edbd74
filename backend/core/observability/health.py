"""Health and readiness endpoints."""

from importlib import metadata
from typing import Any

from fastapi import APIRouter
from sqlalchemy import text

from backend.core.observability.logging import logger

router = APIRouter()


def get_version() -> str:
    """Get application version from the installed distribution."""
    try:
        return metadata.version("parcelas-agent")
    except metadata.PackageNotFoundError:
        return "dev"


def check_database() -> str:
    """Check database connectivity with light query."""
    try:
        from backend.core.database import get_connection

        with get_connection() as conn:
            row = conn.execute(text("SELECT 1 AS health_check")).first()
            return "OK" if row and row.health_check == 1 else "FAIL"
    except Exception as exc:
        logger.warning("health_db_probe_failed", extra={"error": str(exc)})
        return "FAIL"


@router.get("/health/ready")
def readiness_check() -> dict[str, Any]:
    """Readiness endpoint for load balancers."""
    db_status = check_database()

    return {
        "status": "OK" if db_status == "OK" else "DEGRADED",
        "version": get_version(),
        "db": db_status,
    }


@router.get("/health/live")
def liveness_check() -> dict[str, str]:
    """Liveness endpoint - always OK if service is running."""
    return {"status": "OK"}
