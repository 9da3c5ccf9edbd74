import time
import uuid
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from agents.parcelas.engine import ReconciliationEngine
from agents.parcelas.scheduler import ScanScheduler
from backend.core.config import settings
from backend.core.observability.logging import logger
from backend.core.observability.metrics import get_metrics, record_ops_duration

router = APIRouter(prefix="/api/v1/ops")


def _error(status_code: int, code: str, detail: str):
    raise HTTPException(status_code=status_code, detail={"error": code, "detail": detail})


def _auth_admin(authorization: str | None) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        _error(
            status.HTTP_401_UNAUTHORIZED, "unauthorized", "Missing or invalid Authorization header"
        )
    token = authorization.split(" ", 1)[1].strip()
    allowed = [t.strip() for t in settings.ADMIN_TOKENS.split(",") if t.strip()]
    if not allowed or token not in allowed:
        _error(status.HTTP_403_FORBIDDEN, "forbidden", "Admin token required")
    return token


def get_scheduler(request: Request) -> ScanScheduler:
    """Scheduler bound to the app; built on first use when the loop is disabled."""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        scheduler = ScanScheduler(ReconciliationEngine.from_settings())
        request.app.state.scheduler = scheduler
    return scheduler


@router.post("/scan", response_model=dict[str, Any])
def trigger_scan(
    authorization: str | None = Header(None, alias="Authorization"),
    trace_header: str | None = Header(None, alias="X-Trace-ID"),
    scheduler: ScanScheduler = Depends(get_scheduler),
):
    start = time.time()
    _auth_admin(authorization)
    trace_id = trace_header or str(uuid.uuid4())

    result = scheduler.run_once()
    record_ops_duration((time.time() - start) * 1000.0)
    logger.info(
        "ops_scan",
        extra={
            "actor_role": "admin",
            "trace_id": trace_id,
            "skipped": result is None,
            "duration_ms": (time.time() - start) * 1000.0,
        },
    )
    if result is None:
        _error(status.HTTP_409_CONFLICT, "scan_in_progress", "A scan is already running")
    return result.to_dict()


@router.get("/contacts", response_model=dict[str, Any])
def list_contacts(
    day: date | None = None,
    authorization: str | None = Header(None, alias="Authorization"),
    scheduler: ScanScheduler = Depends(get_scheduler),
):
    _auth_admin(authorization)
    engine = scheduler.engine
    day = day or engine.today()
    entries = engine.contact_log.list_for_day(day)
    return {
        "day": day.isoformat(),
        "count": len(entries),
        "customer_ids": [entry.customer_id for entry in entries],
    }


@router.get("/rechecks", response_model=dict[str, Any])
def list_rechecks(
    authorization: str | None = Header(None, alias="Authorization"),
    scheduler: ScanScheduler = Depends(get_scheduler),
):
    _auth_admin(authorization)
    pending = scheduler.engine.rechecks.pending()
    return {"count": len(pending), "payment_ids": pending}


@router.get("/metrics", response_model=dict[str, Any])
def get_metrics_admin(
    authorization: str | None = Header(None, alias="Authorization"),
    trace_header: str | None = Header(None, alias="X-Trace-ID"),
):
    _auth_admin(authorization)
    trace_id = trace_header or str(uuid.uuid4())
    logger.info("ops_metrics", extra={"actor_role": "admin", "trace_id": trace_id})
    return get_metrics()
