from contextlib import asynccontextmanager

from fastapi import FastAPI

from agents.parcelas.engine import ReconciliationEngine
from agents.parcelas.scheduler import ScanScheduler
from backend.apps.parcelas.api_ops import router as ops_router
from backend.core.config import settings
from backend.core.observability import init_observability
from backend.core.observability.health import router as health_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = ScanScheduler(ReconciliationEngine.from_settings())
        scheduler.start()
        app.state.scheduler = scheduler
    try:
        yield
    finally:
        scheduler = app.state.scheduler
        if scheduler is not None:
            scheduler.stop(timeout=settings.SCAN_INTERVAL_SECONDS)


def create_app() -> FastAPI:
    init_observability(enable_metrics=settings.enable_metrics)

    app = FastAPI(title="Parcelas Agent", lifespan=lifespan)
    app.state.scheduler = None

    # Routers
    app.include_router(health_router)
    app.include_router(ops_router)

    return app


# ASGI app instance
app = create_app()
