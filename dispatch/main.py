"""Dispatch — FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dispatch.adapters.persistence.database import engine
from dispatch.application.scheduler import RebalanceScheduler
from dispatch.application.worker_pool import AssignmentWorkerPool
from dispatch.config import settings
from dispatch.infrastructure.api.dependencies import (
    assign_in_new_session,
    build_notification_sink,
    outbox,
    rebalance_in_new_session,
)
from dispatch.infrastructure.api.routes_assignment import router as assignment_router
from dispatch.infrastructure.api.routes_health import router as health_router
from dispatch.infrastructure.api.routes_rebalance import router as rebalance_router
from dispatch.infrastructure.api.routes_workload import router as workload_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        async with engine.begin():
            pass  # Connection pool warmed up
        logger.info("Database connection established")
    except Exception as e:
        logger.warning("Database not available on startup: %s", e)

    outbox.start(build_notification_sink())

    pool = AssignmentWorkerPool(assign_in_new_session)
    await pool.start(settings.assignment_workers)
    app.state.assignment_pool = pool

    scheduler = None
    if settings.rebalance_enabled:
        scheduler = RebalanceScheduler(
            rebalance_in_new_session, settings.rebalance_interval_minutes * 60
        )
        scheduler.start()
    app.state.rebalance_scheduler = scheduler

    yield

    if scheduler is not None:
        await scheduler.stop()
    await pool.stop()
    await outbox.stop()
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Dispatch — ticket assignment engine",
        description="Scores agents, assigns tickets with fallbacks, and rebalances workload",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(health_router, prefix="/api")
    app.include_router(assignment_router, prefix="/api")
    app.include_router(rebalance_router, prefix="/api")
    app.include_router(workload_router, prefix="/api")

    return app


app = create_app()
