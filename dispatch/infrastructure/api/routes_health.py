"""Health check endpoint."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.adapters.persistence.database import get_session
from dispatch.infrastructure.api.dependencies import outbox, rebalance_guard

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request, session: AsyncSession = Depends(get_session)):
    """Check API and database connectivity, plus background worker state."""
    try:
        result = await session.execute(text("SELECT 1"))
        result.scalar()
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {e}"

    pool = getattr(request.app.state, "assignment_pool", None)
    scheduler = getattr(request.app.state, "rebalance_scheduler", None)
    return {
        "status": "ok" if db_status == "connected" else "degraded",
        "database": db_status,
        "assignment_workers": pool.worker_count if pool else 0,
        "pending_assignments": pool.pending_count if pool else 0,
        "pending_notifications": outbox.pending_count,
        "rebalance_scheduled": bool(scheduler and scheduler.is_started),
        "rebalance_running": rebalance_guard.is_running,
        "service": "Dispatch - ticket assignment engine",
    }
