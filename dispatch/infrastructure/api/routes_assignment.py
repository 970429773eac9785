"""Assignment endpoints — assign a ticket, preview a recommendation."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from dispatch.application.use_cases.assign_ticket import AssignTicketUseCase
from dispatch.application.worker_pool import AssignmentWorkerPool
from dispatch.domain.errors import DispatchError
from dispatch.infrastructure.api.dependencies import get_assign_ticket_uc
from dispatch.infrastructure.api.errors import to_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/assignments", tags=["assignments"])


class AssignRequest(BaseModel):
    agent_id: str | None = None


def get_worker_pool(request: Request) -> AssignmentWorkerPool:
    pool = getattr(request.app.state, "assignment_pool", None)
    if pool is None:
        raise HTTPException(status_code=503, detail="Assignment workers are not running")
    return pool


@router.post("/{ticket_id}")
async def assign_ticket(
    ticket_id: str,
    body: AssignRequest | None = None,
    pool: AssignmentWorkerPool = Depends(get_worker_pool),
):
    """Assign a ticket automatically, or to ``agent_id`` when given.

    ``manual_assignment_required`` is a regular answer, not an error.
    """
    agent_id = body.agent_id if body else None
    try:
        result = await pool.assign(ticket_id, agent_id)
    except DispatchError as e:
        logger.warning("Assignment of ticket %s failed: %s", ticket_id, e)
        raise to_http_error(e)
    return result.to_dict()


@router.get("/{ticket_id}/recommendation")
async def recommend_agent(
    ticket_id: str,
    uc: AssignTicketUseCase = Depends(get_assign_ticket_uc),
):
    """Which agent would get this ticket right now, without assigning it."""
    try:
        result = await uc.recommend(ticket_id)
    except DispatchError as e:
        raise to_http_error(e)
    return result.to_dict()
