"""Rebalance endpoint — trigger one workload rebalancing pass."""

from fastapi import APIRouter, Depends

from dispatch.application.use_cases.rebalance_workload import RebalanceWorkloadUseCase
from dispatch.infrastructure.api.dependencies import get_rebalance_uc

router = APIRouter(tags=["rebalance"])


@router.post("/rebalance")
async def rebalance(uc: RebalanceWorkloadUseCase = Depends(get_rebalance_uc)):
    """Run a rebalance pass now; returns ``already_running`` if one is in progress.

    Every committed move is already durable when the response is built.
    """
    result = await uc.execute()
    return result.to_dict()
