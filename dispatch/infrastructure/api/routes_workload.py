"""Workload endpoint — per-agent utilisation dashboard data."""

from fastapi import APIRouter, Depends

from dispatch.application.use_cases.workload_report import WorkloadReportUseCase
from dispatch.domain.errors import DispatchError
from dispatch.infrastructure.api.dependencies import get_workload_report_uc
from dispatch.infrastructure.api.errors import to_http_error

router = APIRouter(tags=["workload"])


@router.get("/workload")
async def workload(uc: WorkloadReportUseCase = Depends(get_workload_report_uc)):
    try:
        report = await uc.execute()
    except DispatchError as e:
        raise to_http_error(e)
    return report.to_dict()
