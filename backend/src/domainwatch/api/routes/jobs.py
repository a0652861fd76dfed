"""
Manual job triggers for development and operations.

These endpoints are only available when DEBUG=true.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from domainwatch.api.deps import ContainerDep
from domainwatch.api.schemas import BatchReportResponse
from domainwatch.container import REMINDER_JOB, SWEEP_JOB, ServiceContainer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


async def _run_job(container: ServiceContainer, name: str) -> BatchReportResponse:
    if not container.settings.debug:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Job triggers are disabled in production",
        )

    job = container.scheduler.get(name)
    if job.is_running:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Job {name} is already running",
        )

    logger.info(f"Manual trigger of job {name}")
    report = await job.run_once()
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Job {name} did not complete",
        )
    return BatchReportResponse.from_report(report)


@router.post("/sweep", response_model=BatchReportResponse)
async def run_sweep(container: ContainerDep) -> BatchReportResponse:
    """Run the reconciliation sweep now and return its report."""
    return await _run_job(container, SWEEP_JOB)


@router.post("/reminders", response_model=BatchReportResponse)
async def run_reminders(container: ContainerDep) -> BatchReportResponse:
    """Run the reminder dispatch now and return its report."""
    return await _run_job(container, REMINDER_JOB)
