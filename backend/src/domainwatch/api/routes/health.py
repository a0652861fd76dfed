"""
Health check endpoint.

Provides system health status for monitoring and load balancers.
"""

from fastapi import APIRouter

from domainwatch import __version__
from domainwatch.api.deps import ContainerDep
from domainwatch.api.schemas import HealthResponse
from domainwatch.infrastructure.database import SqlAlchemyRepository

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(container: ContainerDep) -> HealthResponse:
    """
    Check system health.

    Returns storage backend and scheduled job state for monitoring
    dashboards and load balancer health checks.
    """
    database = (
        "connected"
        if isinstance(container.repository, SqlAlchemyRepository)
        else "in-memory"
    )

    return HealthResponse(
        status="healthy",
        version=__version__,
        database=database,
        scheduler={
            name: {
                "started": job.is_started,
                "running": job.is_running,
                "runs": job.runs,
                "skipped": job.skipped,
            }
            for name, job in container.scheduler.jobs.items()
        },
    )
