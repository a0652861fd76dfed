"""
Domain tracking endpoints.

CRUD over the caller's domains plus the dashboard counters. Domain
errors (not found, conflict, rejected) propagate to the app-level
handler in main.py.
"""

from fastapi import APIRouter, status

from domainwatch.api.deps import ContainerDep, CurrentAccount
from domainwatch.api.schemas import (
    CreateDomainRequest,
    DashboardStatsResponse,
    DomainResponse,
    MessageResponse,
    UpdateDomainRequest,
)
from domainwatch.container import ServiceContainer
from domainwatch.domain.lifecycle import classify
from domainwatch.domain.models import DomainRecord, DomainStats
from domainwatch.services.domains import DomainChanges

router = APIRouter(tags=["domains"])


def domain_response(domain: DomainRecord, container: ServiceContainer) -> DomainResponse:
    """Attach live metrics to a single domain."""
    snapshot = classify(domain.expiry_date, container.clock.now())
    return DomainResponse.from_stats(DomainStats(
        domain=domain,
        days_until_expiry=snapshot.days_until_expiry,
        progress_percentage=snapshot.progress_percentage,
    ))


@router.get("/domains", response_model=list[DomainResponse])
async def list_domains(
    account: CurrentAccount,
    container: ContainerDep,
) -> list[DomainResponse]:
    """List the caller's domains with days remaining and progress."""
    stats = await container.domains.list_with_stats(account.id)
    return [DomainResponse.from_stats(s) for s in stats]


@router.post(
    "/domains",
    response_model=DomainResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"description": "Domain already tracked"},
        422: {"description": "Invalid domain name"},
    },
)
async def add_domain(
    request: CreateDomainRequest,
    account: CurrentAccount,
    container: ContainerDep,
) -> DomainResponse:
    """
    Start tracking a domain.

    Registrar and expiry date come from a WHOIS lookup. If WHOIS is
    unavailable the domain is still added with an unknown expiry.
    """
    domain = await container.domains.add_domain(
        account_id=account.id,
        name=request.name,
        tags=request.tags,
        auto_renew=request.auto_renew,
    )
    return domain_response(domain, container)


@router.get(
    "/domains/{domain_id}",
    response_model=DomainResponse,
    responses={404: {"description": "Domain not found"}},
)
async def get_domain(
    domain_id: str,
    account: CurrentAccount,
    container: ContainerDep,
) -> DomainResponse:
    domain = await container.domains.get_domain(account.id, domain_id)
    return domain_response(domain, container)


@router.put(
    "/domains/{domain_id}",
    response_model=DomainResponse,
    responses={404: {"description": "Domain not found"}},
)
async def update_domain(
    domain_id: str,
    request: UpdateDomainRequest,
    account: CurrentAccount,
    container: ContainerDep,
) -> DomainResponse:
    """Update registrar, expiry date, tags or auto-renew."""
    supplied = request.model_fields_set
    changes = DomainChanges()
    for field_name in ("registrar", "expiry_date", "tags", "auto_renew"):
        if field_name in supplied:
            setattr(changes, field_name, getattr(request, field_name))

    domain = await container.domains.update_domain(account.id, domain_id, changes)
    return domain_response(domain, container)


@router.delete(
    "/domains/{domain_id}",
    response_model=MessageResponse,
    responses={404: {"description": "Domain not found"}},
)
async def delete_domain(
    domain_id: str,
    account: CurrentAccount,
    container: ContainerDep,
) -> MessageResponse:
    await container.domains.delete_domain(account.id, domain_id)
    return MessageResponse(message="Domain deleted successfully")


@router.get("/dashboard/stats", response_model=DashboardStatsResponse)
async def dashboard_stats(
    account: CurrentAccount,
    container: ContainerDep,
) -> DashboardStatsResponse:
    """Counts of the caller's domains by live status."""
    stats = await container.domains.dashboard_stats(account.id)
    return DashboardStatsResponse.from_stats(stats)
