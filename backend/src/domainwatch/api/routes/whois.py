"""
WHOIS lookup endpoint.

Lets the frontend preview registrar and expiry before adding a domain.
"""

from fastapi import APIRouter

from domainwatch.api.deps import ContainerDep, CurrentAccount
from domainwatch.api.schemas import WhoisResponse
from domainwatch.domain.errors import RejectedError
from domainwatch.domain.models import is_valid_domain_name, normalize_domain_name

router = APIRouter(prefix="/whois", tags=["whois"])


@router.get(
    "/{domain_name}",
    response_model=WhoisResponse,
    responses={503: {"description": "WHOIS service unavailable"}},
)
async def whois_lookup(
    domain_name: str,
    account: CurrentAccount,
    container: ContainerDep,
) -> WhoisResponse:
    name = normalize_domain_name(domain_name)
    if not is_valid_domain_name(name):
        raise RejectedError(f"Invalid domain name: {name}")

    result = await container.whois.lookup(name)
    return WhoisResponse(
        domain=name,
        registrar=result.registrar,
        expiry_date=result.expiry_date,
    )
