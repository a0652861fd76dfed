"""
Domain management for account owners.

Adding a domain looks up WHOIS for the registrar and expiry date and
stores the record as ACTIVE regardless of its computed class; the next
reconciliation sweep moves it to its real status. Updates never set
status directly: it is re-derived when the expiry date changes.
"""

import logging
from dataclasses import dataclass
from datetime import timezone

from domainwatch.domain.errors import ConflictError, NotFoundError, RejectedError, TransientError
from domainwatch.domain.lifecycle import classify
from domainwatch.domain.models import (
    DashboardStats,
    DomainRecord,
    DomainStats,
    DomainStatus,
    is_valid_domain_name,
    normalize_domain_name,
)
from domainwatch.infrastructure.clock import Clock, SystemClock
from domainwatch.infrastructure.locks import KeyedLocks
from domainwatch.infrastructure.repository import Repository, new_id

from .whois import WhoisLookup, WhoisResult

logger = logging.getLogger(__name__)


MAX_TAGS = 20
MAX_TAG_LENGTH = 32

# Marker for "field not supplied" in partial updates
UNSET = object()


@dataclass
class DomainChanges:
    """Partial update; fields left as UNSET are not touched."""
    registrar: object = UNSET
    expiry_date: object = UNSET
    tags: object = UNSET
    auto_renew: object = UNSET


def clean_tags(tags: list[str] | None) -> list[str]:
    """Strip, drop blanks and duplicates, keep order."""
    if not tags:
        return []
    cleaned: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if not tag or tag in cleaned:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise RejectedError(f"Tag too long: {tag[:MAX_TAG_LENGTH]}...")
        cleaned.append(tag)
    if len(cleaned) > MAX_TAGS:
        raise RejectedError(f"At most {MAX_TAGS} tags allowed")
    return cleaned


class DomainService:
    """CRUD and live statistics for an account's domains."""

    def __init__(
        self,
        repository: Repository,
        whois: WhoisLookup,
        locks: KeyedLocks,
        clock: Clock | None = None,
    ) -> None:
        self.repository = repository
        self.whois = whois
        self.locks = locks
        self.clock = clock or SystemClock()

    async def add_domain(
        self,
        account_id: str,
        name: str,
        tags: list[str] | None = None,
        auto_renew: bool = False,
    ) -> DomainRecord:
        """
        Start watching a domain.

        Raises:
            RejectedError: Invalid domain name or tags
            ConflictError: The account already watches this name
        """
        name = normalize_domain_name(name)
        if not is_valid_domain_name(name):
            raise RejectedError(f"Invalid domain name: {name}")

        tags = clean_tags(tags)

        if await self.repository.find_domain_by_name(account_id, name):
            raise ConflictError(f"Domain {name} is already tracked")

        try:
            whois = await self.whois.lookup(name)
        except TransientError:
            # Still track the domain; expiry can be set later by an update
            logger.warning(f"WHOIS unavailable for {name}; adding with unknown expiry")
            whois = WhoisResult()

        now = self.clock.now()
        domain = DomainRecord(
            id=new_id(),
            account_id=account_id,
            name=name,
            registrar=whois.registrar,
            expiry_date=whois.expiry_date,
            status=DomainStatus.ACTIVE,
            tags=tags,
            auto_renew=auto_renew,
            created_at=now,
            updated_at=now,
        )
        await self.repository.insert_domain(domain)
        logger.info(f"Account {account_id} added {name} (expiry {domain.expiry_date})")
        return domain

    async def get_domain(self, account_id: str, domain_id: str) -> DomainRecord:
        domain = await self.repository.get_domain(domain_id)
        if domain is None or domain.account_id != account_id:
            raise NotFoundError("Domain not found")
        return domain

    async def update_domain(
        self,
        account_id: str,
        domain_id: str,
        changes: DomainChanges,
    ) -> DomainRecord:
        """
        Apply a partial update.

        Raises:
            NotFoundError: Domain absent or not owned by the account
            RejectedError: Invalid field values
        """
        async with self.locks.hold(domain_id):
            domain = await self.get_domain(account_id, domain_id)
            now = self.clock.now()

            if changes.registrar is not UNSET:
                domain.registrar = changes.registrar or None
            if changes.tags is not UNSET:
                domain.tags = clean_tags(changes.tags)
            if changes.auto_renew is not UNSET:
                domain.auto_renew = bool(changes.auto_renew)
            if changes.expiry_date is not UNSET:
                expiry = changes.expiry_date
                if expiry is not None and expiry.tzinfo is None:
                    raise RejectedError("Expiry date must include a timezone")
                domain.expiry_date = expiry.astimezone(timezone.utc) if expiry else None
                domain.status = classify(expiry, now).status

            domain.updated_at = now
            return await self.repository.update_domain(domain)

    async def delete_domain(self, account_id: str, domain_id: str) -> None:
        """Hard delete. Payment history is kept."""
        async with self.locks.hold(domain_id):
            domain = await self.get_domain(account_id, domain_id)
            await self.repository.delete_domain(domain.id)
        logger.info(f"Account {account_id} deleted {domain.name}")

    async def list_with_stats(self, account_id: str) -> list[DomainStats]:
        """Domains with live days-remaining and progress metrics."""
        now = self.clock.now()
        result = []
        for domain in await self.repository.list_domains(account_id):
            snapshot = classify(domain.expiry_date, now)
            result.append(DomainStats(
                domain=domain,
                days_until_expiry=snapshot.days_until_expiry,
                progress_percentage=snapshot.progress_percentage,
            ))
        return result

    async def dashboard_stats(self, account_id: str) -> DashboardStats:
        """Counts by live status, independent of the last sweep."""
        now = self.clock.now()
        domains = await self.repository.list_domains(account_id)
        counts = {status: 0 for status in DomainStatus}
        for domain in domains:
            counts[classify(domain.expiry_date, now).status] += 1

        return DashboardStats(
            total_domains=len(domains),
            active_domains=counts[DomainStatus.ACTIVE],
            expiring_soon=counts[DomainStatus.EXPIRING],
            expired_domains=counts[DomainStatus.EXPIRED],
        )
