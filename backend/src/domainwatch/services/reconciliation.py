"""
Reconciliation sweep.

Re-derives the lifecycle status of every domain from its expiry date
and records each transition in the owner's notification log. Runs
hourly from the scheduler and can be triggered on demand.

Guarantees:
- Domains with unknown expiry are skipped and never transition
- Exactly one notification per actual status transition, so running
  twice with the same "now" adds nothing the second time
- A status change whose notification cannot be recorded is rolled
  back, so the next sweep retries it
- A failure on one record is logged and reported, never raised, and
  the sweep moves on to the next record
- should_stop is checked between records; the in-flight record always
  finishes before the sweep returns
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable

from domainwatch.domain.lifecycle import classify
from domainwatch.domain.models import DomainStatus, NotificationType
from domainwatch.infrastructure.clock import Clock, SystemClock
from domainwatch.infrastructure.locks import KeyedLocks
from domainwatch.infrastructure.repository import Repository

from .notifications import NotificationLog
from .reports import BatchReport, Outcome

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Periodic status re-classification for all accounts' domains."""

    def __init__(
        self,
        repository: Repository,
        notifications: NotificationLog,
        locks: KeyedLocks,
        clock: Clock | None = None,
        record_timeout_seconds: float = 30.0,
    ) -> None:
        self.repository = repository
        self.notifications = notifications
        self.locks = locks
        self.clock = clock or SystemClock()
        self.record_timeout = record_timeout_seconds

    async def sweep(
        self,
        now: datetime | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> BatchReport:
        """
        Reconcile every domain against the classifier.

        Args:
            now: Instant to classify at. Uses the clock if None.
            should_stop: Polled between records; True ends the sweep early.

        Returns:
            BatchReport with one outcome per domain visited
        """
        now = now or self.clock.now()
        report = BatchReport(job="reconciliation", started_at=now)

        try:
            domains = await self.repository.list_all_domains()
        except Exception:
            logger.exception("Reconciliation sweep could not list domains")
            return report

        for domain in domains:
            if should_stop is not None and should_stop():
                logger.info("Reconciliation sweep stopping early on shutdown")
                report.interrupted = True
                break

            if domain.expiry_date is None:
                report.add(domain.id, Outcome.SKIPPED, "no expiry date")
                continue

            try:
                outcome = await self._reconcile_one(domain.id, now)
                report.add(domain.id, outcome)
            except asyncio.TimeoutError:
                logger.error(f"Reconciling domain {domain.id} timed out")
                report.add(domain.id, Outcome.FAILED, "timeout")
            except Exception as e:
                logger.exception(f"Reconciling domain {domain.id} failed")
                report.add(domain.id, Outcome.FAILED, str(e))

        logger.info(f"Reconciliation sweep finished: {report.summary()}")
        return report

    async def _reconcile_one(self, domain_id: str, now: datetime) -> Outcome:
        # Only the lock wait and the read are bounded; cancelling between
        # the status write and the notification would split the pair
        async with self.locks.hold(domain_id, timeout=self.record_timeout):
            # Re-read under the lock; the listing may be stale
            domain = await asyncio.wait_for(
                self.repository.get_domain(domain_id),
                timeout=self.record_timeout,
            )
            if domain is None:
                return Outcome.SKIPPED
            if domain.expiry_date is None:
                return Outcome.SKIPPED

            snapshot = classify(domain.expiry_date, now)
            if snapshot.status == domain.status:
                return Outcome.UNCHANGED

            previous = domain.status
            previous_updated_at = domain.updated_at
            domain.status = snapshot.status
            domain.updated_at = now
            await self.repository.update_domain(domain)

            notification_type = (
                NotificationType.DOMAIN_EXPIRED
                if snapshot.status == DomainStatus.EXPIRED
                else NotificationType.EXPIRY_REMINDER
            )
            try:
                await self.notifications.append(
                    account_id=domain.account_id,
                    domain_id=domain.id,
                    type=notification_type,
                    message=f"Domain {domain.name} is {snapshot.status.value}",
                )
            except Exception:
                # Undo the status so the next sweep retries the transition
                domain.status = previous
                domain.updated_at = previous_updated_at
                await self.repository.update_domain(domain)
                raise
            logger.info(
                f"Domain {domain.name} moved {previous.value} -> {snapshot.status.value}"
            )
            return Outcome.TRANSITIONED
