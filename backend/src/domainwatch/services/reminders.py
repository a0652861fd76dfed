"""
Expiry reminder dispatch.

Runs daily. Every domain entering its reminder window gets one
EXPIRY_REMINDER notification and one email attempt per expiry date.

The window is 0 <= days_until_expiry <= reminder_days rather than an
exact day match, so a missed or late run still reminds. The domain's
reminded_for_expiry stamp keeps it to one reminder per expiry date;
a renewal moves the expiry date and re-arms the reminder.

Delivery is best-effort: a failed or timed-out send leaves email_sent
False, is logged, and is not retried within the pass.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable

from domainwatch.domain.errors import NotFoundError
from domainwatch.domain.lifecycle import days_until_expiry
from domainwatch.domain.models import DomainRecord, NotificationRecord, NotificationType
from domainwatch.infrastructure.clock import Clock, SystemClock
from domainwatch.infrastructure.locks import KeyedLocks
from domainwatch.infrastructure.repository import Repository

from .mailer import EmailSender, render_reminder_email
from .notifications import NotificationLog
from .reports import BatchReport, Outcome

logger = logging.getLogger(__name__)


DEFAULT_REMINDER_DAYS = 7


def is_reminder_due(domain: DomainRecord, now: datetime, reminder_days: int) -> bool:
    """True if the domain is inside the window and not yet reminded."""
    if domain.expiry_date is None:
        return False
    if domain.reminded_for_expiry == domain.expiry_date:
        return False
    days = days_until_expiry(domain.expiry_date, now)
    return 0 <= days <= reminder_days


class ReminderDispatcher:
    """Creates reminder notifications and emails account owners."""

    def __init__(
        self,
        repository: Repository,
        notifications: NotificationLog,
        email_sender: EmailSender,
        locks: KeyedLocks,
        clock: Clock | None = None,
        reminder_days: int = DEFAULT_REMINDER_DAYS,
        send_timeout_seconds: float = 10.0,
    ) -> None:
        self.repository = repository
        self.notifications = notifications
        self.email_sender = email_sender
        self.locks = locks
        self.clock = clock or SystemClock()
        self.reminder_days = reminder_days
        self.send_timeout = send_timeout_seconds

    async def dispatch(
        self,
        now: datetime | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> BatchReport:
        """
        Send reminders for every domain that is due.

        Args:
            now: Instant to evaluate at. Uses the clock if None.
            should_stop: Polled between records; True ends the pass early.

        Returns:
            BatchReport with one outcome per domain that was due
        """
        now = now or self.clock.now()
        report = BatchReport(job="reminders", started_at=now)

        try:
            domains = await self.repository.list_all_domains()
        except Exception:
            logger.exception("Reminder dispatch could not list domains")
            return report

        for domain in domains:
            if not is_reminder_due(domain, now, self.reminder_days):
                continue

            if should_stop is not None and should_stop():
                logger.info("Reminder dispatch stopping early on shutdown")
                report.interrupted = True
                break

            try:
                outcome, detail = await self._remind_one(domain.id, now)
                report.add(domain.id, outcome, detail)
            except Exception as e:
                logger.exception(f"Reminder for domain {domain.id} failed")
                report.add(domain.id, Outcome.FAILED, str(e))

        logger.info(f"Reminder dispatch finished: {report.summary()}")
        return report

    async def _remind_one(self, domain_id: str, now: datetime) -> tuple[Outcome, str]:
        async with self.locks.hold(domain_id):
            domain = await self.repository.get_domain(domain_id)
            if domain is None or not is_reminder_due(domain, now, self.reminder_days):
                return Outcome.SKIPPED, "no longer due"

            days = days_until_expiry(domain.expiry_date, now)
            notification = await self.notifications.append(
                account_id=domain.account_id,
                domain_id=domain.id,
                type=NotificationType.EXPIRY_REMINDER,
                message=f"Domain {domain.name} expires in {days} days",
            )

            domain.reminded_for_expiry = domain.expiry_date
            domain.updated_at = now
            await self.repository.update_domain(domain)

        # Outside the lock: a slow mail relay must not block other writers
        sent = await self._send(domain, notification, days)
        if not sent:
            return Outcome.EMAIL_FAILED, "email not sent"
        return Outcome.REMINDED, ""

    async def _send(
        self,
        domain: DomainRecord,
        notification: NotificationRecord,
        days: int,
    ) -> bool:
        account = await self.repository.get_account(domain.account_id)
        if account is None:
            logger.error(f"No account {domain.account_id} for domain {domain.name}; email skipped")
            return False

        subject, body = render_reminder_email(domain.name, days)
        try:
            await asyncio.wait_for(
                self.email_sender.send(account.email, subject, body),
                timeout=self.send_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Reminder email for {domain.name} timed out after {self.send_timeout}s")
            return False
        except Exception as e:
            logger.error(f"Reminder email for {domain.name} failed: {e}")
            return False

        try:
            await self.notifications.mark_email_sent(notification.id)
        except NotFoundError:
            logger.warning(f"Notification {notification.id} vanished before email_sent was set")
        return True
