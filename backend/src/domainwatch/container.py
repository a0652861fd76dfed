"""
Service wiring.

Builds every service around one repository, one clock and one set of
per-record locks so the API handlers and the scheduled jobs share the
same store and the same mutual exclusion.
"""

import logging
from dataclasses import dataclass

from domainwatch.config import Settings
from domainwatch.infrastructure.clock import Clock, SystemClock
from domainwatch.infrastructure.locks import KeyedLocks
from domainwatch.infrastructure.repository import InMemoryRepository, Repository
from domainwatch.services.domains import DomainService
from domainwatch.services.gateway import PaymentGateway, RazorpayGateway
from domainwatch.services.mailer import EmailSender, SmtpEmailSender
from domainwatch.services.notifications import NotificationLog
from domainwatch.services.reconciliation import ReconciliationService
from domainwatch.services.reminders import ReminderDispatcher
from domainwatch.services.renewal import RenewalService
from domainwatch.services.scheduler import JobScheduler, PeriodicJob
from domainwatch.services.whois import HttpWhoisClient, WhoisLookup

logger = logging.getLogger(__name__)


SWEEP_JOB = "reconciliation"
REMINDER_JOB = "reminders"


@dataclass
class ServiceContainer:
    """Everything a request handler or job needs."""
    settings: Settings
    repository: Repository
    clock: Clock
    locks: KeyedLocks
    whois: WhoisLookup
    notifications: NotificationLog
    domains: DomainService
    reconciliation: ReconciliationService
    reminders: ReminderDispatcher
    renewals: RenewalService
    scheduler: JobScheduler


def build_container(
    settings: Settings,
    repository: Repository | None = None,
    clock: Clock | None = None,
    whois: WhoisLookup | None = None,
    gateway: PaymentGateway | None = None,
    email_sender: EmailSender | None = None,
) -> ServiceContainer:
    """
    Wire services from settings, with optional overrides for tests.

    Args:
        settings: Application settings
        repository: Defaults to an in-memory repository
        clock: Defaults to the system clock
        whois, gateway, email_sender: Default to the HTTP/SMTP clients
    """
    repository = repository or InMemoryRepository()
    clock = clock or SystemClock()
    locks = KeyedLocks()
    timeout = settings.external_timeout_seconds

    whois = whois or HttpWhoisClient(
        api_url=settings.whois_api_url,
        api_key=settings.whois_api_key,
        timeout_seconds=timeout,
    )
    gateway = gateway or RazorpayGateway(
        api_url=settings.gateway_api_url,
        key_id=settings.gateway_key_id,
        key_secret=settings.gateway_key_secret,
        timeout_seconds=timeout,
    )
    email_sender = email_sender or SmtpEmailSender(
        host=settings.smtp_host,
        port=settings.smtp_port,
        sender=settings.smtp_sender,
        username=settings.smtp_user,
        password=settings.smtp_password,
        timeout_seconds=timeout,
    )

    notifications = NotificationLog(repository, clock)
    reconciliation = ReconciliationService(
        repository,
        notifications,
        locks,
        clock,
        record_timeout_seconds=settings.record_timeout_seconds,
    )
    reminders = ReminderDispatcher(
        repository,
        notifications,
        email_sender,
        locks,
        clock,
        reminder_days=settings.reminder_days,
        send_timeout_seconds=timeout,
    )
    renewals = RenewalService(
        repository,
        notifications,
        gateway,
        locks,
        clock,
        price=settings.renewal_price,
        currency=settings.renewal_currency,
    )

    scheduler = JobScheduler([
        PeriodicJob(
            SWEEP_JOB,
            settings.sweep_interval_seconds,
            lambda should_stop: reconciliation.sweep(should_stop=should_stop),
        ),
        PeriodicJob(
            REMINDER_JOB,
            settings.reminder_interval_seconds,
            lambda should_stop: reminders.dispatch(should_stop=should_stop),
        ),
    ])

    return ServiceContainer(
        settings=settings,
        repository=repository,
        clock=clock,
        locks=locks,
        whois=whois,
        notifications=notifications,
        domains=DomainService(repository, whois, locks, clock),
        reconciliation=reconciliation,
        reminders=reminders,
        renewals=renewals,
        scheduler=scheduler,
    )
