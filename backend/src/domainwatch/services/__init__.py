"""
Services package - Lifecycle jobs, renewals and external integrations.

Includes the reconciliation sweep, reminder dispatch, renewal
transaction, WHOIS lookup, payment gateway and email delivery.
"""

from .domains import DomainService
from .notifications import NotificationLog
from .reconciliation import ReconciliationService
from .reminders import ReminderDispatcher
from .renewal import RenewalService

__all__ = [
    "DomainService",
    "NotificationLog",
    "ReconciliationService",
    "ReminderDispatcher",
    "RenewalService",
]
