"""
Record repository for accounts, domains, payments and notifications.

Services depend on the abstract Repository only. Two backends exist:
an in-memory one for tests and single-process development, and the
SQLAlchemy one in database.py.

Design Decisions:
- Abstract repository interface for multiple backends
- Opaque UUID identities generated per record, no process-global counter
- Records are copied in and out so callers never alias stored state
- Timestamps come from the caller's clock, never from the backend
"""

import copy
from abc import ABC, abstractmethod
from uuid import uuid4

from domainwatch.domain.models import (
    Account,
    DomainRecord,
    NotificationRecord,
    PaymentRecord,
)


def new_id() -> str:
    """Generate an opaque record identity."""
    return str(uuid4())


class Repository(ABC):
    """Abstract interface for record storage backends."""

    # Accounts

    @abstractmethod
    async def add_account(self, account: Account) -> Account:
        """Store an account provisioned by the auth layer."""
        pass

    @abstractmethod
    async def get_account(self, account_id: str) -> Account | None:
        pass

    # Domains

    @abstractmethod
    async def get_domain(self, domain_id: str) -> DomainRecord | None:
        pass

    @abstractmethod
    async def list_domains(self, account_id: str) -> list[DomainRecord]:
        """Domains owned by one account, oldest first."""
        pass

    @abstractmethod
    async def list_all_domains(self) -> list[DomainRecord]:
        """Every domain across all accounts, oldest first."""
        pass

    @abstractmethod
    async def find_domain_by_name(self, account_id: str, name: str) -> DomainRecord | None:
        pass

    @abstractmethod
    async def insert_domain(self, domain: DomainRecord) -> DomainRecord:
        pass

    @abstractmethod
    async def update_domain(self, domain: DomainRecord) -> DomainRecord:
        """Replace a stored domain. The caller sets updated_at."""
        pass

    @abstractmethod
    async def delete_domain(self, domain_id: str) -> bool:
        """Hard delete. Returns True if a record was removed."""
        pass

    # Payments

    @abstractmethod
    async def insert_payment(self, payment: PaymentRecord) -> PaymentRecord:
        pass

    @abstractmethod
    async def update_payment(self, payment: PaymentRecord) -> PaymentRecord:
        pass

    @abstractmethod
    async def delete_payment(self, payment_id: str) -> bool:
        """Hard delete. Returns True if a record was removed."""
        pass

    @abstractmethod
    async def list_payments(self, account_id: str) -> list[PaymentRecord]:
        pass

    @abstractmethod
    async def find_payment_by_gateway_payment_id(self, payment_id: str) -> PaymentRecord | None:
        pass

    @abstractmethod
    async def find_payment_by_gateway_order_id(self, order_id: str) -> PaymentRecord | None:
        pass

    # Notifications

    @abstractmethod
    async def insert_notification(self, notification: NotificationRecord) -> NotificationRecord:
        pass

    @abstractmethod
    async def get_notification(self, notification_id: str) -> NotificationRecord | None:
        pass

    @abstractmethod
    async def list_notifications(self, account_id: str) -> list[NotificationRecord]:
        """Notifications for one account, newest first."""
        pass

    @abstractmethod
    async def update_notification(self, notification: NotificationRecord) -> NotificationRecord:
        pass


class InMemoryRepository(Repository):
    """
    Dict-backed storage for tests and development.

    Nothing survives a restart. Each table is a dict keyed by identity;
    insertion order gives the "oldest first" listing order.
    """

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._domains: dict[str, DomainRecord] = {}
        self._payments: dict[str, PaymentRecord] = {}
        self._notifications: dict[str, NotificationRecord] = {}

    async def add_account(self, account: Account) -> Account:
        self._accounts[account.id] = copy.deepcopy(account)
        return copy.deepcopy(account)

    async def get_account(self, account_id: str) -> Account | None:
        account = self._accounts.get(account_id)
        return copy.deepcopy(account) if account else None

    async def get_domain(self, domain_id: str) -> DomainRecord | None:
        domain = self._domains.get(domain_id)
        return copy.deepcopy(domain) if domain else None

    async def list_domains(self, account_id: str) -> list[DomainRecord]:
        return [
            copy.deepcopy(d) for d in self._domains.values()
            if d.account_id == account_id
        ]

    async def list_all_domains(self) -> list[DomainRecord]:
        return [copy.deepcopy(d) for d in self._domains.values()]

    async def find_domain_by_name(self, account_id: str, name: str) -> DomainRecord | None:
        for domain in self._domains.values():
            if domain.account_id == account_id and domain.name == name:
                return copy.deepcopy(domain)
        return None

    async def insert_domain(self, domain: DomainRecord) -> DomainRecord:
        if domain.id in self._domains:
            raise KeyError(f"Domain already exists: {domain.id}")
        self._domains[domain.id] = copy.deepcopy(domain)
        return copy.deepcopy(domain)

    async def update_domain(self, domain: DomainRecord) -> DomainRecord:
        if domain.id not in self._domains:
            raise KeyError(f"Domain not found: {domain.id}")
        self._domains[domain.id] = copy.deepcopy(domain)
        return copy.deepcopy(domain)

    async def delete_domain(self, domain_id: str) -> bool:
        return self._domains.pop(domain_id, None) is not None

    async def insert_payment(self, payment: PaymentRecord) -> PaymentRecord:
        self._payments[payment.id] = copy.deepcopy(payment)
        return copy.deepcopy(payment)

    async def update_payment(self, payment: PaymentRecord) -> PaymentRecord:
        if payment.id not in self._payments:
            raise KeyError(f"Payment not found: {payment.id}")
        self._payments[payment.id] = copy.deepcopy(payment)
        return copy.deepcopy(payment)

    async def delete_payment(self, payment_id: str) -> bool:
        return self._payments.pop(payment_id, None) is not None

    async def list_payments(self, account_id: str) -> list[PaymentRecord]:
        return [
            copy.deepcopy(p) for p in self._payments.values()
            if p.account_id == account_id
        ]

    async def find_payment_by_gateway_payment_id(self, payment_id: str) -> PaymentRecord | None:
        for payment in self._payments.values():
            if payment.gateway_payment_id == payment_id:
                return copy.deepcopy(payment)
        return None

    async def find_payment_by_gateway_order_id(self, order_id: str) -> PaymentRecord | None:
        for payment in self._payments.values():
            if payment.gateway_order_id == order_id:
                return copy.deepcopy(payment)
        return None

    async def insert_notification(self, notification: NotificationRecord) -> NotificationRecord:
        self._notifications[notification.id] = copy.deepcopy(notification)
        return copy.deepcopy(notification)

    async def get_notification(self, notification_id: str) -> NotificationRecord | None:
        notification = self._notifications.get(notification_id)
        return copy.deepcopy(notification) if notification else None

    async def list_notifications(self, account_id: str) -> list[NotificationRecord]:
        owned = [
            copy.deepcopy(n) for n in self._notifications.values()
            if n.account_id == account_id
        ]
        return list(reversed(owned))

    async def update_notification(self, notification: NotificationRecord) -> NotificationRecord:
        if notification.id not in self._notifications:
            raise KeyError(f"Notification not found: {notification.id}")
        self._notifications[notification.id] = copy.deepcopy(notification)
        return copy.deepcopy(notification)
