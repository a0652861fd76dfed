"""
Domain models for registration tracking.

These models represent the records the service keeps per account:
domains being watched, renewal payments and the notification log.

Design Decisions:
- Using dataclasses for typed domain objects independent of the ORM
- Identities are opaque strings generated by the repository
- Monetary amounts are integers in minor currency units (paise, cents)
- All instants are timezone-aware UTC datetimes
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


# Labels of 1-63 chars, no leading/trailing hyphen, alphabetic TLD
DOMAIN_NAME_PATTERN = re.compile(
    r"^(?=.{1,253}$)(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$"
)


class DomainStatus(Enum):
    """Lifecycle status of a domain registration."""
    ACTIVE = "active"
    EXPIRING = "expiring"
    EXPIRED = "expired"


class PaymentStatus(Enum):
    """Status of a renewal payment."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class NotificationType(Enum):
    """Kinds of lifecycle and payment events written to the log."""
    EXPIRY_REMINDER = "expiry_reminder"
    DOMAIN_EXPIRED = "domain_expired"
    PAYMENT_SUCCESS = "payment_success"


def normalize_domain_name(name: str) -> str:
    """Lowercase and strip a domain name, dropping a trailing dot."""
    return name.strip().lower().rstrip(".")


def is_valid_domain_name(name: str) -> bool:
    """Check domain syntax on an already normalized name."""
    return bool(DOMAIN_NAME_PATTERN.match(name))


@dataclass
class Account:
    """Owning identity for domains, payments and notifications."""
    id: str
    username: str
    email: str
    created_at: datetime


@dataclass
class DomainRecord:
    """
    A watched domain registration.

    A null expiry_date means the expiry is unknown; such domains are
    treated as permanently active and never transition.
    """
    id: str
    account_id: str
    name: str
    status: DomainStatus
    created_at: datetime
    updated_at: datetime
    registrar: str | None = None
    expiry_date: datetime | None = None
    tags: list[str] = field(default_factory=list)
    auto_renew: bool = False

    # Expiry date the reminder email path last fired for
    reminded_for_expiry: datetime | None = None


@dataclass
class PaymentRecord:
    """
    A renewal payment.

    Gateway identifiers stay null until the gateway has issued them.
    Terminal records (completed, failed) are never changed again.
    """
    id: str
    account_id: str
    domain_id: str
    amount: int
    currency: str
    status: PaymentStatus
    created_at: datetime
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (PaymentStatus.COMPLETED, PaymentStatus.FAILED)


@dataclass
class NotificationRecord:
    """
    An entry in an account's notification log.

    Append-only except for email_sent and read, which only flip
    from False to True.
    """
    id: str
    account_id: str
    type: NotificationType
    message: str
    created_at: datetime
    domain_id: str | None = None
    email_sent: bool = False
    read: bool = False


@dataclass(frozen=True)
class PaymentConfirmation:
    """
    A charge confirmed by the payment gateway.

    The caller has already verified the gateway signature before
    handing this to the renewal transaction.
    """
    payment_id: str
    order_id: str
    amount: int
    currency: str


@dataclass(frozen=True)
class DomainStats:
    """A domain with its live lifecycle metrics."""
    domain: DomainRecord
    days_until_expiry: int
    progress_percentage: float


@dataclass(frozen=True)
class DashboardStats:
    """Per-account counts by live lifecycle status."""
    total_domains: int
    active_domains: int
    expiring_soon: int
    expired_domains: int
