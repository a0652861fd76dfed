"""
Lifecycle classification for domain registrations.

Pure functions mapping an expiry date and the current instant to a
status plus the metrics shown on the dashboard. No side effects, no I/O.

Rules:
- Unknown expiry: active, 365 days remaining, 100% progress
- days_until_expiry = ceil((expiry - now) in days)
- days < 0 -> expired, 0 <= days <= 30 -> expiring, days > 30 -> active
- progress decays linearly over an assumed 365-day term, clamped to 0-100

The 365-day term is an approximation; it is not derived from the
registration's actual start date.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from .models import DomainStatus


EXPIRING_THRESHOLD_DAYS = 30

# Assumed registration term, also used by renewal
REGISTRATION_TERM_DAYS = 365

UNKNOWN_EXPIRY_DAYS = 365

_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class LifecycleSnapshot:
    """Result of classifying one expiry date at one instant."""
    status: DomainStatus
    days_until_expiry: int
    progress_percentage: float


def days_until_expiry(expiry_date: datetime, now: datetime) -> int:
    """
    Whole days until expiry, rounded up.

    Any positive fraction of a day counts as a full day, so an expiry
    one second away is 1 day out and one second past is 0 days.
    """
    # timedelta / timedelta is exact to the microsecond
    return math.ceil((expiry_date - now) / _ONE_DAY)


def status_for_days(days: int) -> DomainStatus:
    """Map a day count onto a lifecycle status."""
    if days < 0:
        return DomainStatus.EXPIRED
    if days <= EXPIRING_THRESHOLD_DAYS:
        return DomainStatus.EXPIRING
    return DomainStatus.ACTIVE


def progress_for_days(days: int) -> float:
    """Remaining share of the registration term as a percentage."""
    return max(0.0, min(100.0, days / REGISTRATION_TERM_DAYS * 100))


def classify(expiry_date: datetime | None, now: datetime) -> LifecycleSnapshot:
    """
    Classify a registration at the given instant.

    Args:
        expiry_date: Registration expiry, or None if unknown
        now: Current instant (timezone-aware)

    Returns:
        LifecycleSnapshot with status, days remaining and progress
    """
    if expiry_date is None:
        return LifecycleSnapshot(
            status=DomainStatus.ACTIVE,
            days_until_expiry=UNKNOWN_EXPIRY_DAYS,
            progress_percentage=100.0,
        )

    days = days_until_expiry(expiry_date, now)
    return LifecycleSnapshot(
        status=status_for_days(days),
        days_until_expiry=days,
        progress_percentage=progress_for_days(days),
    )


def renewed_expiry(expiry_date: datetime | None, now: datetime) -> datetime:
    """Expiry after one renewal: current expiry (or now) plus one term."""
    base = expiry_date if expiry_date is not None else now
    return base + timedelta(days=REGISTRATION_TERM_DAYS)
