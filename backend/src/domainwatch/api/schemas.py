"""
Pydantic schemas for API request/response validation.

These schemas define the contract between frontend and backend.
Monetary amounts are integers in minor currency units.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from domainwatch.domain.models import (
    DashboardStats,
    DomainStats,
    NotificationRecord,
    PaymentRecord,
)
from domainwatch.services.reports import BatchReport


class DomainStatusEnum(str, Enum):
    """Domain lifecycle status for API responses."""
    ACTIVE = "active"
    EXPIRING = "expiring"
    EXPIRED = "expired"


class PaymentStatusEnum(str, Enum):
    """Payment status for API responses."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class NotificationTypeEnum(str, Enum):
    """Notification kinds for API responses."""
    EXPIRY_REMINDER = "expiry_reminder"
    DOMAIN_EXPIRED = "domain_expired"
    PAYMENT_SUCCESS = "payment_success"


# =============================================================================
# Request Schemas
# =============================================================================

class CreateDomainRequest(BaseModel):
    """Request to start tracking a domain."""
    name: str = Field(
        ...,
        min_length=3,
        max_length=253,
        description="Domain name, e.g. example.com",
    )
    tags: list[str] = Field(default_factory=list)
    auto_renew: bool = Field(default=False)


class UpdateDomainRequest(BaseModel):
    """
    Partial domain update.

    Only fields present in the request body are applied. Status is not
    accepted; it follows the expiry date.
    """
    registrar: str | None = Field(default=None, max_length=256)
    expiry_date: datetime | None = None
    tags: list[str] | None = None
    auto_renew: bool | None = None


class CreateOrderRequest(BaseModel):
    """Request to open a renewal order."""
    domain_id: str


class VerifyPaymentRequest(BaseModel):
    """Checkout result returned by the gateway to the frontend."""
    payment_id: str = Field(..., min_length=1, max_length=64)
    order_id: str = Field(..., min_length=1, max_length=64)
    signature: str = Field(..., min_length=1)
    domain_id: str
    amount: int = Field(..., gt=0, description="Charged amount in minor units")
    currency: str | None = Field(
        default=None,
        min_length=3,
        max_length=3,
        description="Defaults to the configured renewal currency",
    )


class FailOrderRequest(BaseModel):
    """Report a checkout the gateway declined."""
    order_id: str


# =============================================================================
# Response Schemas
# =============================================================================

class DomainResponse(BaseModel):
    """Domain with live lifecycle metrics."""
    id: str
    name: str
    registrar: str | None = None
    expiry_date: datetime | None = None
    status: DomainStatusEnum
    tags: list[str] = []
    auto_renew: bool = False
    days_until_expiry: int
    progress_percentage: float
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_stats(cls, stats: DomainStats) -> "DomainResponse":
        domain = stats.domain
        return cls(
            id=domain.id,
            name=domain.name,
            registrar=domain.registrar,
            expiry_date=domain.expiry_date,
            status=DomainStatusEnum(domain.status.value),
            tags=domain.tags,
            auto_renew=domain.auto_renew,
            days_until_expiry=stats.days_until_expiry,
            progress_percentage=round(stats.progress_percentage, 2),
            created_at=domain.created_at,
            updated_at=domain.updated_at,
        )


class DashboardStatsResponse(BaseModel):
    """Per-account counts by status."""
    total_domains: int
    active_domains: int
    expiring_soon: int
    expired_domains: int

    @classmethod
    def from_stats(cls, stats: DashboardStats) -> "DashboardStatsResponse":
        return cls(
            total_domains=stats.total_domains,
            active_domains=stats.active_domains,
            expiring_soon=stats.expiring_soon,
            expired_domains=stats.expired_domains,
        )


class PaymentResponse(BaseModel):
    """A renewal payment."""
    id: str
    domain_id: str
    amount: int
    currency: str
    status: PaymentStatusEnum
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    created_at: datetime

    @classmethod
    def from_record(cls, payment: PaymentRecord) -> "PaymentResponse":
        return cls(
            id=payment.id,
            domain_id=payment.domain_id,
            amount=payment.amount,
            currency=payment.currency,
            status=PaymentStatusEnum(payment.status.value),
            gateway_order_id=payment.gateway_order_id,
            gateway_payment_id=payment.gateway_payment_id,
            created_at=payment.created_at,
        )


class OrderResponse(BaseModel):
    """Gateway order for the frontend checkout."""
    order_id: str
    amount: int
    currency: str
    key_id: str
    payment: PaymentResponse


class RenewalResponse(BaseModel):
    """Result of a verified payment."""
    domain: DomainResponse
    message: str = "Payment verified and domain renewed"


class NotificationResponse(BaseModel):
    """Notification log entry."""
    id: str
    domain_id: str | None = None
    type: NotificationTypeEnum
    message: str
    email_sent: bool
    read: bool
    created_at: datetime

    @classmethod
    def from_record(cls, notification: NotificationRecord) -> "NotificationResponse":
        return cls(
            id=notification.id,
            domain_id=notification.domain_id,
            type=NotificationTypeEnum(notification.type.value),
            message=notification.message,
            email_sent=notification.email_sent,
            read=notification.read,
            created_at=notification.created_at,
        )


class WhoisResponse(BaseModel):
    """WHOIS lookup result."""
    domain: str
    registrar: str | None = None
    expiry_date: datetime | None = None


class ItemOutcomeResponse(BaseModel):
    domain_id: str
    outcome: str
    detail: str = ""


class BatchReportResponse(BaseModel):
    """Result of a manually triggered job run."""
    job: str
    started_at: datetime
    interrupted: bool
    summary: dict[str, int]
    items: list[ItemOutcomeResponse]

    @classmethod
    def from_report(cls, report: BatchReport) -> "BatchReportResponse":
        return cls(
            job=report.job,
            started_at=report.started_at,
            interrupted=report.interrupted,
            summary=report.summary(),
            items=[
                ItemOutcomeResponse(
                    domain_id=item.domain_id,
                    outcome=item.outcome.value,
                    detail=item.detail,
                )
                for item in report.items
            ],
        )


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    version: str
    database: str
    scheduler: dict[str, Any] = {}


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: str | None = None
    code: str | None = None
