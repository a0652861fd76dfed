"""
Database configuration and session management with SQLAlchemy.

Uses async SQLAlchemy for non-blocking database operations.
Domain, payment and notification records are persisted here when
the service runs with use_database enabled.

Design Decisions:
- AsyncSession for non-blocking operations
- Session-per-operation inside the repository, commit per write
- ORM rows stay inside this module; services only see dataclasses
- Unique constraints back the duplicate-name and replay checks
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from domainwatch.config import get_settings
from domainwatch.domain.errors import InternalError
from domainwatch.domain.models import (
    Account,
    DomainRecord,
    DomainStatus,
    NotificationRecord,
    NotificationType,
    PaymentRecord,
    PaymentStatus,
)
from domainwatch.infrastructure.repository import Repository

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class AccountRow(Base):
    """Account provisioned by the auth layer."""
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True)
    email: Mapped[str] = mapped_column(String(256))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class DomainRow(Base):
    """A watched domain registration."""
    __tablename__ = "domains"
    __table_args__ = (
        UniqueConstraint("account_id", "name", name="uq_domains_account_name"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(36), ForeignKey("accounts.id"), index=True)
    name: Mapped[str] = mapped_column(String(253))
    registrar: Mapped[str | None] = mapped_column(String(256))
    expiry_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(String(16))  # active, expiring, expired
    tags: Mapped[list] = mapped_column(JSON, default=list)
    auto_renew: Mapped[bool] = mapped_column(Boolean, default=False)
    reminded_for_expiry: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class PaymentRow(Base):
    """
    A renewal payment.

    The unique gateway payment id is the idempotency key for renewals.
    """
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(36), ForeignKey("accounts.id"), index=True)
    # No FK: payment history outlives a hard-deleted domain
    domain_id: Mapped[str] = mapped_column(String(36), index=True)
    amount: Mapped[int] = mapped_column(Integer)
    currency: Mapped[str] = mapped_column(String(3))
    status: Mapped[str] = mapped_column(String(16))  # pending, completed, failed
    gateway_order_id: Mapped[str | None] = mapped_column(String(64), index=True)
    gateway_payment_id: Mapped[str | None] = mapped_column(String(64), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class NotificationRow(Base):
    """Entry in an account's notification log."""
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(36), ForeignKey("accounts.id"), index=True)
    domain_id: Mapped[str | None] = mapped_column(String(36))
    type: Mapped[str] = mapped_column(String(32))
    message: Mapped[str] = mapped_column(Text)
    email_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


def _aware(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on the way back; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _utc(value: datetime | None) -> datetime | None:
    """Convert to UTC before writing; SQLite stores only the wall time."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _account_from_row(row: AccountRow) -> Account:
    return Account(
        id=row.id,
        username=row.username,
        email=row.email,
        created_at=_aware(row.created_at),
    )


def _domain_from_row(row: DomainRow) -> DomainRecord:
    return DomainRecord(
        id=row.id,
        account_id=row.account_id,
        name=row.name,
        registrar=row.registrar,
        expiry_date=_aware(row.expiry_date),
        status=DomainStatus(row.status),
        tags=list(row.tags or []),
        auto_renew=row.auto_renew,
        reminded_for_expiry=_aware(row.reminded_for_expiry),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _apply_domain(row: DomainRow, domain: DomainRecord) -> None:
    row.account_id = domain.account_id
    row.name = domain.name
    row.registrar = domain.registrar
    row.expiry_date = _utc(domain.expiry_date)
    row.status = domain.status.value
    row.tags = list(domain.tags)
    row.auto_renew = domain.auto_renew
    row.reminded_for_expiry = _utc(domain.reminded_for_expiry)
    row.created_at = _utc(domain.created_at)
    row.updated_at = _utc(domain.updated_at)


def _payment_from_row(row: PaymentRow) -> PaymentRecord:
    return PaymentRecord(
        id=row.id,
        account_id=row.account_id,
        domain_id=row.domain_id,
        amount=row.amount,
        currency=row.currency,
        status=PaymentStatus(row.status),
        gateway_order_id=row.gateway_order_id,
        gateway_payment_id=row.gateway_payment_id,
        created_at=_aware(row.created_at),
    )


def _apply_payment(row: PaymentRow, payment: PaymentRecord) -> None:
    row.account_id = payment.account_id
    row.domain_id = payment.domain_id
    row.amount = payment.amount
    row.currency = payment.currency
    row.status = payment.status.value
    row.gateway_order_id = payment.gateway_order_id
    row.gateway_payment_id = payment.gateway_payment_id
    row.created_at = _utc(payment.created_at)


def _notification_from_row(row: NotificationRow) -> NotificationRecord:
    return NotificationRecord(
        id=row.id,
        account_id=row.account_id,
        domain_id=row.domain_id,
        type=NotificationType(row.type),
        message=row.message,
        email_sent=row.email_sent,
        read=row.read,
        created_at=_aware(row.created_at),
    )


def _apply_notification(row: NotificationRow, notification: NotificationRecord) -> None:
    row.account_id = notification.account_id
    row.domain_id = notification.domain_id
    row.type = notification.type.value
    row.message = notification.message
    row.email_sent = notification.email_sent
    row.read = notification.read
    row.created_at = _utc(notification.created_at)


class SqlAlchemyRepository(Repository):
    """
    Repository backed by an async SQLAlchemy session factory.

    Every call opens its own session; writes commit before returning.
    Database errors are logged and re-raised as InternalError.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Database operation failed: {e}")
            raise InternalError("Database operation failed") from e
        finally:
            await session.close()

    async def add_account(self, account: Account) -> Account:
        async with self._session() as session:
            session.add(AccountRow(
                id=account.id,
                username=account.username,
                email=account.email,
                created_at=_utc(account.created_at),
            ))
            await session.commit()
        return account

    async def get_account(self, account_id: str) -> Account | None:
        async with self._session() as session:
            row = await session.get(AccountRow, account_id)
            return _account_from_row(row) if row else None

    async def get_domain(self, domain_id: str) -> DomainRecord | None:
        async with self._session() as session:
            row = await session.get(DomainRow, domain_id)
            return _domain_from_row(row) if row else None

    async def list_domains(self, account_id: str) -> list[DomainRecord]:
        async with self._session() as session:
            result = await session.scalars(
                select(DomainRow)
                .where(DomainRow.account_id == account_id)
                .order_by(DomainRow.created_at)
            )
            return [_domain_from_row(row) for row in result]

    async def list_all_domains(self) -> list[DomainRecord]:
        async with self._session() as session:
            result = await session.scalars(select(DomainRow).order_by(DomainRow.created_at))
            return [_domain_from_row(row) for row in result]

    async def find_domain_by_name(self, account_id: str, name: str) -> DomainRecord | None:
        async with self._session() as session:
            row = await session.scalar(
                select(DomainRow).where(
                    DomainRow.account_id == account_id,
                    DomainRow.name == name,
                )
            )
            return _domain_from_row(row) if row else None

    async def insert_domain(self, domain: DomainRecord) -> DomainRecord:
        async with self._session() as session:
            row = DomainRow(id=domain.id)
            _apply_domain(row, domain)
            session.add(row)
            await session.commit()
        return domain

    async def update_domain(self, domain: DomainRecord) -> DomainRecord:
        async with self._session() as session:
            row = await session.get(DomainRow, domain.id)
            if row is None:
                raise KeyError(f"Domain not found: {domain.id}")
            _apply_domain(row, domain)
            await session.commit()
        return domain

    async def delete_domain(self, domain_id: str) -> bool:
        async with self._session() as session:
            row = await session.get(DomainRow, domain_id)
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
            return True

    async def insert_payment(self, payment: PaymentRecord) -> PaymentRecord:
        async with self._session() as session:
            row = PaymentRow(id=payment.id)
            _apply_payment(row, payment)
            session.add(row)
            await session.commit()
        return payment

    async def update_payment(self, payment: PaymentRecord) -> PaymentRecord:
        async with self._session() as session:
            row = await session.get(PaymentRow, payment.id)
            if row is None:
                raise KeyError(f"Payment not found: {payment.id}")
            _apply_payment(row, payment)
            await session.commit()
        return payment

    async def delete_payment(self, payment_id: str) -> bool:
        async with self._session() as session:
            row = await session.get(PaymentRow, payment_id)
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
            return True

    async def list_payments(self, account_id: str) -> list[PaymentRecord]:
        async with self._session() as session:
            result = await session.scalars(
                select(PaymentRow)
                .where(PaymentRow.account_id == account_id)
                .order_by(PaymentRow.created_at)
            )
            return [_payment_from_row(row) for row in result]

    async def find_payment_by_gateway_payment_id(self, payment_id: str) -> PaymentRecord | None:
        async with self._session() as session:
            row = await session.scalar(
                select(PaymentRow).where(PaymentRow.gateway_payment_id == payment_id)
            )
            return _payment_from_row(row) if row else None

    async def find_payment_by_gateway_order_id(self, order_id: str) -> PaymentRecord | None:
        async with self._session() as session:
            row = await session.scalar(
                select(PaymentRow).where(PaymentRow.gateway_order_id == order_id)
            )
            return _payment_from_row(row) if row else None

    async def insert_notification(self, notification: NotificationRecord) -> NotificationRecord:
        async with self._session() as session:
            row = NotificationRow(id=notification.id)
            _apply_notification(row, notification)
            session.add(row)
            await session.commit()
        return notification

    async def get_notification(self, notification_id: str) -> NotificationRecord | None:
        async with self._session() as session:
            row = await session.get(NotificationRow, notification_id)
            return _notification_from_row(row) if row else None

    async def list_notifications(self, account_id: str) -> list[NotificationRecord]:
        async with self._session() as session:
            result = await session.scalars(
                select(NotificationRow)
                .where(NotificationRow.account_id == account_id)
                .order_by(NotificationRow.created_at.desc())
            )
            return [_notification_from_row(row) for row in result]

    async def update_notification(self, notification: NotificationRecord) -> NotificationRecord:
        async with self._session() as session:
            row = await session.get(NotificationRow, notification.id)
            if row is None:
                raise KeyError(f"Notification not found: {notification.id}")
            _apply_notification(row, notification)
            await session.commit()
        return notification


# Engine and session factory (initialized lazily)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine, with pool sizing for server databases."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
    )


def get_engine() -> AsyncEngine:
    """Get or create the async database engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine_for(settings.database_url, echo=settings.debug)
        logger.info(f"Database engine created for {_engine.url.render_as_string(hide_password=True)}")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory for creating database sessions."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def init_db(engine: AsyncEngine | None = None) -> None:
    """
    Initialize database tables.

    Call this on application startup to ensure tables exist.
    In production, use Alembic migrations instead.
    """
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")


async def close_db() -> None:
    """Close database connections on shutdown."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
    logger.info("Database connections closed")
