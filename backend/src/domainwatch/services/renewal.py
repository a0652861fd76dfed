"""
Renewal transaction.

Applies a gateway-confirmed payment to a domain: records the payment,
extends the expiry by one registration term, restores ACTIVE status and
logs a PAYMENT_SUCCESS notification.

Design Decisions:
- The gateway payment id is the idempotency key; a replayed
  confirmation raises ConflictError instead of extending twice
- Ownership failures raise NotFoundError, never a "forbidden" error,
  so other accounts' domain ids cannot be discovered
- Locks are taken payment id first, then domain id, always in that
  order, so concurrent renewals cannot deadlock
- The payment and the domain extension succeed or fail together; if a
  later write fails the earlier ones are undone, so a retry with the
  same confirmation is not mistaken for a replay
"""

import copy
import logging

from domainwatch.domain.errors import ConflictError, NotFoundError, RejectedError
from domainwatch.domain.lifecycle import renewed_expiry
from domainwatch.domain.models import (
    DomainRecord,
    DomainStatus,
    NotificationType,
    PaymentConfirmation,
    PaymentRecord,
    PaymentStatus,
)
from domainwatch.infrastructure.clock import Clock, SystemClock
from domainwatch.infrastructure.locks import KeyedLocks
from domainwatch.infrastructure.repository import Repository, new_id

from .gateway import PaymentGateway
from .notifications import NotificationLog

logger = logging.getLogger(__name__)


class RenewalService:
    """Order creation and confirmed-payment renewal for domains."""

    def __init__(
        self,
        repository: Repository,
        notifications: NotificationLog,
        gateway: PaymentGateway,
        locks: KeyedLocks,
        clock: Clock | None = None,
        price: int = 1000,
        currency: str = "INR",
    ) -> None:
        self.repository = repository
        self.notifications = notifications
        self.gateway = gateway
        self.locks = locks
        self.clock = clock or SystemClock()
        self.price = price
        self.currency = currency

    async def _owned_domain(self, account_id: str, domain_id: str) -> DomainRecord:
        domain = await self.repository.get_domain(domain_id)
        if domain is None or domain.account_id != account_id:
            raise NotFoundError("Domain not found")
        return domain

    async def create_order(self, account_id: str, domain_id: str) -> PaymentRecord:
        """
        Open a gateway order for renewing a domain.

        Stores a PENDING payment carrying the gateway order id so the
        confirmation can later be checked against it.

        Raises:
            NotFoundError: Domain absent or not owned by the account
            TransientError: Gateway unavailable
        """
        domain = await self._owned_domain(account_id, domain_id)
        now = self.clock.now()

        # Gateway receipts are limited to 40 characters
        receipt = f"dom_{domain.id[:8]}_{int(now.timestamp())}"
        order = await self.gateway.create_order(self.price, self.currency, receipt)

        payment = PaymentRecord(
            id=new_id(),
            account_id=account_id,
            domain_id=domain.id,
            amount=order.amount,
            currency=order.currency,
            status=PaymentStatus.PENDING,
            gateway_order_id=order.order_id,
            created_at=now,
        )
        await self.repository.insert_payment(payment)
        logger.info(f"Renewal order {order.order_id} opened for {domain.name}")
        return payment

    async def renew(
        self,
        account_id: str,
        domain_id: str,
        confirmation: PaymentConfirmation,
    ) -> DomainRecord:
        """
        Apply a confirmed payment to a domain.

        Args:
            account_id: Caller's account
            domain_id: Domain being renewed
            confirmation: Signature-verified gateway confirmation

        Returns:
            The renewed domain record

        Raises:
            NotFoundError: Domain absent or not owned by the account
            ConflictError: Payment id already recorded, or order settled
            RejectedError: Amount, currency or order ownership mismatch
        """
        async with self.locks.hold(f"payment:{confirmation.payment_id}"):
            async with self.locks.hold(domain_id):
                return await self._renew_locked(account_id, domain_id, confirmation)

    async def _renew_locked(
        self,
        account_id: str,
        domain_id: str,
        confirmation: PaymentConfirmation,
    ) -> DomainRecord:
        domain = await self._owned_domain(account_id, domain_id)
        now = self.clock.now()

        replay = await self.repository.find_payment_by_gateway_payment_id(confirmation.payment_id)
        if replay is not None:
            logger.warning(
                f"Replayed confirmation {confirmation.payment_id} for {domain.name} rejected"
            )
            raise ConflictError("Payment already applied")

        pending = await self.repository.find_payment_by_gateway_order_id(confirmation.order_id)
        if pending is not None:
            payment = self._settle_pending(pending, account_id, domain_id, confirmation)
            await self.repository.update_payment(payment)
        else:
            payment = PaymentRecord(
                id=new_id(),
                account_id=account_id,
                domain_id=domain.id,
                amount=confirmation.amount,
                currency=confirmation.currency,
                status=PaymentStatus.COMPLETED,
                gateway_order_id=confirmation.order_id,
                gateway_payment_id=confirmation.payment_id,
                created_at=now,
            )
            await self.repository.insert_payment(payment)

        original = copy.deepcopy(domain)
        domain.expiry_date = renewed_expiry(domain.expiry_date, now)
        domain.status = DomainStatus.ACTIVE
        domain.updated_at = now
        try:
            await self.repository.update_domain(domain)
        except Exception:
            logger.exception(f"Extending {domain.name} failed; undoing payment {payment.id}")
            await self._undo_payment(payment, settled=pending is not None)
            raise

        try:
            await self.notifications.append(
                account_id=account_id,
                domain_id=domain.id,
                type=NotificationType.PAYMENT_SUCCESS,
                message=f"Payment successful for domain renewal of {domain.name}",
            )
        except Exception:
            logger.exception(f"Recording renewal of {domain.name} failed; rolling back")
            await self.repository.update_domain(original)
            await self._undo_payment(payment, settled=pending is not None)
            raise

        logger.info(
            f"Renewed {domain.name}: expiry {original.expiry_date} -> {domain.expiry_date}"
        )
        return domain

    async def _undo_payment(self, payment: PaymentRecord, settled: bool) -> None:
        """Return the payment store to its state before the confirmation."""
        if settled:
            payment.status = PaymentStatus.PENDING
            payment.gateway_payment_id = None
            await self.repository.update_payment(payment)
        else:
            await self.repository.delete_payment(payment.id)

    def _settle_pending(
        self,
        pending: PaymentRecord,
        account_id: str,
        domain_id: str,
        confirmation: PaymentConfirmation,
    ) -> PaymentRecord:
        """Check a confirmation against its order and complete the payment."""
        if pending.account_id != account_id or pending.domain_id != domain_id:
            raise RejectedError("Order does not belong to this domain")
        if pending.status == PaymentStatus.COMPLETED:
            raise ConflictError("Order already settled")
        if pending.status == PaymentStatus.FAILED:
            raise RejectedError("Order has failed")
        if pending.amount != confirmation.amount or pending.currency != confirmation.currency:
            logger.warning(
                f"Confirmation for order {pending.gateway_order_id} does not match: "
                f"{confirmation.amount} {confirmation.currency} vs "
                f"{pending.amount} {pending.currency}"
            )
            raise RejectedError("Amount or currency does not match the order")

        pending.status = PaymentStatus.COMPLETED
        pending.gateway_payment_id = confirmation.payment_id
        return pending

    async def fail_order(self, account_id: str, order_id: str) -> PaymentRecord:
        """
        Mark a pending order as failed after the gateway reported it.

        Raises:
            NotFoundError: No such order for this account
            ConflictError: Order already settled
        """
        payment = await self.repository.find_payment_by_gateway_order_id(order_id)
        if payment is None or payment.account_id != account_id:
            raise NotFoundError("Order not found")
        if payment.status == PaymentStatus.FAILED:
            return payment
        if payment.is_terminal:
            raise ConflictError("Order already settled")

        payment.status = PaymentStatus.FAILED
        return await self.repository.update_payment(payment)

    async def list_payments(self, account_id: str) -> list[PaymentRecord]:
        return await self.repository.list_payments(account_id)
