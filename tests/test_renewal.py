"""
Tests for the renewal transaction and order handling.
"""

import asyncio
from datetime import timedelta

import pytest

from domainwatch.domain.errors import ConflictError, NotFoundError, RejectedError, TransientError
from domainwatch.domain.models import (
    DomainStatus,
    NotificationType,
    PaymentConfirmation,
    PaymentStatus,
)

from domainwatch.infrastructure.repository import InMemoryRepository

from .conftest import NOW, make_domain


class FailingRepository(InMemoryRepository):
    """Fails the next N domain updates or notification inserts."""

    def __init__(self) -> None:
        super().__init__()
        self.domain_failures = 0
        self.notification_failures = 0

    async def update_domain(self, domain):
        if self.domain_failures:
            self.domain_failures -= 1
            raise RuntimeError("disk full")
        return await super().update_domain(domain)

    async def insert_notification(self, notification):
        if self.notification_failures:
            self.notification_failures -= 1
            raise RuntimeError("log unavailable")
        return await super().insert_notification(notification)


def confirmation(payment_id="pay_1", order_id="order_1", amount=1000, currency="INR"):
    return PaymentConfirmation(
        payment_id=payment_id,
        order_id=order_id,
        amount=amount,
        currency=currency,
    )


class TestRenew:

    @pytest.mark.asyncio
    async def test_lapsed_domain_renews_from_old_expiry(self, container, repository, account):
        domain = await repository.insert_domain(make_domain(
            account.id, "testsite.org", NOW - timedelta(days=5), status=DomainStatus.EXPIRED,
        ))

        renewed = await container.renewals.renew(account.id, domain.id, confirmation())

        assert renewed.expiry_date == NOW + timedelta(days=360)
        assert renewed.status == DomainStatus.ACTIVE
        assert renewed.updated_at == NOW

        stored = await repository.get_domain(domain.id)
        assert stored.expiry_date == NOW + timedelta(days=360)

        payments = await repository.list_payments(account.id)
        assert len(payments) == 1
        assert payments[0].status == PaymentStatus.COMPLETED
        assert payments[0].gateway_payment_id == "pay_1"

        notifications = await repository.list_notifications(account.id)
        assert [n.type for n in notifications] == [NotificationType.PAYMENT_SUCCESS]
        assert notifications[0].message == "Payment successful for domain renewal of testsite.org"

    @pytest.mark.asyncio
    async def test_unknown_expiry_renews_from_now(self, container, repository, account):
        domain = await repository.insert_domain(make_domain(account.id, "fresh.dev", None))

        renewed = await container.renewals.renew(account.id, domain.id, confirmation())

        assert renewed.expiry_date == NOW + timedelta(days=365)

    @pytest.mark.asyncio
    async def test_replayed_payment_is_rejected(self, container, repository, account):
        domain = await repository.insert_domain(
            make_domain(account.id, "once.com", NOW + timedelta(days=10))
        )
        await container.renewals.renew(account.id, domain.id, confirmation())

        with pytest.raises(ConflictError):
            await container.renewals.renew(account.id, domain.id, confirmation())

        stored = await repository.get_domain(domain.id)
        assert stored.expiry_date == NOW + timedelta(days=375)
        assert len(await repository.list_payments(account.id)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_replays_apply_once(self, container, repository, account):
        domain = await repository.insert_domain(
            make_domain(account.id, "race.com", NOW + timedelta(days=10))
        )

        results = await asyncio.gather(
            container.renewals.renew(account.id, domain.id, confirmation()),
            container.renewals.renew(account.id, domain.id, confirmation()),
            return_exceptions=True,
        )

        assert sum(isinstance(r, ConflictError) for r in results) == 1
        stored = await repository.get_domain(domain.id)
        assert stored.expiry_date == NOW + timedelta(days=375)

    @pytest.mark.asyncio
    async def test_other_accounts_domain_is_not_found(
        self, container, repository, account, other_account,
    ):
        domain = await repository.insert_domain(
            make_domain(other_account.id, "theirs.com", NOW + timedelta(days=10))
        )

        with pytest.raises(NotFoundError):
            await container.renewals.renew(account.id, domain.id, confirmation())

        assert await repository.list_payments(account.id) == []

    @pytest.mark.asyncio
    async def test_missing_domain_is_not_found(self, container, account):
        with pytest.raises(NotFoundError):
            await container.renewals.renew(account.id, "no-such-id", confirmation())


class TestOrders:

    @pytest.mark.asyncio
    async def test_create_order_stores_pending_payment(
        self, container, repository, account, gateway,
    ):
        domain = await repository.insert_domain(
            make_domain(account.id, "shop.in", NOW + timedelta(days=20))
        )

        payment = await container.renewals.create_order(account.id, domain.id)

        assert payment.status == PaymentStatus.PENDING
        assert payment.gateway_order_id == "order_1"
        assert payment.amount == 1000
        assert payment.currency == "INR"
        assert gateway.orders[0].order_id == "order_1"

    @pytest.mark.asyncio
    async def test_gateway_outage_is_transient(self, container, repository, account, gateway):
        domain = await repository.insert_domain(
            make_domain(account.id, "shop.in", NOW + timedelta(days=20))
        )
        gateway.fail = True

        with pytest.raises(TransientError):
            await container.renewals.create_order(account.id, domain.id)
        assert await repository.list_payments(account.id) == []

    @pytest.mark.asyncio
    async def test_confirmation_settles_pending_order(self, container, repository, account):
        domain = await repository.insert_domain(
            make_domain(account.id, "shop.in", NOW + timedelta(days=20))
        )
        order = await container.renewals.create_order(account.id, domain.id)

        await container.renewals.renew(account.id, domain.id, confirmation())

        payments = await repository.list_payments(account.id)
        assert len(payments) == 1
        assert payments[0].id == order.id
        assert payments[0].status == PaymentStatus.COMPLETED
        assert payments[0].gateway_payment_id == "pay_1"

    @pytest.mark.asyncio
    async def test_amount_mismatch_is_rejected(self, container, repository, account):
        domain = await repository.insert_domain(
            make_domain(account.id, "shop.in", NOW + timedelta(days=20))
        )
        await container.renewals.create_order(account.id, domain.id)

        with pytest.raises(RejectedError):
            await container.renewals.renew(account.id, domain.id, confirmation(amount=1))

        stored = await repository.get_domain(domain.id)
        assert stored.expiry_date == NOW + timedelta(days=20)
        payments = await repository.list_payments(account.id)
        assert payments[0].status == PaymentStatus.PENDING

    @pytest.mark.asyncio
    async def test_currency_mismatch_is_rejected(self, container, repository, account):
        domain = await repository.insert_domain(
            make_domain(account.id, "shop.in", NOW + timedelta(days=20))
        )
        await container.renewals.create_order(account.id, domain.id)

        with pytest.raises(RejectedError):
            await container.renewals.renew(account.id, domain.id, confirmation(currency="USD"))

    @pytest.mark.asyncio
    async def test_order_for_another_domain_is_rejected(self, container, repository, account):
        first = await repository.insert_domain(
            make_domain(account.id, "one.com", NOW + timedelta(days=20))
        )
        second = await repository.insert_domain(
            make_domain(account.id, "two.com", NOW + timedelta(days=20))
        )
        await container.renewals.create_order(account.id, first.id)

        with pytest.raises(RejectedError):
            await container.renewals.renew(account.id, second.id, confirmation())

    @pytest.mark.asyncio
    async def test_failed_order(self, container, repository, account):
        domain = await repository.insert_domain(
            make_domain(account.id, "shop.in", NOW + timedelta(days=20))
        )
        await container.renewals.create_order(account.id, domain.id)

        failed = await container.renewals.fail_order(account.id, "order_1")
        again = await container.renewals.fail_order(account.id, "order_1")

        assert failed.status == PaymentStatus.FAILED
        assert again.status == PaymentStatus.FAILED
        with pytest.raises(RejectedError):
            await container.renewals.renew(account.id, domain.id, confirmation())

    @pytest.mark.asyncio
    async def test_completed_order_cannot_fail(self, container, repository, account):
        domain = await repository.insert_domain(
            make_domain(account.id, "shop.in", NOW + timedelta(days=20))
        )
        await container.renewals.create_order(account.id, domain.id)
        await container.renewals.renew(account.id, domain.id, confirmation())

        with pytest.raises(ConflictError):
            await container.renewals.fail_order(account.id, "order_1")

    @pytest.mark.asyncio
    async def test_unknown_order_is_not_found(self, container, account):
        with pytest.raises(NotFoundError):
            await container.renewals.fail_order(account.id, "order_404")


class TestRenewRollback:

    @pytest.fixture
    def repository(self) -> FailingRepository:
        return FailingRepository()

    @pytest.mark.asyncio
    async def test_failed_extension_can_be_retried(self, container, repository, account):
        domain = await repository.insert_domain(
            make_domain(account.id, "retry.com", NOW + timedelta(days=10))
        )
        repository.domain_failures = 1

        with pytest.raises(RuntimeError):
            await container.renewals.renew(account.id, domain.id, confirmation())

        assert await repository.list_payments(account.id) == []
        assert (await repository.get_domain(domain.id)).expiry_date == NOW + timedelta(days=10)

        renewed = await container.renewals.renew(account.id, domain.id, confirmation())

        assert renewed.expiry_date == NOW + timedelta(days=375)
        payments = await repository.list_payments(account.id)
        assert [p.status for p in payments] == [PaymentStatus.COMPLETED]
        assert len(await repository.list_notifications(account.id)) == 1

    @pytest.mark.asyncio
    async def test_failed_extension_reopens_pending_order(self, container, repository, account):
        domain = await repository.insert_domain(
            make_domain(account.id, "shop.in", NOW + timedelta(days=20))
        )
        order = await container.renewals.create_order(account.id, domain.id)
        repository.domain_failures = 1

        with pytest.raises(RuntimeError):
            await container.renewals.renew(account.id, domain.id, confirmation())

        reopened = await repository.find_payment_by_gateway_order_id("order_1")
        assert reopened.id == order.id
        assert reopened.status == PaymentStatus.PENDING
        assert reopened.gateway_payment_id is None

        await container.renewals.renew(account.id, domain.id, confirmation())

        settled = await repository.find_payment_by_gateway_payment_id("pay_1")
        assert settled.id == order.id
        assert settled.status == PaymentStatus.COMPLETED
        assert (await repository.get_domain(domain.id)).expiry_date == NOW + timedelta(days=385)

    @pytest.mark.asyncio
    async def test_failed_notification_undoes_renewal(self, container, repository, account):
        domain = await repository.insert_domain(make_domain(
            account.id, "lapsed.org", NOW - timedelta(days=5), status=DomainStatus.EXPIRED,
        ))
        repository.notification_failures = 1

        with pytest.raises(RuntimeError):
            await container.renewals.renew(account.id, domain.id, confirmation())

        stored = await repository.get_domain(domain.id)
        assert stored.expiry_date == NOW - timedelta(days=5)
        assert stored.status == DomainStatus.EXPIRED
        assert await repository.list_payments(account.id) == []

        renewed = await container.renewals.renew(account.id, domain.id, confirmation())

        assert renewed.expiry_date == NOW + timedelta(days=360)
        assert len(await repository.list_notifications(account.id)) == 1

