"""
Shared fixtures for the DomainWatch test suite.

Services are wired against an in-memory repository, a fixed clock and
fake external collaborators so every test controls time and I/O.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from domainwatch.config import Settings
from domainwatch.container import ServiceContainer, build_container
from domainwatch.domain.errors import TransientError
from domainwatch.domain.models import Account, DomainRecord, DomainStatus
from domainwatch.infrastructure.clock import FixedClock
from domainwatch.infrastructure.repository import InMemoryRepository, new_id
from domainwatch.main import create_app
from domainwatch.services.gateway import GatewayOrder, PaymentGateway
from domainwatch.services.mailer import EmailSender
from domainwatch.services.whois import WhoisLookup, WhoisResult

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
JWT_SECRET = "test-secret"


class FakeWhois(WhoisLookup):
    """Answers from a dict; unknown names get an empty result."""

    def __init__(self, results: dict[str, WhoisResult] | None = None) -> None:
        self.results = results or {}
        self.fail = False
        self.calls: list[str] = []

    async def lookup(self, domain_name: str) -> WhoisResult:
        self.calls.append(domain_name)
        if self.fail:
            raise TransientError("WHOIS down")
        return self.results.get(domain_name, WhoisResult())


class FakeGateway(PaymentGateway):
    def __init__(self) -> None:
        self.orders: list[GatewayOrder] = []
        self.fail = False

    async def create_order(self, amount: int, currency: str, receipt: str) -> GatewayOrder:
        if self.fail:
            raise TransientError("Payment gateway unavailable")
        order = GatewayOrder(
            order_id=f"order_{len(self.orders) + 1}",
            amount=amount,
            currency=currency,
        )
        self.orders.append(order)
        return order


class FakeEmailSender(EmailSender):
    """Records sent mail. Can be told to fail or to hang."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.fail_for: set[str] = set()
        self.hang = False

    async def send(self, to: str, subject: str, body: str) -> None:
        if self.hang:
            await asyncio.sleep(60)
        if to in self.fail_for:
            raise TransientError(f"Mail relay refused {to}")
        self.sent.append((to, subject, body))


def make_settings(**overrides) -> Settings:
    values = {
        "use_database": False,
        "enable_scheduler": False,
        "debug": True,
        "jwt_secret": JWT_SECRET,
        "gateway_key_id": "rzp_test_key",
        "gateway_key_secret": "rzp_test_secret",
        "renewal_price": 1000,
        "renewal_currency": "INR",
        "reminder_days": 7,
        "external_timeout_seconds": 0.2,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_domain(
    account_id: str,
    name: str,
    expiry: datetime | None,
    status: DomainStatus = DomainStatus.ACTIVE,
    **fields,
) -> DomainRecord:
    return DomainRecord(
        id=new_id(),
        account_id=account_id,
        name=name,
        status=status,
        expiry_date=expiry,
        created_at=NOW - timedelta(days=300),
        updated_at=NOW - timedelta(days=300),
        **fields,
    )


def auth_headers(account: Account) -> dict[str, str]:
    token = jwt.encode({"sub": account.id}, JWT_SECRET, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def whois() -> FakeWhois:
    return FakeWhois()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def container(settings, repository, clock, whois, gateway, email_sender) -> ServiceContainer:
    return build_container(
        settings,
        repository=repository,
        clock=clock,
        whois=whois,
        gateway=gateway,
        email_sender=email_sender,
    )


@pytest.fixture
async def account(repository) -> Account:
    return await repository.add_account(Account(
        id=new_id(),
        username="alice",
        email="alice@example.org",
        created_at=NOW - timedelta(days=400),
    ))


@pytest.fixture
async def other_account(repository) -> Account:
    return await repository.add_account(Account(
        id=new_id(),
        username="bob",
        email="bob@example.org",
        created_at=NOW - timedelta(days=400),
    ))


@pytest.fixture
async def client(container):
    """Async test client bound to the wired container."""
    async with AsyncClient(
        transport=ASGITransport(app=create_app(container)),
        base_url="http://test",
    ) as client:
        yield client
