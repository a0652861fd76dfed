"""
API integration tests.

Requests go through the full FastAPI app with an in-memory store,
a fixed clock and fake external services.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from domainwatch.container import build_container
from domainwatch.domain.models import DomainStatus, NotificationType
from domainwatch.domain.signatures import compute_payment_signature
from domainwatch.main import create_app
from domainwatch.services.whois import WhoisResult

from .conftest import JWT_SECRET, NOW, auth_headers, make_domain, make_settings


class TestHealthEndpoints:

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "in-memory"
        assert set(data["scheduler"]) == {"reconciliation", "reminders"}


class TestAuth:

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/v1/domains")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_secret(self, client: AsyncClient, account):
        token = jwt.encode({"sub": account.id}, "not-the-secret", algorithm="HS256")
        response = await client.get(
            "/api/v1/domains", headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self, client: AsyncClient, account):
        token = jwt.encode(
            {"sub": account.id, "exp": datetime.now(timezone.utc) - timedelta(hours=1)},
            JWT_SECRET,
            algorithm="HS256",
        )
        response = await client.get(
            "/api/v1/domains", headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Token expired"

    @pytest.mark.asyncio
    async def test_unknown_account(self, client: AsyncClient):
        token = jwt.encode({"sub": "ghost"}, JWT_SECRET, algorithm="HS256")
        response = await client.get(
            "/api/v1/domains", headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401


class TestDomainEndpoints:

    @pytest.mark.asyncio
    async def test_add_and_list(self, client: AsyncClient, account, whois):
        whois.results["example.com"] = WhoisResult(
            registrar="Example Registrar",
            expiry_date=NOW + timedelta(days=45),
        )

        response = await client.post(
            "/api/v1/domains",
            json={"name": "Example.com", "tags": ["prod"]},
            headers=auth_headers(account),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "example.com"
        assert data["status"] == "active"
        assert data["days_until_expiry"] == 45
        assert data["progress_percentage"] == pytest.approx(12.33)
        assert data["tags"] == ["prod"]

        listing = await client.get("/api/v1/domains", headers=auth_headers(account))
        assert [d["id"] for d in listing.json()] == [data["id"]]

    @pytest.mark.asyncio
    async def test_duplicate_is_conflict(self, client: AsyncClient, account):
        body = {"name": "twice.com"}
        await client.post("/api/v1/domains", json=body, headers=auth_headers(account))
        response = await client.post("/api/v1/domains", json=body, headers=auth_headers(account))

        assert response.status_code == 409
        assert response.json()["error"] == "ConflictError"

    @pytest.mark.asyncio
    async def test_invalid_name_is_rejected(self, client: AsyncClient, account):
        response = await client.post(
            "/api/v1/domains", json={"name": "not a domain"}, headers=auth_headers(account),
        )
        assert response.status_code == 422
        assert response.json()["code"] == "rejected"

    @pytest.mark.asyncio
    async def test_other_accounts_domain_is_hidden(
        self, client: AsyncClient, repository, account, other_account,
    ):
        domain = await repository.insert_domain(
            make_domain(other_account.id, "theirs.com", NOW + timedelta(days=90))
        )

        response = await client.get(f"/api/v1/domains/{domain.id}", headers=auth_headers(account))
        assert response.status_code == 404

        response = await client.delete(f"/api/v1/domains/{domain.id}", headers=auth_headers(account))
        assert response.status_code == 404
        assert await repository.get_domain(domain.id) is not None

    @pytest.mark.asyncio
    async def test_update_expiry_changes_status(self, client: AsyncClient, repository, account):
        domain = await repository.insert_domain(
            make_domain(account.id, "edit.com", NOW + timedelta(days=90))
        )

        response = await client.put(
            f"/api/v1/domains/{domain.id}",
            json={"expiry_date": (NOW + timedelta(days=10)).isoformat()},
            headers=auth_headers(account),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "expiring"
        assert data["days_until_expiry"] == 10

    @pytest.mark.asyncio
    async def test_update_can_clear_registrar(self, client: AsyncClient, repository, account):
        domain = await repository.insert_domain(make_domain(
            account.id, "clear.com", NOW + timedelta(days=90), registrar="Old Registrar",
        ))

        response = await client.put(
            f"/api/v1/domains/{domain.id}",
            json={"registrar": None},
            headers=auth_headers(account),
        )

        assert response.json()["registrar"] is None
        assert response.json()["expiry_date"] is not None

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient, repository, account):
        domain = await repository.insert_domain(make_domain(account.id, "bye.com", None))

        response = await client.delete(f"/api/v1/domains/{domain.id}", headers=auth_headers(account))

        assert response.status_code == 200
        assert await repository.get_domain(domain.id) is None

    @pytest.mark.asyncio
    async def test_dashboard_stats(self, client: AsyncClient, repository, account):
        await repository.insert_domain(make_domain(account.id, "a.com", NOW + timedelta(days=45)))
        await repository.insert_domain(make_domain(
            account.id, "b.com", NOW - timedelta(days=4), status=DomainStatus.EXPIRED,
        ))

        response = await client.get("/api/v1/dashboard/stats", headers=auth_headers(account))

        assert response.json() == {
            "total_domains": 2,
            "active_domains": 1,
            "expiring_soon": 0,
            "expired_domains": 1,
        }


class TestPaymentEndpoints:

    async def _order(self, client, account, domain_id):
        response = await client.post(
            "/api/v1/payments/orders",
            json={"domain_id": domain_id},
            headers=auth_headers(account),
        )
        assert response.status_code == 201
        return response.json()

    def _verify_body(self, order, domain_id, payment_id="pay_1", **overrides):
        body = {
            "payment_id": payment_id,
            "order_id": order["order_id"],
            "signature": compute_payment_signature(order["order_id"], payment_id, "rzp_test_secret"),
            "domain_id": domain_id,
            "amount": order["amount"],
        }
        body.update(overrides)
        return body

    @pytest.mark.asyncio
    async def test_order_then_verify_renews(self, client: AsyncClient, repository, account):
        domain = await repository.insert_domain(make_domain(
            account.id, "testsite.org", NOW - timedelta(days=5), status=DomainStatus.EXPIRED,
        ))
        order = await self._order(client, account, domain.id)
        assert order["key_id"] == "rzp_test_key"
        assert order["payment"]["status"] == "pending"

        response = await client.post(
            "/api/v1/payments/verify",
            json=self._verify_body(order, domain.id),
            headers=auth_headers(account),
        )

        assert response.status_code == 200
        renewed = response.json()["domain"]
        assert renewed["status"] == "active"
        assert renewed["days_until_expiry"] == 360

        payments = await client.get("/api/v1/payments", headers=auth_headers(account))
        assert [p["status"] for p in payments.json()] == ["completed"]

    @pytest.mark.asyncio
    async def test_replay_is_conflict(self, client: AsyncClient, repository, account):
        domain = await repository.insert_domain(
            make_domain(account.id, "once.com", NOW + timedelta(days=20))
        )
        order = await self._order(client, account, domain.id)
        body = self._verify_body(order, domain.id)

        first = await client.post("/api/v1/payments/verify", json=body, headers=auth_headers(account))
        second = await client.post("/api/v1/payments/verify", json=body, headers=auth_headers(account))

        assert first.status_code == 200
        assert second.status_code == 409

    @pytest.mark.asyncio
    async def test_bad_signature(self, client: AsyncClient, repository, account):
        domain = await repository.insert_domain(
            make_domain(account.id, "forged.com", NOW + timedelta(days=20))
        )
        order = await self._order(client, account, domain.id)

        response = await client.post(
            "/api/v1/payments/verify",
            json=self._verify_body(order, domain.id, signature="0" * 64),
            headers=auth_headers(account),
        )

        assert response.status_code == 400
        assert (await repository.get_domain(domain.id)).expiry_date == NOW + timedelta(days=20)

    @pytest.mark.asyncio
    async def test_amount_mismatch(self, client: AsyncClient, repository, account):
        domain = await repository.insert_domain(
            make_domain(account.id, "cheap.com", NOW + timedelta(days=20))
        )
        order = await self._order(client, account, domain.id)

        response = await client.post(
            "/api/v1/payments/verify",
            json=self._verify_body(order, domain.id, amount=1),
            headers=auth_headers(account),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_gateway_outage(self, client: AsyncClient, repository, account, gateway):
        domain = await repository.insert_domain(
            make_domain(account.id, "shop.in", NOW + timedelta(days=20))
        )
        gateway.fail = True

        response = await client.post(
            "/api/v1/payments/orders",
            json={"domain_id": domain.id},
            headers=auth_headers(account),
        )

        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_fail_order(self, client: AsyncClient, repository, account):
        domain = await repository.insert_domain(
            make_domain(account.id, "declined.com", NOW + timedelta(days=20))
        )
        order = await self._order(client, account, domain.id)

        response = await client.post(
            "/api/v1/payments/fail",
            json={"order_id": order["order_id"]},
            headers=auth_headers(account),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "failed"


class TestNotificationEndpoints:

    @pytest.mark.asyncio
    async def test_list_and_mark_read(self, client: AsyncClient, container, account, other_account):
        notification = await container.notifications.append(
            account_id=account.id,
            type=NotificationType.DOMAIN_EXPIRED,
            message="Domain a.com is expired",
        )

        listing = await client.get("/api/v1/notifications", headers=auth_headers(account))
        assert [n["id"] for n in listing.json()] == [notification.id]
        assert listing.json()[0]["read"] is False

        response = await client.put(
            f"/api/v1/notifications/{notification.id}/read", headers=auth_headers(account),
        )
        assert response.status_code == 200
        assert response.json()["read"] is True

        response = await client.put(
            f"/api/v1/notifications/{notification.id}/read", headers=auth_headers(other_account),
        )
        assert response.status_code == 404


class TestWhoisEndpoint:

    @pytest.mark.asyncio
    async def test_lookup(self, client: AsyncClient, account, whois):
        whois.results["example.com"] = WhoisResult(registrar="Example Registrar")

        response = await client.get("/api/v1/whois/EXAMPLE.com", headers=auth_headers(account))

        assert response.status_code == 200
        assert response.json()["registrar"] == "Example Registrar"
        assert response.json()["expiry_date"] is None

    @pytest.mark.asyncio
    async def test_outage_is_503(self, client: AsyncClient, account, whois):
        whois.fail = True
        response = await client.get("/api/v1/whois/example.com", headers=auth_headers(account))
        assert response.status_code == 503


class TestJobEndpoints:

    @pytest.mark.asyncio
    async def test_sweep_report(self, client: AsyncClient, repository, account):
        await repository.insert_domain(make_domain(account.id, "mystore.com", NOW + timedelta(days=15)))
        await repository.insert_domain(make_domain(account.id, "example.com", NOW + timedelta(days=45)))

        response = await client.post("/api/v1/jobs/sweep")

        assert response.status_code == 200
        data = response.json()
        assert data["job"] == "reconciliation"
        assert data["summary"]["transitioned"] == 1
        assert data["summary"]["unchanged"] == 1

    @pytest.mark.asyncio
    async def test_reminder_report(self, client: AsyncClient, repository, account, email_sender):
        await repository.insert_domain(make_domain(account.id, "soon.com", NOW + timedelta(days=3)))

        response = await client.post("/api/v1/jobs/reminders")

        assert response.json()["summary"]["reminded"] == 1
        assert len(email_sender.sent) == 1

    @pytest.mark.asyncio
    async def test_jobs_hidden_outside_debug(self, repository, clock, whois, gateway, email_sender):
        container = build_container(
            make_settings(debug=False),
            repository=repository,
            clock=clock,
            whois=whois,
            gateway=gateway,
            email_sender=email_sender,
        )
        async with AsyncClient(
            transport=ASGITransport(app=create_app(container)),
            base_url="http://test",
        ) as client:
            response = await client.post("/api/v1/jobs/sweep")

        assert response.status_code == 404
