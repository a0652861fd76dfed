"""
Payment gateway integration.

Only order creation happens server-side. The customer completes the
charge in the gateway checkout, which hands back (payment_id,
order_id, signature); the payments route verifies the signature and
passes the confirmation to the renewal transaction.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from domainwatch.domain.errors import TransientError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayOrder:
    """An order token issued by the gateway."""
    order_id: str
    amount: int
    currency: str


class PaymentGateway(ABC):
    """Abstract interface for the payment gateway."""

    @abstractmethod
    async def create_order(self, amount: int, currency: str, receipt: str) -> GatewayOrder:
        """
        Create an order for a charge in minor currency units.

        Raises:
            TransientError: If the gateway failed or timed out
        """
        pass


class RazorpayGateway(PaymentGateway):
    """Razorpay Orders API over HTTP basic auth."""

    def __init__(
        self,
        api_url: str,
        key_id: str,
        key_secret: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.key_id = key_id
        self.key_secret = key_secret
        self.timeout = timeout_seconds
        self._transport = transport

    async def create_order(self, amount: int, currency: str, receipt: str) -> GatewayOrder:
        payload = {"amount": amount, "currency": currency, "receipt": receipt}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.key_id, self.key_secret),
                transport=self._transport,
            ) as client:
                response = await client.post(f"{self.api_url}/orders", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Gateway order creation failed for {receipt}: {e}")
            raise TransientError("Payment gateway unavailable") from e
        except ValueError as e:
            logger.error(f"Gateway returned invalid JSON for {receipt}: {e}")
            raise TransientError("Payment gateway returned an invalid response") from e

        try:
            order = GatewayOrder(
                order_id=data["id"],
                amount=int(data["amount"]),
                currency=data["currency"],
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Gateway order response missing fields: {data}")
            raise TransientError("Payment gateway returned an invalid response") from e

        logger.info(f"Gateway order {order.order_id} created: {order.amount} {order.currency}")
        return order
