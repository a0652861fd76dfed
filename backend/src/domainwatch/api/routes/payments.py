"""
Renewal payment endpoints.

Flow:
1. POST /payments/orders opens a gateway order for a domain
2. The frontend runs the gateway checkout with that order id
3. POST /payments/verify checks the checkout signature and applies
   the renewal transaction
"""

import logging

from fastapi import APIRouter, HTTPException, status

from domainwatch.api.deps import ContainerDep, CurrentAccount
from domainwatch.api.routes.domains import domain_response
from domainwatch.api.schemas import (
    CreateOrderRequest,
    FailOrderRequest,
    OrderResponse,
    PaymentResponse,
    RenewalResponse,
    VerifyPaymentRequest,
)
from domainwatch.domain.models import PaymentConfirmation
from domainwatch.domain.signatures import verify_payment_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/orders",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Domain not found"},
        503: {"description": "Payment gateway unavailable"},
    },
)
async def create_order(
    request: CreateOrderRequest,
    account: CurrentAccount,
    container: ContainerDep,
) -> OrderResponse:
    """Open a renewal order with the payment gateway."""
    payment = await container.renewals.create_order(account.id, request.domain_id)
    return OrderResponse(
        order_id=payment.gateway_order_id,
        amount=payment.amount,
        currency=payment.currency,
        key_id=container.settings.gateway_key_id,
        payment=PaymentResponse.from_record(payment),
    )


@router.post(
    "/verify",
    response_model=RenewalResponse,
    responses={
        400: {"description": "Invalid payment signature"},
        404: {"description": "Domain not found"},
        409: {"description": "Payment already applied"},
        422: {"description": "Amount or currency does not match the order"},
    },
)
async def verify_payment(
    request: VerifyPaymentRequest,
    account: CurrentAccount,
    container: ContainerDep,
) -> RenewalResponse:
    """
    Verify a gateway checkout and renew the domain by one year.

    The signature is checked here; the renewal transaction trusts the
    confirmation it is given.
    """
    settings = container.settings
    if not verify_payment_signature(
        request.order_id,
        request.payment_id,
        request.signature,
        settings.gateway_key_secret,
    ):
        logger.warning(f"Invalid signature for payment {request.payment_id}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payment signature",
        )

    confirmation = PaymentConfirmation(
        payment_id=request.payment_id,
        order_id=request.order_id,
        amount=request.amount,
        currency=(request.currency or settings.renewal_currency).upper(),
    )
    domain = await container.renewals.renew(account.id, request.domain_id, confirmation)
    return RenewalResponse(domain=domain_response(domain, container))


@router.post(
    "/fail",
    response_model=PaymentResponse,
    responses={404: {"description": "Order not found"}},
)
async def fail_order(
    request: FailOrderRequest,
    account: CurrentAccount,
    container: ContainerDep,
) -> PaymentResponse:
    """Record that the gateway declined a checkout."""
    payment = await container.renewals.fail_order(account.id, request.order_id)
    return PaymentResponse.from_record(payment)


@router.get("", response_model=list[PaymentResponse])
async def list_payments(
    account: CurrentAccount,
    container: ContainerDep,
) -> list[PaymentResponse]:
    payments = await container.renewals.list_payments(account.id)
    return [PaymentResponse.from_record(p) for p in payments]
