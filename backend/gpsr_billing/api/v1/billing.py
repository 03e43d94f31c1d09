"""Billing API endpoints — Stripe Checkout, cancellation, products, and Customer Portal."""

import logging

import stripe
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gpsr_billing.api.deps import get_current_user, get_db
from gpsr_billing.billing.errors import BillingNotFoundError, BillingUpstreamError
from gpsr_billing.billing.stripe_client import create_portal_session
from gpsr_billing.config import settings
from gpsr_billing.models.user import User
from gpsr_billing.schemas.billing import (
    CancelSubscriptionRequest,
    CancelSubscriptionResponse,
    CheckoutRequest,
    CheckoutResponse,
    OrderResponse,
    PortalRequest,
    PortalResponse,
    ProductResponse,
    SubscriptionResponse,
)
from gpsr_billing.services.cancellation_service import cancel_subscription
from gpsr_billing.services.checkout_service import create_checkout
from gpsr_billing.services.product_service import list_products
from gpsr_billing.services.subscription_service import (
    get_customer_mapping,
    get_subscription_record,
    list_orders_for_customer,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/billing", tags=["billing"])

NO_CUSTOMER = "No Stripe customer found for this user"


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout_session(
    body: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CheckoutResponse:
    """Create a Stripe Checkout session (subscription or one-time payment)."""
    session = await create_checkout(db, current_user, body)
    return CheckoutResponse(session_id=session.id, url=session.url)


@router.post("/subscription/cancel", response_model=CancelSubscriptionResponse)
async def cancel_current_subscription(
    body: CancelSubscriptionRequest | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CancelSubscriptionResponse:
    """Schedule the caller's subscription to cancel at the end of the period."""
    cancel_immediately = body.cancel_immediately if body is not None else False
    result = await cancel_subscription(db, current_user, cancel_immediately=cancel_immediately)
    return CancelSubscriptionResponse(
        success=True,
        message=result.message,
        is_immediate=result.is_immediate,
    )


@router.get("/products", response_model=list[ProductResponse])
async def get_products(
    current_user: User = Depends(get_current_user),
) -> list[ProductResponse]:
    """List active products with monthly and annual pricing."""
    try:
        return await list_products()
    except stripe.StripeError as e:
        logger.exception("Failed to fetch products")
        raise BillingUpstreamError("Failed to fetch products") from e


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_subscription(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> SubscriptionResponse:
    """Return the caller's last-synced subscription state."""
    mapping = await get_customer_mapping(db, current_user.id)
    if mapping is None:
        raise BillingNotFoundError(NO_CUSTOMER)

    record = await get_subscription_record(db, mapping.customer_id)
    if record is None:
        raise BillingNotFoundError("No subscription found")

    return SubscriptionResponse.model_validate(record)


@router.get("/orders", response_model=list[OrderResponse])
async def get_orders(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[OrderResponse]:
    """List the caller's one-time payment orders, newest first."""
    mapping = await get_customer_mapping(db, current_user.id)
    if mapping is None:
        return []

    orders = await list_orders_for_customer(db, mapping.customer_id)
    return [OrderResponse.model_validate(order) for order in orders]


@router.post("/portal", response_model=PortalResponse)
async def create_portal(
    body: PortalRequest | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PortalResponse:
    """Create a Stripe Customer Portal session for subscription management."""
    mapping = await get_customer_mapping(db, current_user.id)
    if mapping is None:
        raise BillingNotFoundError(NO_CUSTOMER)

    return_url = (body.return_url if body is not None else None) or (
        f"{settings.frontend_url}/dashboard/billing"
    )

    try:
        session = await create_portal_session(
            customer_id=mapping.customer_id,
            return_url=return_url,
        )
    except stripe.StripeError as e:
        logger.exception("Stripe portal error for customer %s", mapping.customer_id)
        raise BillingUpstreamError("Failed to create portal session") from e

    return PortalResponse(url=session.url)
