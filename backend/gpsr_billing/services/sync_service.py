"""Subscription synchronizer — copy Stripe's current state into the local record."""

import logging
from typing import Any

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from gpsr_billing.billing.stripe_client import list_customer_subscriptions
from gpsr_billing.models.subscription import StripeSubscription, SubscriptionStatus
from gpsr_billing.services.subscription_service import (
    get_customer_by_stripe_id,
    upsert_subscription,
)

logger = logging.getLogger(__name__)

# Columns whose value comes from Stripe. A sync writes all of them, so a
# value missing from Stripe's payload is stored as NULL.
EMPTY_PROVIDER_STATE: dict[str, Any] = {
    "subscription_id": None,
    "price_id": None,
    "current_period_start": None,
    "current_period_end": None,
    "cancel_at_period_end": False,
    "trial_start": None,
    "trial_end": None,
    "product_limit": 0,
}


def _get_first_item(stripe_sub: stripe.Subscription):
    """Get the first subscription item, using bracket notation to avoid
    collision with Python dict .items() in newer Stripe API versions.
    """
    sub_items = stripe_sub["items"]
    if sub_items and sub_items.data:
        return sub_items.data[0]
    return None


def _get_period(stripe_sub: stripe.Subscription, item) -> tuple[int | None, int | None]:
    """Return current period bounds as epoch seconds.

    Since Stripe API 2025-03-31 the bounds live on the subscription item; older
    API versions still report them on the subscription itself.
    """
    start = getattr(stripe_sub, "current_period_start", None)
    end = getattr(stripe_sub, "current_period_end", None)
    if (start is None or end is None) and item is not None:
        start = getattr(item, "current_period_start", None)
        end = getattr(item, "current_period_end", None)
    return start, end


def _get_product_limit(price) -> int:
    """Read ``product_limit`` from the expanded product's metadata (0 if absent)."""
    product = getattr(price, "product", None) if price is not None else None
    if product is None or isinstance(product, str):
        return 0
    metadata = getattr(product, "metadata", None) or {}
    raw = metadata.get("product_limit")
    if raw is None:
        return 0
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid product_limit %r on product %s", raw, getattr(product, "id", None))
        return 0


def _get_card_summary(stripe_sub: stripe.Subscription) -> dict[str, str | None]:
    """Card brand/last4, only when the default payment method is an expanded card."""
    payment_method = getattr(stripe_sub, "default_payment_method", None)
    if payment_method is None or isinstance(payment_method, str):
        return {}
    card = getattr(payment_method, "card", None)
    return {
        "payment_method_brand": getattr(card, "brand", None) if card else None,
        "payment_method_last4": getattr(card, "last4", None) if card else None,
    }


def subscription_state(stripe_sub: stripe.Subscription) -> dict[str, Any]:
    """Build the column values for a Stripe subscription."""
    item = _get_first_item(stripe_sub)
    price = item.price if item is not None else None
    period_start, period_end = _get_period(stripe_sub, item)

    state: dict[str, Any] = {
        "subscription_id": stripe_sub.id,
        "price_id": price.id if price is not None else None,
        "current_period_start": period_start,
        "current_period_end": period_end,
        "cancel_at_period_end": bool(getattr(stripe_sub, "cancel_at_period_end", False)),
        "trial_start": getattr(stripe_sub, "trial_start", None),
        "trial_end": getattr(stripe_sub, "trial_end", None),
        "product_limit": _get_product_limit(price),
    }
    state.update(_get_card_summary(stripe_sub))
    state["status"] = stripe_sub.status
    return state


async def sync_customer_from_stripe(
    db: AsyncSession, customer_id: str
) -> StripeSubscription | None:
    """Overwrite the customer's subscription record with Stripe's current state.

    Stripe is the source of truth: whatever event triggered the sync, the
    record ends up matching a fresh fetch. Database errors propagate.
    """
    mapping = await get_customer_by_stripe_id(db, customer_id)
    if mapping is None:
        logger.warning("No customer mapping for Stripe customer %s, skipping sync", customer_id)
        return None

    subscriptions = await list_customer_subscriptions(customer_id)

    if not subscriptions:
        logger.info("No subscriptions found for customer %s", customer_id)
        return await upsert_subscription(
            db,
            customer_id,
            status=SubscriptionStatus.NOT_STARTED.value,
            **EMPTY_PROVIDER_STATE,
        )

    # A customer is assumed to have at most one subscription
    state = subscription_state(subscriptions[0])
    record = await upsert_subscription(db, customer_id, **state)
    logger.info(
        "Synced subscription %s for customer %s: status=%s, product_limit=%s",
        state["subscription_id"],
        customer_id,
        state["status"],
        state["product_limit"],
    )
    return record
