"""Async Stripe API wrapper for the GPSR billing backend."""

import logging
from typing import Any

import stripe
from stripe import StripeClient

from gpsr_billing.config import settings

logger = logging.getLogger(__name__)


def get_stripe_client() -> StripeClient:
    """Create a StripeClient instance with async HTTP support."""
    return StripeClient(
        settings.stripe_secret_key,
        http_client=stripe.HTTPXClient(),
    )


async def create_customer(email: str | None, user_id: str) -> stripe.Customer:
    """Create a Stripe customer linked to a local user."""
    client = get_stripe_client()
    logger.info("Creating Stripe customer for user %s (%s)", user_id, email)
    params: dict[str, Any] = {"metadata": {"userId": user_id}}
    if email:
        params["email"] = email
    customer = await client.v1.customers.create_async(params=params)
    logger.info("Created Stripe customer %s for user %s", customer.id, user_id)
    return customer


async def delete_customer(customer_id: str) -> None:
    """Delete a Stripe customer (used to roll back a failed checkout)."""
    client = get_stripe_client()
    logger.info("Deleting Stripe customer %s", customer_id)
    await client.v1.customers.delete_async(customer_id)


async def create_checkout_session(params: dict[str, Any]) -> stripe.checkout.Session:
    """Create a Stripe Checkout Session from prepared parameters."""
    client = get_stripe_client()
    logger.info(
        "Creating %s checkout session for customer %s",
        params.get("mode"),
        params.get("customer"),
    )
    return await client.v1.checkout.sessions.create_async(params=params)


async def create_portal_session(
    customer_id: str, return_url: str
) -> stripe.billing_portal.Session:
    """Create a Stripe Customer Portal session for subscription management."""
    client = get_stripe_client()
    logger.info("Creating portal session for customer %s", customer_id)
    return await client.v1.billing_portal.sessions.create_async(
        params={
            "customer": customer_id,
            "return_url": return_url,
        }
    )


async def list_customer_subscriptions(customer_id: str) -> list[stripe.Subscription]:
    """Return the customer's most recent subscription (any status), if any.

    Expands the default payment method and the price's product so callers can
    read the card summary and product metadata without further requests.
    """
    client = get_stripe_client()
    result = await client.v1.subscriptions.list_async(
        params={
            "customer": customer_id,
            "limit": 1,
            "status": "all",
            "expand": ["data.default_payment_method", "data.items.data.price.product"],
        }
    )
    return list(result.data)


async def schedule_subscription_cancellation(subscription_id: str) -> stripe.Subscription:
    """Flag a subscription to cancel at the end of its current period."""
    client = get_stripe_client()
    logger.info("Scheduling cancellation at period end for subscription %s", subscription_id)
    return await client.v1.subscriptions.update_async(
        subscription_id,
        params={"cancel_at_period_end": True},
    )


async def list_card_payment_methods(customer_id: str) -> list[stripe.PaymentMethod]:
    """List the card payment methods attached to a customer."""
    client = get_stripe_client()
    result = await client.v1.payment_methods.list_async(
        params={"customer": customer_id, "type": "card"}
    )
    return list(result.data)


async def list_active_products() -> list[stripe.Product]:
    """List active products with their default price expanded."""
    client = get_stripe_client()
    result = await client.v1.products.list_async(
        params={"active": True, "expand": ["data.default_price"]}
    )
    return list(result.data)


async def list_active_prices(product_id: str) -> list[stripe.Price]:
    """List the active prices of a product."""
    client = get_stripe_client()
    result = await client.v1.prices.list_async(
        params={"product": product_id, "active": True}
    )
    return list(result.data)


def construct_webhook_event(payload: bytes, sig_header: str) -> stripe.Event:
    """Verify and construct a Stripe webhook event (synchronous).

    Raises:
        stripe.SignatureVerificationError: If the signature does not match.
        ValueError: If the payload is not valid JSON.
    """
    return stripe.Webhook.construct_event(payload, sig_header, settings.stripe_webhook_secret)
