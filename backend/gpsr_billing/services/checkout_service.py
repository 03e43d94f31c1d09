"""Checkout orchestrator — customer setup, trial eligibility, and session creation."""

import logging
import uuid
from typing import Any

import stripe
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gpsr_billing.billing.errors import BillingUpstreamError
from gpsr_billing.billing.saga import Compensation
from gpsr_billing.billing.stripe_client import (
    create_checkout_session,
    create_customer,
    delete_customer,
)
from gpsr_billing.config import settings
from gpsr_billing.models.trial_email import TrialEmailType
from gpsr_billing.models.user import User
from gpsr_billing.schemas.billing import CheckoutRequest
from gpsr_billing.services.notification_service import record_trial_email
from gpsr_billing.services.subscription_service import (
    create_customer_mapping,
    create_subscription_record,
    get_customer_mapping,
    get_subscription_record,
    is_trial_eligible,
    soft_delete_customer_mapping,
)

logger = logging.getLogger(__name__)


async def resolve_trial_period_days(
    db: AsyncSession, user_id: uuid.UUID, mode: str, requested_days: int
) -> int:
    """Return the trial length to offer, or 0 if the user already had a trial."""
    if mode != "subscription" or requested_days <= 0:
        return 0

    if not await is_trial_eligible(db, user_id):
        logger.info(
            "User %s is not eligible for a trial anymore, creating subscription without trial",
            user_id,
        )
        return 0
    return requested_days


def build_checkout_params(
    customer_id: str,
    user_id: uuid.UUID,
    body: CheckoutRequest,
    trial_period_days: int,
) -> dict[str, Any]:
    """Assemble the Stripe Checkout Session parameters for a request."""
    params: dict[str, Any] = {
        "customer": customer_id,
        "mode": body.mode,
        "line_items": [{"price": body.price_id, "quantity": 1}],
        "success_url": body.success_url,
        "cancel_url": body.cancel_url,
        "payment_method_types": ["card"],
    }

    if body.mode == "subscription":
        subscription_data: dict[str, Any] = {"metadata": {"user_id": str(user_id)}}
        if trial_period_days > 0:
            subscription_data["trial_period_days"] = trial_period_days
        if body.billing_cycle_anchor:
            subscription_data["billing_cycle_anchor"] = body.billing_cycle_anchor
        params["subscription_data"] = subscription_data
        # Collect a card up front, even for trials
        params["payment_method_collection"] = "always"
    else:
        params["payment_intent_data"] = {"setup_future_usage": "off_session"}

    if body.promotion_code:
        params["allow_promotion_codes"] = True

    return params


async def _create_customer(
    db: AsyncSession,
    user_id: uuid.UUID,
    email: str | None,
    mode: str,
    compensation: Compensation,
) -> str:
    """Create the Stripe customer, its mapping, and the placeholder record.

    If another request created a live mapping first, the new Stripe customer
    is deleted and the existing mapping is returned instead.
    """
    customer = await create_customer(email=email, user_id=str(user_id))
    customer_id = customer.id
    compensation.push(
        f"delete Stripe customer {customer_id}",
        lambda: delete_customer(customer_id),
    )

    try:
        await create_customer_mapping(db, user_id, customer_id)
        if mode == "subscription":
            await create_subscription_record(db, customer_id)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await get_customer_mapping(db, user_id)
        if existing is None:
            raise
        logger.info(
            "Customer mapping for user %s was created concurrently, reusing %s",
            user_id,
            existing.customer_id,
        )
        await compensation.run()
        return existing.customer_id

    async def _undo_mapping() -> None:
        await soft_delete_customer_mapping(db, customer_id)
        await db.commit()

    compensation.push(f"soft-delete customer mapping {customer_id}", _undo_mapping)
    logger.info("Set up new customer %s for user %s", customer_id, user_id)
    return customer_id


async def _ensure_subscription_record(db: AsyncSession, customer_id: str) -> None:
    """Recreate a missing subscription record for an existing customer."""
    if await get_subscription_record(db, customer_id) is not None:
        return
    logger.warning("Subscription record missing for customer %s, recreating", customer_id)
    await create_subscription_record(db, customer_id)
    await db.commit()


async def _record_trial_attempt(db: AsyncSession, user_id: uuid.UUID, session_id: str) -> None:
    """Best-effort audit row for an offered trial; failures are only logged."""
    try:
        await record_trial_email(
            db, user_id, TrialEmailType.TRIAL_STARTED, {"session_id": session_id}
        )
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Failed to record trial start for user %s", user_id)
        await db.rollback()


async def create_checkout(
    db: AsyncSession, user: User, body: CheckoutRequest
) -> stripe.checkout.Session:
    """Create a hosted Checkout session for the user.

    The checkout path never marks a trial as used; that only happens once a
    webhook confirms the subscription.

    Raises:
        BillingUpstreamError: If Stripe or the database fails. Any Stripe
            customer or mapping created along the way is rolled back first.
    """
    # Rollbacks expire ORM instances, so keep plain copies
    user_id, email = user.id, user.email
    requested_days = (
        body.trial_period_days
        if body.trial_period_days is not None
        else settings.default_trial_period_days
    )
    compensation = Compensation()

    try:
        trial_period_days = await resolve_trial_period_days(db, user_id, body.mode, requested_days)

        mapping = await get_customer_mapping(db, user_id)
        if mapping is None:
            customer_id = await _create_customer(db, user_id, email, body.mode, compensation)
        else:
            customer_id = mapping.customer_id

        if body.mode == "subscription":
            await _ensure_subscription_record(db, customer_id)

        params = build_checkout_params(customer_id, user_id, body, trial_period_days)
        session = await create_checkout_session(params)
    except (stripe.StripeError, SQLAlchemyError) as e:
        logger.exception("Checkout failed for user %s", user_id)
        await db.rollback()
        await compensation.run()
        raise BillingUpstreamError("Failed to create checkout session") from e

    compensation.clear()
    logger.info("Created checkout session %s for customer %s", session.id, customer_id)

    if body.mode == "subscription" and trial_period_days > 0:
        await _record_trial_attempt(db, user_id, session.id)

    return session
