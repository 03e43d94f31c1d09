"""Stripe webhook event handlers — dispatch parsed events to sync, orders, and trial logic."""

import logging
import math
import time

from sqlalchemy.ext.asyncio import AsyncSession

from gpsr_billing.billing.events import (
    BillingEvent,
    CheckoutSessionCompleted,
    CustomerEvent,
    SubscriptionChanged,
    TrialWillEnd,
)
from gpsr_billing.billing.stripe_client import list_card_payment_methods
from gpsr_billing.models.subscription import SubscriptionStatus
from gpsr_billing.models.trial_email import TrialEmailType
from gpsr_billing.services.notification_service import send_trial_email
from gpsr_billing.services.subscription_service import (
    create_order,
    get_order_by_session,
    get_user_for_customer,
    mark_trial_used,
)
from gpsr_billing.services.sync_service import sync_customer_from_stripe

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def days_until(timestamp: int, now: float | None = None) -> int:
    """Whole days (rounded up) from now until an epoch timestamp."""
    current = time.time() if now is None else now
    return math.ceil((timestamp - current) / SECONDS_PER_DAY)


async def handle_trial_notifications(
    db: AsyncSession, event: SubscriptionChanged, now: float | None = None
) -> None:
    """Send trial milestone notifications based on the event's own payload.

    Uses the status carried by the event, not a fresh fetch, so out-of-order
    deliveries can send milestones out of sequence.
    """
    status = event.status

    if status == SubscriptionStatus.TRIALING.value:
        await mark_trial_used(db, event.customer_id)
        user = await get_user_for_customer(db, event.customer_id)
        if user is None:
            logger.warning("No user found for Stripe customer %s (trial event)", event.customer_id)
            return

        logger.info("Processing trial subscription for customer %s", event.customer_id)
        await send_trial_email(
            db, user, TrialEmailType.TRIAL_STARTED, event.subscription_id, event.trial_end
        )

        if event.trial_end is not None:
            days_left = days_until(event.trial_end, now)
            if days_left <= 7:
                await send_trial_email(
                    db, user, TrialEmailType.TRIAL_REMINDER_7DAYS, event.subscription_id, event.trial_end
                )
            if days_left <= 2:
                await send_trial_email(
                    db, user, TrialEmailType.TRIAL_REMINDER_48HOURS, event.subscription_id, event.trial_end
                )

    elif status == SubscriptionStatus.ACTIVE.value:
        await mark_trial_used(db, event.customer_id)

    if not event.is_update or event.previous_status is None:
        return

    if event.previous_status == SubscriptionStatus.TRIALING.value and status == SubscriptionStatus.ACTIVE.value:
        user = await get_user_for_customer(db, event.customer_id)
        if user is not None:
            await send_trial_email(
                db, user, TrialEmailType.TRIAL_CONVERTED, event.subscription_id, event.trial_end
            )
            logger.info("Trial converted to paid subscription for user %s", user.id)

    elif event.previous_status != SubscriptionStatus.CANCELED.value and status == SubscriptionStatus.CANCELED.value:
        user = await get_user_for_customer(db, event.customer_id)
        if user is not None:
            await send_trial_email(
                db, user, TrialEmailType.TRIAL_CANCELED, event.subscription_id, event.trial_end
            )


async def handle_trial_will_end(db: AsyncSession, event: TrialWillEnd) -> None:
    """Send the final trial reminder, plus a card reminder if none is on file."""
    logger.info("Trial ending soon for subscription %s", event.subscription_id)
    user = await get_user_for_customer(db, event.customer_id)
    if user is None:
        logger.warning("No user found for Stripe customer %s (trial_will_end)", event.customer_id)
        return

    payment_methods = await list_card_payment_methods(event.customer_id)
    await send_trial_email(
        db, user, TrialEmailType.TRIAL_REMINDER_48HOURS, event.subscription_id, event.trial_end
    )
    if not payment_methods:
        await send_trial_email(
            db, user, TrialEmailType.PAYMENT_METHOD_NEEDED, event.subscription_id, event.trial_end
        )


async def handle_one_time_payment(db: AsyncSession, event: CheckoutSessionCompleted) -> None:
    """Record a paid one-time checkout as an order, straight from the session payload."""
    if await get_order_by_session(db, event.session_id) is not None:
        logger.info("Order for session %s already recorded, skipping", event.session_id)
        return

    await create_order(
        db,
        checkout_session_id=event.session_id,
        payment_intent_id=event.payment_intent_id,
        customer_id=event.customer_id,
        amount_subtotal=event.amount_subtotal,
        amount_total=event.amount_total,
        currency=event.currency,
        payment_status=event.payment_status,
        status="completed",
    )
    logger.info("Processed one-time payment for session %s", event.session_id)


async def handle_event(db: AsyncSession, event: BillingEvent) -> None:
    """Dispatch a parsed webhook event.

    Everything except a ``payment``-mode checkout session counts as a
    subscription event and triggers a full sync for the customer.
    """
    if isinstance(event, CheckoutSessionCompleted) and not event.is_subscription:
        logger.info("Processing one-time payment checkout session %s", event.session_id)
        if event.mode == "payment" and event.payment_status == "paid":
            await handle_one_time_payment(db, event)
        return

    logger.info("Starting subscription sync for customer %s", event.customer_id)
    await sync_customer_from_stripe(db, event.customer_id)

    if isinstance(event, SubscriptionChanged):
        await handle_trial_notifications(db, event)
    elif isinstance(event, TrialWillEnd):
        await handle_trial_will_end(db, event)
    elif isinstance(event, CustomerEvent):
        logger.debug("Synced customer %s for %s", event.customer_id, event.event_type)
