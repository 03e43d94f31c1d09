"""Cancellation orchestrator — schedule end-of-period cancellation."""

import logging
from dataclasses import dataclass

import stripe
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gpsr_billing.billing.errors import BillingNotFoundError, BillingUpstreamError
from gpsr_billing.billing.stripe_client import schedule_subscription_cancellation
from gpsr_billing.models.subscription import SubscriptionStatus
from gpsr_billing.models.trial_email import TrialEmailType
from gpsr_billing.models.user import User
from gpsr_billing.services.notification_service import send_trial_email
from gpsr_billing.services.subscription_service import (
    get_customer_mapping,
    get_subscription_record,
    upsert_subscription,
)

logger = logging.getLogger(__name__)

SCHEDULED_MESSAGE = (
    "Your subscription has been scheduled for cancellation at the end of the billing period"
)


@dataclass(frozen=True)
class CancellationResult:
    subscription_id: str
    message: str
    is_immediate: bool = False


async def cancel_subscription(
    db: AsyncSession, user: User, cancel_immediately: bool = False
) -> CancellationResult:
    """Cancel the user's subscription at the end of the current period.

    ``cancel_immediately`` is accepted for API compatibility but is not acted
    on: every cancellation is scheduled for period end.

    Raises:
        BillingNotFoundError: No customer mapping or no subscription id.
        BillingUpstreamError: Stripe or the database failed.
    """
    user_id = user.id
    if cancel_immediately:
        logger.info(
            "User %s requested immediate cancellation; scheduling at period end instead",
            user_id,
        )

    mapping = await get_customer_mapping(db, user_id)
    if mapping is None:
        raise BillingNotFoundError("No Stripe customer found for this user")

    record = await get_subscription_record(db, mapping.customer_id)
    if record is None or not record.subscription_id:
        raise BillingNotFoundError("No active subscription found")

    customer_id = mapping.customer_id
    subscription_id = record.subscription_id
    was_trialing = record.status == SubscriptionStatus.TRIALING.value

    try:
        await schedule_subscription_cancellation(subscription_id)
        await upsert_subscription(db, customer_id, cancel_at_period_end=True)
        await db.commit()
    except (stripe.StripeError, SQLAlchemyError) as e:
        logger.exception("Failed to cancel subscription %s", subscription_id)
        await db.rollback()
        raise BillingUpstreamError("Failed to cancel subscription") from e

    logger.info(
        "Subscription %s scheduled for cancellation at period end for customer %s",
        subscription_id,
        customer_id,
    )

    email_type = (
        TrialEmailType.TRIAL_CANCELED if was_trialing else TrialEmailType.SUBSCRIPTION_CANCELED
    )
    try:
        await send_trial_email(
            db,
            user,
            email_type,
            subscription_id,
            extra={"immediate_cancellation": False},
        )
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Failed to record cancellation email for user %s", user_id)
        await db.rollback()

    return CancellationResult(subscription_id=subscription_id, message=SCHEDULED_MESSAGE)
