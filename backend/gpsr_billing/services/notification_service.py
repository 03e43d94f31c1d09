"""Trial lifecycle notifications.

Delivery is a log line; every attempt is recorded in the ``trial_emails``
ledger. Nothing here retries or deduplicates.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from gpsr_billing.models.trial_email import TrialEmail, TrialEmailType
from gpsr_billing.models.user import User

logger = logging.getLogger(__name__)

SUBJECTS: dict[TrialEmailType, str] = {
    TrialEmailType.TRIAL_STARTED: "Welcome to Your 14-Day Free Trial!",
    TrialEmailType.TRIAL_REMINDER_7DAYS: "7 Days Left in Your Free Trial",
    TrialEmailType.TRIAL_REMINDER_48HOURS: "Your Trial Ends in 48 Hours",
    TrialEmailType.TRIAL_ENDED: "Your Free Trial Has Ended",
    TrialEmailType.TRIAL_CONVERTED: "Thank You for Subscribing!",
    TrialEmailType.TRIAL_CANCELED: "Your Subscription Has Been Canceled",
    TrialEmailType.SUBSCRIPTION_CANCELED: "Your Subscription Has Been Canceled",
    TrialEmailType.PAYMENT_METHOD_NEEDED: "Action Required: Add Payment Method Before Trial Ends",
}


def format_trial_end(trial_end: int | None) -> str:
    """Format an epoch trial end as dd/mm/YYYY (UTC)."""
    if trial_end is None:
        return "the end of your trial"
    return datetime.fromtimestamp(trial_end, tz=timezone.utc).strftime("%d/%m/%Y")


def render_body(email_type: TrialEmailType, trial_end: int | None) -> str:
    """Return the plain-text body for a notification type."""
    end = format_trial_end(trial_end)
    if email_type == TrialEmailType.TRIAL_STARTED:
        return f"Your trial has started and will end on {end}. Enjoy full access to all features!"
    if email_type == TrialEmailType.TRIAL_REMINDER_7DAYS:
        return (
            f"Your trial will end on {end}. Your payment method will be automatically "
            "charged after the trial ends."
        )
    if email_type == TrialEmailType.TRIAL_REMINDER_48HOURS:
        return (
            f"Your trial will end on {end}. Please ensure your payment method is up to date "
            "to avoid any service interruptions."
        )
    if email_type == TrialEmailType.TRIAL_ENDED:
        return "Your free trial period has ended and your subscription is now active."
    if email_type == TrialEmailType.TRIAL_CONVERTED:
        return "Your subscription is now active. Thank you for choosing our service!"
    if email_type == TrialEmailType.PAYMENT_METHOD_NEEDED:
        return (
            f"Your trial ends on {end} and we don't have a valid payment method on file. "
            "Please add one to keep using the service after your trial ends."
        )
    return "Your subscription has been canceled. You can resubscribe anytime."


async def record_trial_email(
    db: AsyncSession,
    user_id: uuid.UUID,
    email_type: TrialEmailType,
    details: dict[str, Any] | None = None,
) -> TrialEmail:
    """Append one row to the trial email ledger."""
    entry = TrialEmail(
        user_id=user_id,
        email_type=email_type.value,
        details=details or {},
    )
    db.add(entry)
    await db.flush()
    return entry


async def send_trial_email(
    db: AsyncSession,
    user: User,
    email_type: TrialEmailType,
    subscription_id: str | None,
    trial_end: int | None = None,
    extra: dict[str, Any] | None = None,
) -> TrialEmail | None:
    """Log a trial notification for the user and record it in the ledger.

    Returns None (and records nothing) when the user has no email address.
    """
    if not user.email:
        logger.error("Could not find email for user %s, skipping %s", user.id, email_type.value)
        return None

    subject = SUBJECTS[email_type]
    logger.info(
        "Would send email to %s: %s - %s",
        user.email,
        subject,
        render_body(email_type, trial_end),
    )

    details: dict[str, Any] = {"subscription_id": subscription_id, "email_subject": subject}
    if extra:
        details.update(extra)
    return await record_trial_email(db, user.id, email_type, details)
