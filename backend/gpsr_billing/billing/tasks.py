"""Background processing for verified Stripe webhook events.

The webhook endpoint acknowledges Stripe immediately and schedules
:func:`process_webhook_event`; failures here are logged and never reach
Stripe, so there is no redelivery of a failed event.
"""

import logging
from typing import Any

from gpsr_billing.billing.events import parse_event
from gpsr_billing.billing.webhooks import handle_event
from gpsr_billing.database import async_session_factory

logger = logging.getLogger(__name__)


async def process_webhook_event(event: Any) -> None:
    """Parse and handle one webhook event in its own database session."""
    billing_event = parse_event(event)
    if billing_event is None:
        logger.debug("Ignoring webhook event %s (%s)", event.id, event.type)
        return

    logger.info("Processing webhook event: %s (id=%s)", event.type, event.id)

    # Own DB session: the request that delivered the event is already closed
    async with async_session_factory() as db:
        try:
            await handle_event(db, billing_event)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Error processing webhook event %s", event.id)
