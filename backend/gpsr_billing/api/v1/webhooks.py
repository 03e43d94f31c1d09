"""Stripe webhook endpoint — verifies events, acknowledges, processes in the background."""

import logging

import stripe
from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, status

from gpsr_billing.billing.stripe_client import construct_webhook_event
from gpsr_billing.billing.tasks import process_webhook_event
from gpsr_billing.schemas.billing import WebhookAck

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(request: Request, background_tasks: BackgroundTasks) -> WebhookAck:
    """Receive a Stripe webhook event.

    The response is sent as soon as the signature checks out; the event is
    handled afterwards, so processing errors never change the response.
    """
    # 1. Read raw body (MUST be raw bytes for signature verification)
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        logger.warning("Webhook received without stripe-signature header")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No signature found",
        )

    # 2. Verify signature
    try:
        event = construct_webhook_event(payload, sig_header)
    except stripe.SignatureVerificationError as e:
        logger.warning("Webhook signature verification failed")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook signature verification failed",
        ) from e
    except ValueError as e:
        logger.warning("Invalid webhook payload")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload",
        ) from e

    # 3. Acknowledge now, process after the response is sent
    logger.info("Received webhook event: %s (id=%s)", event.type, event.id)
    background_tasks.add_task(process_webhook_event, event)
    return WebhookAck()
