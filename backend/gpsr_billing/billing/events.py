"""Typed views of the Stripe webhook events this service consumes.

Only the fields that are actually read are extracted. Anything that does not
match a known shape parses to ``None`` and is ignored by the dispatcher.
"""

import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_TRIAL_WILL_END = "customer.subscription.trial_will_end"


@dataclass(frozen=True)
class CheckoutSessionCompleted:
    """A finished Checkout session, either subscription or one-time payment."""

    event_id: str
    customer_id: str
    session_id: str
    mode: str | None
    payment_status: str | None
    payment_intent_id: str | None
    amount_subtotal: int | None
    amount_total: int | None
    currency: str | None

    @property
    def is_subscription(self) -> bool:
        return self.mode == "subscription"


@dataclass(frozen=True)
class SubscriptionChanged:
    """``customer.subscription.created`` or ``customer.subscription.updated``."""

    event_id: str
    event_type: str
    customer_id: str
    subscription_id: str
    status: str | None
    trial_start: int | None
    trial_end: int | None
    previous_status: str | None = None

    @property
    def is_update(self) -> bool:
        return self.event_type == SUBSCRIPTION_UPDATED


@dataclass(frozen=True)
class TrialWillEnd:
    """``customer.subscription.trial_will_end``, sent three days before the end."""

    event_id: str
    customer_id: str
    subscription_id: str
    trial_end: int | None


@dataclass(frozen=True)
class CustomerEvent:
    """Any other event that carries a customer id (invoice.*, subscription deleted, ...)."""

    event_id: str
    event_type: str
    customer_id: str


BillingEvent = CheckoutSessionCompleted | SubscriptionChanged | TrialWillEnd | CustomerEvent


def _field(obj: Any, name: str) -> Any:
    """Read an optional field from a Stripe object or a plain mapping."""
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _previous_status(event: Any) -> str | None:
    previous = _field(event.data, "previous_attributes")
    if not previous:
        return None
    return _field(previous, "status")


def parse_event(event: Any) -> BillingEvent | None:
    """Map a verified Stripe event to one of the consumed shapes.

    Returns ``None`` for events without a string customer id and for
    ``payment_intent.succeeded`` events that are not tied to an invoice
    (one-time payments are handled through the Checkout session instead).
    """
    data_object = _field(_field(event, "data"), "object")
    if data_object is None:
        return None

    customer_id = _field(data_object, "customer")
    if customer_id is None:
        return None
    if not isinstance(customer_id, str):
        logger.error("Event %s carries a non-string customer, ignoring", event.id)
        return None

    event_type = event.type

    if event_type == PAYMENT_INTENT_SUCCEEDED and _field(data_object, "invoice") is None:
        return None

    if event_type == CHECKOUT_SESSION_COMPLETED:
        return CheckoutSessionCompleted(
            event_id=event.id,
            customer_id=customer_id,
            session_id=_field(data_object, "id"),
            mode=_field(data_object, "mode"),
            payment_status=_field(data_object, "payment_status"),
            payment_intent_id=_field(data_object, "payment_intent"),
            amount_subtotal=_field(data_object, "amount_subtotal"),
            amount_total=_field(data_object, "amount_total"),
            currency=_field(data_object, "currency"),
        )

    if event_type in (SUBSCRIPTION_CREATED, SUBSCRIPTION_UPDATED):
        return SubscriptionChanged(
            event_id=event.id,
            event_type=event_type,
            customer_id=customer_id,
            subscription_id=_field(data_object, "id"),
            status=_field(data_object, "status"),
            trial_start=_field(data_object, "trial_start"),
            trial_end=_field(data_object, "trial_end"),
            previous_status=_previous_status(event) if event_type == SUBSCRIPTION_UPDATED else None,
        )

    if event_type == SUBSCRIPTION_TRIAL_WILL_END:
        return TrialWillEnd(
            event_id=event.id,
            customer_id=customer_id,
            subscription_id=_field(data_object, "id"),
            trial_end=_field(data_object, "trial_end"),
        )

    return CustomerEvent(event_id=event.id, event_type=event_type, customer_id=customer_id)
