"""Tests for Stripe webhook event handlers with mocked Stripe events."""

import time
import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gpsr_billing.billing.events import parse_event
from gpsr_billing.billing.webhooks import (
    days_until,
    handle_event,
    handle_trial_notifications,
)
from gpsr_billing.models.customer import StripeCustomer
from gpsr_billing.models.order import StripeOrder
from gpsr_billing.models.subscription import StripeSubscription
from gpsr_billing.models.trial_email import TrialEmail
from gpsr_billing.models.user import User
from gpsr_billing.services.subscription_service import get_subscription_record

MODULE = "gpsr_billing.billing.webhooks"
CUSTOMER_ID = "cus_webhook_123"
DAY = 24 * 60 * 60


class _StripeObj(SimpleNamespace):
    """SimpleNamespace with bracket notation support (like Stripe API objects)."""

    def __getitem__(self, key: str):
        return getattr(self, key)


def _make_event(
    event_type: str, data_object: dict, previous_attributes: dict | None = None
) -> _StripeObj:
    """Create a fake Stripe Event-like object."""
    data = _StripeObj(object=_StripeObj(**data_object))
    if previous_attributes is not None:
        data.previous_attributes = previous_attributes
    return _StripeObj(
        type=event_type,
        id=f"evt_test_{uuid.uuid4().hex[:8]}",
        data=data,
    )


def _subscription_event(
    event_type: str,
    status: str,
    trial_end: int | None = None,
    previous_status: str | None = None,
):
    previous = {"status": previous_status} if previous_status is not None else None
    event = _make_event(
        event_type,
        {
            "id": "sub_test_123",
            "object": "subscription",
            "customer": CUSTOMER_ID,
            "status": status,
            "trial_start": trial_end - 14 * DAY if trial_end else None,
            "trial_end": trial_end,
        },
        previous_attributes=previous,
    )
    return parse_event(event)


def _make_stripe_sub(status: str) -> _StripeObj:
    return _StripeObj(
        id="sub_test_123",
        status=status,
        cancel_at_period_end=False,
        trial_start=None,
        trial_end=None,
        default_payment_method=None,
        items=_StripeObj(
            data=[_StripeObj(
                price=_StripeObj(id="price_monthly_123", product="prod_test"),
                current_period_start=1700000000,
                current_period_end=1702600000,
            )]
        ),
    )


async def _email_types(db: AsyncSession, user_id: uuid.UUID) -> list[str]:
    result = await db.execute(
        select(TrialEmail.email_type).where(TrialEmail.user_id == user_id)
    )
    return sorted(result.scalars().all())


@pytest_asyncio.fixture
async def billing_user(db_session: AsyncSession, test_user: User) -> User:
    """The test user with a customer mapping and a placeholder record."""
    db_session.add(StripeCustomer(user_id=test_user.id, customer_id=CUSTOMER_ID))
    await db_session.flush()
    db_session.add(StripeSubscription(customer_id=CUSTOMER_ID, status="not_started"))
    await db_session.commit()
    return test_user


# ---------------------------------------------------------------------------
# Checkout sessions
# ---------------------------------------------------------------------------


class TestCheckoutSessionCompleted:
    """Test checkout.session.completed dispatch."""

    async def test_subscription_checkout_triggers_sync(
        self, db_session: AsyncSession, billing_user: User
    ):
        event = parse_event(_make_event(
            "checkout.session.completed",
            {"id": "cs_1", "customer": CUSTOMER_ID, "mode": "subscription",
             "payment_status": "paid"},
        ))

        with patch(f"{MODULE}.sync_customer_from_stripe", new_callable=AsyncMock) as mock_sync:
            await handle_event(db_session, event)

        mock_sync.assert_awaited_once_with(db_session, CUSTOMER_ID)

    async def test_paid_one_time_checkout_records_order(
        self, db_session: AsyncSession, billing_user: User
    ):
        event = parse_event(_make_event(
            "checkout.session.completed",
            {
                "id": "cs_paid",
                "customer": CUSTOMER_ID,
                "mode": "payment",
                "payment_status": "paid",
                "payment_intent": "pi_123",
                "amount_subtotal": 4900,
                "amount_total": 5831,
                "currency": "eur",
            },
        ))

        with patch(f"{MODULE}.sync_customer_from_stripe", new_callable=AsyncMock) as mock_sync:
            await handle_event(db_session, event)

        mock_sync.assert_not_awaited()
        result = await db_session.execute(select(StripeOrder))
        order = result.scalar_one()
        assert order.checkout_session_id == "cs_paid"
        assert order.payment_intent_id == "pi_123"
        assert order.amount_total == 5831
        assert order.status == "completed"

    async def test_redelivered_one_time_checkout_records_one_order(
        self, db_session: AsyncSession, billing_user: User
    ):
        payload = {
            "id": "cs_redelivered",
            "customer": CUSTOMER_ID,
            "mode": "payment",
            "payment_status": "paid",
            "payment_intent": "pi_456",
            "amount_subtotal": 4900,
            "amount_total": 5831,
            "currency": "eur",
        }

        await handle_event(db_session, parse_event(_make_event("checkout.session.completed", payload)))
        await db_session.commit()
        await handle_event(db_session, parse_event(_make_event("checkout.session.completed", payload)))
        await db_session.commit()

        result = await db_session.execute(select(StripeOrder))
        assert [order.checkout_session_id for order in result.scalars().all()] == ["cs_redelivered"]

    async def test_unpaid_one_time_checkout_is_ignored(
        self, db_session: AsyncSession, billing_user: User
    ):
        event = parse_event(_make_event(
            "checkout.session.completed",
            {"id": "cs_unpaid", "customer": CUSTOMER_ID, "mode": "payment",
             "payment_status": "unpaid"},
        ))

        await handle_event(db_session, event)

        result = await db_session.execute(select(StripeOrder))
        assert result.scalars().all() == []


# ---------------------------------------------------------------------------
# Subscription events and trial notifications
# ---------------------------------------------------------------------------


class TestTrialNotifications:
    """Test trial milestones driven by subscription events."""

    async def test_trial_start_marks_trial_used_and_notifies(
        self, db_session: AsyncSession, billing_user: User
    ):
        now = time.time()
        event = _subscription_event(
            "customer.subscription.created", "trialing", trial_end=int(now + 14 * DAY)
        )

        await handle_trial_notifications(db_session, event, now=now)

        record = await get_subscription_record(db_session, CUSTOMER_ID)
        assert record.is_trial_used is True
        assert await _email_types(db_session, billing_user.id) == ["trial_started"]

    async def test_trial_within_a_week_sends_seven_day_reminder(
        self, db_session: AsyncSession, billing_user: User
    ):
        now = time.time()
        event = _subscription_event(
            "customer.subscription.updated", "trialing", trial_end=int(now + 5 * DAY)
        )

        await handle_trial_notifications(db_session, event, now=now)

        assert await _email_types(db_session, billing_user.id) == [
            "trial_reminder_7days",
            "trial_started",
        ]

    async def test_trial_within_two_days_sends_both_reminders(
        self, db_session: AsyncSession, billing_user: User
    ):
        now = time.time()
        event = _subscription_event(
            "customer.subscription.updated", "trialing", trial_end=int(now + DAY)
        )

        await handle_trial_notifications(db_session, event, now=now)

        assert await _email_types(db_session, billing_user.id) == [
            "trial_reminder_48hours",
            "trial_reminder_7days",
            "trial_started",
        ]

    async def test_trial_to_active_is_a_conversion(
        self, db_session: AsyncSession, billing_user: User
    ):
        event = _subscription_event(
            "customer.subscription.updated", "active", previous_status="trialing"
        )

        await handle_trial_notifications(db_session, event)

        record = await get_subscription_record(db_session, CUSTOMER_ID)
        assert record.is_trial_used is True
        assert await _email_types(db_session, billing_user.id) == ["trial_converted"]

    async def test_transition_to_canceled_notifies(
        self, db_session: AsyncSession, billing_user: User
    ):
        event = _subscription_event(
            "customer.subscription.updated", "canceled", previous_status="active"
        )

        await handle_trial_notifications(db_session, event)

        assert await _email_types(db_session, billing_user.id) == ["trial_canceled"]

    async def test_user_without_email_gets_no_ledger_entry(
        self, db_session: AsyncSession, billing_user: User
    ):
        billing_user.email = None
        await db_session.commit()
        event = _subscription_event(
            "customer.subscription.created", "trialing", trial_end=int(time.time() + 14 * DAY)
        )

        await handle_trial_notifications(db_session, event)

        record = await get_subscription_record(db_session, CUSTOMER_ID)
        assert record.is_trial_used is True
        assert await _email_types(db_session, billing_user.id) == []

    def test_days_until_rounds_up(self):
        now = 1_700_000_000
        assert days_until(now + DAY, now=now) == 1
        assert days_until(now + DAY + 1, now=now) == 2
        assert days_until(now - 1, now=now) == 0


class TestTrialWillEnd:
    """Test customer.subscription.trial_will_end handling."""

    def _event(self):
        return parse_event(_make_event(
            "customer.subscription.trial_will_end",
            {"id": "sub_test_123", "customer": CUSTOMER_ID, "trial_end": 1701209600},
        ))

    async def test_without_card_asks_for_payment_method(
        self, db_session: AsyncSession, billing_user: User
    ):
        with (
            patch(f"{MODULE}.sync_customer_from_stripe", new_callable=AsyncMock),
            patch(f"{MODULE}.list_card_payment_methods", new_callable=AsyncMock, return_value=[]),
        ):
            await handle_event(db_session, self._event())

        assert await _email_types(db_session, billing_user.id) == [
            "payment_method_needed",
            "trial_reminder_48hours",
        ]

    async def test_with_card_sends_only_reminder(
        self, db_session: AsyncSession, billing_user: User
    ):
        with (
            patch(f"{MODULE}.sync_customer_from_stripe", new_callable=AsyncMock),
            patch(f"{MODULE}.list_card_payment_methods", new_callable=AsyncMock,
                  return_value=[_StripeObj(id="pm_card_visa")]),
        ):
            await handle_event(db_session, self._event())

        assert await _email_types(db_session, billing_user.id) == ["trial_reminder_48hours"]


class TestOutOfOrderDelivery:
    """Whatever order events arrive in, the record matches Stripe."""

    async def test_stale_created_event_after_update_keeps_current_state(
        self, db_session: AsyncSession, billing_user: User
    ):
        now = time.time()
        updated = _subscription_event(
            "customer.subscription.updated", "active", previous_status="trialing"
        )
        stale_created = _subscription_event(
            "customer.subscription.created", "trialing", trial_end=int(now + 14 * DAY)
        )

        with patch(
            "gpsr_billing.services.sync_service.list_customer_subscriptions",
            new_callable=AsyncMock,
            return_value=[_make_stripe_sub("active")],
        ):
            await handle_event(db_session, updated)
            await handle_event(db_session, stale_created)

        record = await get_subscription_record(db_session, CUSTOMER_ID)
        assert record.status == "active"
        assert record.trial_start is None
        assert record.is_trial_used is True

    async def test_stale_update_to_trialing_after_activation_keeps_current_state(
        self, db_session: AsyncSession, billing_user: User
    ):
        now = time.time()
        activated = _subscription_event(
            "customer.subscription.updated", "active", previous_status="incomplete"
        )
        stale_update = _subscription_event(
            "customer.subscription.updated",
            "trialing",
            trial_end=int(now + 14 * DAY),
            previous_status="incomplete",
        )

        with patch(
            "gpsr_billing.services.sync_service.list_customer_subscriptions",
            new_callable=AsyncMock,
            return_value=[_make_stripe_sub("active")],
        ) as mock_list:
            await handle_event(db_session, activated)
            await handle_event(db_session, stale_update)

        assert mock_list.await_count == 2
        record = await get_subscription_record(db_session, CUSTOMER_ID)
        assert record.status == "active"
        assert record.trial_start is None
        assert record.trial_end is None
        assert record.is_trial_used is True

        email_types = await _email_types(db_session, billing_user.id)
        assert "trial_converted" not in email_types
        assert "trial_canceled" not in email_types

    async def test_other_customer_events_sync(self, db_session: AsyncSession, billing_user: User):
        event = parse_event(_make_event(
            "invoice.paid", {"id": "in_123", "customer": CUSTOMER_ID}
        ))

        with patch(f"{MODULE}.sync_customer_from_stripe", new_callable=AsyncMock) as mock_sync:
            await handle_event(db_session, event)

        mock_sync.assert_awaited_once_with(db_session, CUSTOMER_ID)
