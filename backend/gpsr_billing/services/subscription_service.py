"""Subscription service — customer mapping and subscription record accessors."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from gpsr_billing.models.customer import StripeCustomer
from gpsr_billing.models.order import StripeOrder
from gpsr_billing.models.subscription import StripeSubscription, SubscriptionStatus
from gpsr_billing.models.user import User

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Customer mapping
# ---------------------------------------------------------------------------


async def get_customer_mapping(
    db: AsyncSession, user_id: uuid.UUID
) -> StripeCustomer | None:
    """Return the user's live (not soft-deleted) customer mapping."""
    result = await db.execute(
        select(StripeCustomer).where(
            StripeCustomer.user_id == user_id,
            StripeCustomer.deleted_at.is_(None),
        )
    )
    return result.scalar_one_or_none()


async def get_customer_by_stripe_id(
    db: AsyncSession, customer_id: str
) -> StripeCustomer | None:
    """Look up a mapping by Stripe customer ID, soft-deleted rows included."""
    result = await db.execute(
        select(StripeCustomer).where(StripeCustomer.customer_id == customer_id)
    )
    return result.scalar_one_or_none()


async def get_user_for_customer(db: AsyncSession, customer_id: str) -> User | None:
    """Resolve the local user that owns a Stripe customer (used by webhooks)."""
    result = await db.execute(
        select(User)
        .join(StripeCustomer, StripeCustomer.user_id == User.id)
        .where(StripeCustomer.customer_id == customer_id)
    )
    return result.scalars().first()


async def create_customer_mapping(
    db: AsyncSession, user_id: uuid.UUID, customer_id: str
) -> StripeCustomer:
    """Insert a customer mapping. Raises IntegrityError on flush if one is live."""
    mapping = StripeCustomer(user_id=user_id, customer_id=customer_id)
    db.add(mapping)
    await db.flush()
    logger.info("Linked Stripe customer %s to user %s", customer_id, user_id)
    return mapping


async def soft_delete_customer_mapping(db: AsyncSession, customer_id: str) -> None:
    """Soft-delete a mapping and drop its placeholder subscription row."""
    await db.execute(
        delete(StripeSubscription).where(StripeSubscription.customer_id == customer_id)
    )
    mapping = await get_customer_by_stripe_id(db, customer_id)
    if mapping is not None and mapping.deleted_at is None:
        mapping.deleted_at = datetime.now(timezone.utc).replace(tzinfo=None)
    await db.flush()
    logger.info("Soft-deleted customer mapping for %s", customer_id)


# ---------------------------------------------------------------------------
# Subscription record
# ---------------------------------------------------------------------------


async def get_subscription_record(
    db: AsyncSession, customer_id: str
) -> StripeSubscription | None:
    """Look up the subscription record for a Stripe customer."""
    result = await db.execute(
        select(StripeSubscription).where(StripeSubscription.customer_id == customer_id)
    )
    return result.scalar_one_or_none()


async def create_subscription_record(
    db: AsyncSession, customer_id: str
) -> StripeSubscription:
    """Insert the ``not_started`` placeholder created at checkout time."""
    record = StripeSubscription(
        customer_id=customer_id,
        status=SubscriptionStatus.NOT_STARTED.value,
        is_trial_used=False,
    )
    db.add(record)
    await db.flush()
    logger.info("Created not_started subscription record for customer %s", customer_id)
    return record


def _insert_for(db: AsyncSession):
    """Dialect-specific INSERT supporting ``ON CONFLICT`` (PostgreSQL, SQLite in tests)."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


async def upsert_subscription(
    db: AsyncSession, customer_id: str, **fields: Any
) -> StripeSubscription:
    """Insert or update the record keyed on ``customer_id``.

    Runs as a single ``INSERT ... ON CONFLICT (customer_id) DO UPDATE``;
    the last writer wins. Every column passed in ``fields`` is written, including
    ``None`` values; columns not passed keep their stored value.
    """
    insert = _insert_for(db)
    stmt = insert(StripeSubscription).values(customer_id=customer_id, **fields)
    if fields:
        stmt = stmt.on_conflict_do_update(
            index_elements=[StripeSubscription.customer_id],
            set_={**fields, "updated_at": func.now()},
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=[StripeSubscription.customer_id])
    await db.execute(stmt)

    result = await db.execute(
        select(StripeSubscription)
        .where(StripeSubscription.customer_id == customer_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def mark_trial_used(db: AsyncSession, customer_id: str) -> bool:
    """Flip ``is_trial_used`` to true. Returns True only on the first flip."""
    record = await get_subscription_record(db, customer_id)
    if record is None or record.is_trial_used:
        return False

    record.is_trial_used = True
    await db.flush()
    logger.info("Marked trial as used for customer %s", customer_id)
    return True


async def is_trial_eligible(db: AsyncSession, user_id: uuid.UUID) -> bool:
    """Return False if any subscription ever linked to the user consumed a trial.

    The check spans soft-deleted customer mappings too, so cancelling and
    resubscribing never grants a second free trial.
    """
    result = await db.execute(
        select(StripeSubscription.id)
        .join(StripeCustomer, StripeCustomer.customer_id == StripeSubscription.customer_id)
        .where(
            StripeCustomer.user_id == user_id,
            (StripeSubscription.is_trial_used.is_(True))
            | (StripeSubscription.trial_start.is_not(None)),
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is None


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


async def get_order_by_session(
    db: AsyncSession, checkout_session_id: str
) -> StripeOrder | None:
    result = await db.execute(
        select(StripeOrder).where(StripeOrder.checkout_session_id == checkout_session_id)
    )
    return result.scalar_one_or_none()


async def create_order(db: AsyncSession, **fields: Any) -> StripeOrder:
    """Insert a one-time payment order."""
    order = StripeOrder(**fields)
    db.add(order)
    await db.flush()
    return order


async def list_orders_for_customer(
    db: AsyncSession, customer_id: str
) -> list[StripeOrder]:
    """Return the customer's orders, newest first."""
    result = await db.execute(
        select(StripeOrder)
        .where(StripeOrder.customer_id == customer_id)
        .order_by(StripeOrder.created_at.desc())
    )
    return list(result.scalars().all())
