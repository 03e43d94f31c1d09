"""StripeSubscription model — last-known Stripe subscription state per customer."""

import enum

from sqlalchemy import BigInteger, Boolean, ForeignKey, Integer, String, false
from sqlalchemy.orm import Mapped, mapped_column

from gpsr_billing.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class SubscriptionStatus(str, enum.Enum):
    """Stripe subscription statuses plus the local ``not_started`` placeholder."""

    NOT_STARTED = "not_started"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    PAUSED = "paused"


ACTIVE_STATUSES: frozenset[str] = frozenset(
    {SubscriptionStatus.ACTIVE.value, SubscriptionStatus.TRIALING.value}
)


class StripeSubscription(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One row per Stripe customer, overwritten by every synchronization.

    Timestamps copied from Stripe (period and trial bounds) are kept as epoch
    seconds, exactly as Stripe reports them.
    """

    __tablename__ = "stripe_subscriptions"

    # One-to-one with the customer mapping (UNIQUE is the upsert key)
    customer_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("stripe_customers.customer_id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Plan & status
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=SubscriptionStatus.NOT_STARTED.value
    )
    price_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Billing period (epoch seconds)
    current_period_start: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    current_period_end: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    cancel_at_period_end: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    # Trial (epoch seconds)
    trial_start: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    trial_end: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    is_trial_used: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    # Payment method summary
    payment_method_brand: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payment_method_last4: Mapped[str | None] = mapped_column(String(4), nullable=True)

    @property
    def is_subscription_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def has_active_subscription(self) -> bool:
        """True when an actual Stripe subscription backs an active status."""
        return self.subscription_id is not None and self.is_subscription_active

    def __repr__(self) -> str:
        return (
            f"<StripeSubscription(customer_id={self.customer_id}, "
            f"subscription_id={self.subscription_id}, status={self.status})>"
        )
