"""StripeCustomer model — maps a local user to a Stripe customer."""

import uuid

from sqlalchemy import ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gpsr_billing.database import Base, SoftDeleteMixin, TimestampMixin, UUIDPrimaryKeyMixin


class StripeCustomer(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    """Customer mapping, created lazily on a user's first checkout."""

    __tablename__ = "stripe_customers"
    __table_args__ = (
        # At most one live mapping per user; soft-deleted rows are history.
        Index(
            "uq_stripe_customers_user_id_live",
            "user_id",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    customer_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    # Relationships
    user: Mapped["User"] = relationship(back_populates="stripe_customers", lazy="selectin")  # type: ignore[name-defined]  # noqa: F821

    def __repr__(self) -> str:
        return (
            f"<StripeCustomer(user_id={self.user_id}, customer_id={self.customer_id}, "
            f"deleted={self.is_deleted})>"
        )
