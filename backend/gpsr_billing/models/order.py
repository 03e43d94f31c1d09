"""StripeOrder model — one-time payments completed through Checkout."""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from gpsr_billing.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class StripeOrder(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Order row written straight from a paid ``payment``-mode checkout session."""

    __tablename__ = "stripe_orders"

    checkout_session_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Amounts in the smallest currency unit
    amount_subtotal: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    amount_total: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    payment_status: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="completed")

    def __repr__(self) -> str:
        return f"<StripeOrder(checkout_session_id={self.checkout_session_id}, status={self.status})>"
