"""User model — local mirror of the identity provider's accounts."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gpsr_billing.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Account owned by the identity provider.

    The primary key is the ``sub`` claim of the provider's access tokens, so
    rows are never created by this service during normal operation.
    """

    __tablename__ = "users"

    email: Mapped[str | None] = mapped_column(String(255), unique=True, index=True, nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Relationships (includes soft-deleted mappings)
    stripe_customers: Mapped[list["StripeCustomer"]] = relationship(  # noqa: F821
        "StripeCustomer", back_populates="user", lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"
