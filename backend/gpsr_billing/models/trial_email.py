"""TrialEmail model — append-only ledger of trial lifecycle notifications."""

import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from gpsr_billing.database import Base, UUIDPrimaryKeyMixin


class TrialEmailType(str, enum.Enum):
    TRIAL_STARTED = "trial_started"
    TRIAL_REMINDER_7DAYS = "trial_reminder_7days"
    TRIAL_REMINDER_48HOURS = "trial_reminder_48hours"
    TRIAL_ENDED = "trial_ended"
    TRIAL_CONVERTED = "trial_converted"
    TRIAL_CANCELED = "trial_canceled"
    SUBSCRIPTION_CANCELED = "subscription_canceled"
    PAYMENT_METHOD_NEEDED = "payment_method_needed"


class TrialEmail(UUIDPrimaryKeyMixin, Base):
    """One row per notification attempt; never updated or deleted."""

    __tablename__ = "trial_emails"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email_type: Mapped[str] = mapped_column(String(50), nullable=False)
    sent_at: Mapped[datetime] = mapped_column(server_default=func.now())
    # "metadata" is reserved on declarative classes
    details: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<TrialEmail(user_id={self.user_id}, email_type={self.email_type})>"
