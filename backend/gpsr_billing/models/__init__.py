"""SQLAlchemy models for the GPSR billing backend.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from gpsr_billing.models.customer import StripeCustomer
from gpsr_billing.models.order import StripeOrder
from gpsr_billing.models.subscription import StripeSubscription, SubscriptionStatus
from gpsr_billing.models.trial_email import TrialEmail, TrialEmailType
from gpsr_billing.models.user import User

__all__ = [
    "StripeCustomer",
    "StripeOrder",
    "StripeSubscription",
    "SubscriptionStatus",
    "TrialEmail",
    "TrialEmailType",
    "User",
]
