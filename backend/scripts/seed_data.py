"""Seed a local demo user and print a bearer token for the billing API.

In production users are created by the identity provider; locally this
script stands in for it so checkout can be exercised against Stripe test mode.

Run from the backend directory:
    python -m scripts.seed_data
"""

import asyncio
import sys
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete, select

from gpsr_billing.auth.jwt import create_access_token
from gpsr_billing.database import async_session_factory, engine
from gpsr_billing.models.customer import StripeCustomer
from gpsr_billing.models.subscription import StripeSubscription
from gpsr_billing.models.trial_email import TrialEmail
from gpsr_billing.models.user import User

DEMO_USER = {
    "email": "demo@gpsr-compliance.test",
    "name": "Demo Seller",
}


async def seed() -> None:
    """Create the demo user, wiping any billing state from earlier runs.

    Idempotent: an existing demo user keeps its id (so old tokens stay valid)
    but loses its customer mappings, subscription records and email ledger.
    """
    async with async_session_factory() as session:
        result = await session.execute(select(User).where(User.email == DEMO_USER["email"]))
        user = result.scalar_one_or_none()

        if user is not None:
            print(f"Demo user '{DEMO_USER['email']}' already exists. Resetting billing state...")
            customer_ids = [mapping.customer_id for mapping in user.stripe_customers]
            if customer_ids:
                await session.execute(
                    delete(StripeSubscription).where(StripeSubscription.customer_id.in_(customer_ids))
                )
                await session.execute(
                    delete(StripeCustomer).where(StripeCustomer.customer_id.in_(customer_ids))
                )
            await session.execute(delete(TrialEmail).where(TrialEmail.user_id == user.id))
            await session.flush()
        else:
            user = User(**DEMO_USER)
            session.add(user)
            await session.flush()

        await session.commit()
        user_id = str(user.id)

    await engine.dispose()

    print(f"Demo user: {DEMO_USER['email']} (id={user_id})")
    print()
    print("Bearer token (valid for the configured access token lifetime):")
    print(create_access_token({"sub": user_id, "email": DEMO_USER["email"]}))


if __name__ == "__main__":
    asyncio.run(seed())
