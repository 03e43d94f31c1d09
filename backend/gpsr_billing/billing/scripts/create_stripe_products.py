"""Create the GPSR compliance plans in Stripe test mode.

Run once from the backend directory:
    python -m gpsr_billing.billing.scripts.create_stripe_products

Each plan gets a monthly and an annual recurring price. ``product_limit`` and
``feature_*`` metadata are what the products endpoint and the subscription
sync read back.
"""

import asyncio
import json

import stripe
from stripe import StripeClient

from gpsr_billing.config import settings

PLANS = [
    {
        "name": "GPSR Starter",
        "description": "Compliance documentation for small catalogues",
        "monthly_cents": 2900,
        "annual_cents": 29000,
        "product_limit": 25,
        "features": ["Up to 25 products", "Safety information templates", "Email support"],
    },
    {
        "name": "GPSR Professional",
        "description": "Compliance workflows for growing sellers",
        "monthly_cents": 7900,
        "annual_cents": 79000,
        "product_limit": 250,
        "features": ["Up to 250 products", "Responsible person management", "Bulk import"],
    },
    {
        "name": "GPSR Enterprise",
        "description": "Unlimited compliance coverage with priority support",
        "monthly_cents": 19900,
        "annual_cents": 199000,
        "product_limit": 5000,
        "features": ["Up to 5000 products", "API access", "Priority support"],
    },
]


def _product_metadata(plan: dict) -> dict[str, str]:
    metadata = {
        "product_limit": str(plan["product_limit"]),
        "benefits": json.dumps(plan["features"][:1]),
    }
    for index, feature in enumerate(plan["features"][1:], start=1):
        metadata[f"feature_{index}"] = feature
    return metadata


async def main() -> None:
    if not settings.stripe_secret_key:
        print("ERROR: STRIPE_SECRET_KEY is not set in .env")
        return

    client = StripeClient(
        settings.stripe_secret_key,
        http_client=stripe.HTTPXClient(),
    )

    for plan in PLANS:
        product = await client.v1.products.create_async(
            params={
                "name": plan["name"],
                "description": plan["description"],
                "metadata": _product_metadata(plan),
            }
        )
        monthly = await client.v1.prices.create_async(
            params={
                "product": product.id,
                "unit_amount": plan["monthly_cents"],
                "currency": "eur",
                "recurring": {"interval": "month"},
            }
        )
        annual = await client.v1.prices.create_async(
            params={
                "product": product.id,
                "unit_amount": plan["annual_cents"],
                "currency": "eur",
                "recurring": {"interval": "year"},
            }
        )
        print(f"Created product: {product.name} ({product.id})")
        print(f"  Monthly: EUR {plan['monthly_cents'] / 100:.2f} ({monthly.id})")
        print(f"  Annual:  EUR {plan['annual_cents'] / 100:.2f} ({annual.id})")


if __name__ == "__main__":
    asyncio.run(main())
