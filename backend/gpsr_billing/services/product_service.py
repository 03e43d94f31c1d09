"""Product catalogue — Stripe products with their monthly and annual prices."""

import asyncio
import json
import logging

import stripe

from gpsr_billing.billing.stripe_client import list_active_prices, list_active_products
from gpsr_billing.schemas.billing import ProductPriceIds, ProductPrices, ProductResponse

logger = logging.getLogger(__name__)


def _find_recurring_price(prices: list[stripe.Price], interval: str) -> stripe.Price | None:
    for price in prices:
        recurring = getattr(price, "recurring", None)
        if recurring is not None and getattr(recurring, "interval", None) == interval:
            return price
    return None


def _major_units(price: stripe.Price | None) -> float | None:
    """Convert a price's unit_amount (cents) to major units; None if absent or zero."""
    amount = getattr(price, "unit_amount", None) if price is not None else None
    if not amount:
        return None
    return amount / 100


def _monthly_equivalent(annual: stripe.Price | None) -> float | None:
    amount = getattr(annual, "unit_amount", None) if annual is not None else None
    if not amount:
        return None
    return round(amount / 12) / 100


def collect_features(product: stripe.Product) -> list[str]:
    """Features from the product, a JSON ``benefits`` list, and ``feature_*`` metadata."""
    features = [feature.name for feature in (getattr(product, "features", None) or [])]
    metadata = getattr(product, "metadata", None) or {}

    benefits = metadata.get("benefits")
    if benefits:
        try:
            parsed = json.loads(benefits)
        except (TypeError, ValueError):
            logger.warning("Failed to parse benefits for product %s", product.id)
        else:
            if isinstance(parsed, list):
                for benefit in parsed:
                    if isinstance(benefit, str):
                        features.append(benefit)
                    else:
                        logger.warning(
                            "Skipping non-string benefit %r on product %s", benefit, product.id
                        )

    features.extend(value for key, value in metadata.items() if key.startswith("feature_"))
    return features


async def build_product(product: stripe.Product) -> ProductResponse:
    """Fetch a product's prices and shape it for the pricing page."""
    prices = await list_active_prices(product.id)
    monthly = _find_recurring_price(prices, "month")
    annual = _find_recurring_price(prices, "year")

    return ProductResponse(
        id=product.id,
        name=product.name,
        description=getattr(product, "description", None) or "",
        features=collect_features(product),
        metadata=dict(getattr(product, "metadata", None) or {}),
        prices=ProductPrices(
            monthly=_major_units(monthly),
            annual=_major_units(annual),
            monthly_with_annual_discount=_monthly_equivalent(annual),
        ),
        price_ids=ProductPriceIds(
            monthly=monthly.id if monthly is not None else None,
            annual=annual.id if annual is not None else None,
        ),
        images=list(getattr(product, "images", None) or []),
        created=product.created,
        updated=product.updated,
    )


async def list_products() -> list[ProductResponse]:
    """Return active products sorted by monthly price, cheapest first."""
    products = await list_active_products()
    results = await asyncio.gather(*(build_product(product) for product in products))
    return sorted(results, key=lambda p: p.prices.monthly or 0)
