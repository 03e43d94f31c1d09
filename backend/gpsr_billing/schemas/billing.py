"""Pydantic v2 request/response schemas for billing endpoints."""

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# --- Request schemas ---


class CheckoutRequest(BaseModel):
    """Request to create a Stripe Checkout session."""

    price_id: str
    success_url: str
    cancel_url: str
    mode: Literal["payment", "subscription"]
    trial_period_days: int | None = Field(default=None, ge=0)  # None = configured default
    billing_cycle_anchor: int | None = None  # epoch seconds
    promotion_code: str | None = None


class CancelSubscriptionRequest(BaseModel):
    """Request to cancel the current subscription."""

    cancel_immediately: bool = False  # accepted, but cancellation is always at period end


class PortalRequest(BaseModel):
    """Request to create a Stripe Customer Portal session."""

    return_url: str | None = None


# --- Response schemas ---


class CheckoutResponse(BaseModel):
    """Stripe Checkout session returned to the dashboard."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    url: str | None


class CancelSubscriptionResponse(BaseModel):
    success: bool = True
    message: str
    is_immediate: bool = False


class PortalResponse(BaseModel):
    """Stripe Customer Portal URL returned to frontend."""

    url: str


class ProductPrices(BaseModel):
    """Prices in major currency units (e.g. 29.0)."""

    model_config = ConfigDict(populate_by_name=True)

    monthly: float | None
    annual: float | None
    monthly_with_annual_discount: float | None = Field(alias="monthlyWithAnnualDiscount")


class ProductPriceIds(BaseModel):
    monthly: str | None
    annual: str | None


class ProductResponse(BaseModel):
    """A Stripe product as shown on the pricing page."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    description: str
    features: list[str]
    metadata: dict[str, Any]
    prices: ProductPrices
    price_ids: ProductPriceIds = Field(alias="priceIds")
    images: list[str]
    created: int
    updated: int


class SubscriptionResponse(BaseModel):
    """The authenticated user's subscription record."""

    model_config = ConfigDict(from_attributes=True)

    customer_id: str
    subscription_id: str | None
    subscription_status: str = Field(validation_alias=AliasChoices("subscription_status", "status"))
    price_id: str | None
    product_limit: int
    current_period_start: int | None
    current_period_end: int | None
    cancel_at_period_end: bool
    trial_start: int | None
    trial_end: int | None
    is_trial_used: bool
    payment_method_brand: str | None
    payment_method_last4: str | None
    is_subscription_active: bool
    has_active_subscription: bool


class OrderResponse(BaseModel):
    """A completed one-time payment."""

    model_config = ConfigDict(from_attributes=True)

    checkout_session_id: str
    payment_intent_id: str | None
    amount_subtotal: int | None
    amount_total: int | None
    currency: str | None
    payment_status: str
    order_status: str = Field(validation_alias=AliasChoices("order_status", "status"))


class WebhookAck(BaseModel):
    received: bool = True
