"""Billing error hierarchy — rendered as ``{"error": message}`` by the API."""


class BillingError(Exception):
    """Base error for billing operations. Defaults to a 500 response."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BillingNotFoundError(BillingError):
    """The user has no Stripe customer or no subscription to act on."""

    status_code = 404


class BillingUpstreamError(BillingError):
    """Stripe or the database failed after the request was validated.

    The message is generic; the underlying error is only logged.
    """

    status_code = 500
