"""
Process-wide Stripe client.
"""
from functools import lru_cache

import stripe
from django.conf import settings


@lru_cache(maxsize=1)
def get_stripe_client() -> stripe.StripeClient:
    """
    Return the shared StripeClient, built once from settings.

    Services take an optional ``client`` argument and fall back to this
    instance, so tests can pass a mock without touching global state.
    """
    return stripe.StripeClient(
        settings.STRIPE_SECRET_KEY,
        stripe_version=settings.STRIPE_API_VERSION,
    )


def stripe_error_details(exc: stripe.error.StripeError) -> dict:
    """Summarise a Stripe error for API error bodies."""
    return {
        'type': type(exc).__name__,
        'code': getattr(exc, 'code', None),
    }


def stripe_error_message(exc: stripe.error.StripeError, default: str) -> str:
    """Prefer Stripe's user-facing message over the raw exception text."""
    return getattr(exc, 'user_message', None) or str(exc) or default
