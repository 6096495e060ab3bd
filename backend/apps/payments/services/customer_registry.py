"""
Maps application users to Stripe customers.
"""
from typing import Optional

import stripe

from apps.core.models import User
from apps.core.services.base import BaseService
from apps.integrations.services.stripe_client import get_stripe_client


class CustomerRegistry(BaseService):
    """
    Lazily creates one Stripe customer per user and remembers it.

    Two concurrent first calls for the same user can both create a customer;
    the last write wins and the other customer is orphaned in Stripe.
    """

    def __init__(self, client: Optional[stripe.StripeClient] = None):
        super().__init__()
        self.client = client or get_stripe_client()

    def get_or_create_customer(self, user_id: str, email: Optional[str] = None) -> str:
        """
        Return the user's Stripe customer ID, creating the customer if needed.

        Args:
            user_id: Application user ID
            email: Email to register with Stripe; a placeholder is used if empty

        Returns:
            Stripe customer ID

        Raises:
            stripe.error.StripeError: if the customer cannot be created
        """
        existing = (
            User.objects.filter(pk=user_id)
            .values_list('stripe_customer_id', flat=True)
            .first()
        )
        if existing:
            return existing

        customer = self.client.customers.create(params={
            'email': email or f"user_{user_id}@example.com",
            'metadata': {'userId': user_id},
        })

        # Field-level write so concurrent edits to other columns survive
        updated = User.objects.filter(pk=user_id).update(
            stripe_customer_id=customer.id
        )
        if not updated:
            User.objects.create_user(
                id=user_id,
                email=email,
                stripe_customer_id=customer.id
            )

        self.log_info(
            f"Created Stripe customer for user {user_id}",
            customer_id=customer.id
        )
        return customer.id
