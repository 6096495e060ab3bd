"""
Stripe webhook signature verification.
"""
from typing import Optional

import stripe
from django.conf import settings

from apps.core.services.base import BaseService, ServiceResult


class WebhookVerifier(BaseService):
    """
    Authenticates webhook deliveries against the endpoint signing secret.

    Verification must run over the exact bytes Stripe sent; a body that has
    been parsed and re-serialized will not match the signature.
    """

    def __init__(self, secret: Optional[str] = None):
        super().__init__()
        self.secret = secret or settings.STRIPE_WEBHOOK_SECRET

    def verify(self, payload: bytes, signature: Optional[str],
               secret: Optional[str] = None) -> ServiceResult:
        """
        Verify a webhook delivery and construct the event.

        Args:
            payload: Raw request body
            signature: Value of the Stripe-Signature header
            secret: Optional override of the configured signing secret

        Returns:
            ServiceResult with the stripe.Event as data, or a failure coded
            MISSING_SIGNATURE, INVALID_PAYLOAD or INVALID_SIGNATURE
        """
        if not signature:
            self.log_warning("Webhook received without signature header")
            return ServiceResult.fail(
                "Missing Stripe-Signature header",
                error_code="MISSING_SIGNATURE"
            )

        try:
            event = stripe.Webhook.construct_event(
                payload, signature, secret or self.secret
            )
        except ValueError as e:
            self.log_error("Invalid webhook payload", exception=e)
            return ServiceResult.fail(
                "Invalid payload",
                error_code="INVALID_PAYLOAD"
            )
        except stripe.error.SignatureVerificationError as e:
            self.log_error("Invalid webhook signature", exception=e)
            return ServiceResult.fail(
                "Invalid signature",
                error_code="INVALID_SIGNATURE"
            )

        return ServiceResult.ok(event)
