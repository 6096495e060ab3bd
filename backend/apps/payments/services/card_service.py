"""
Saved-card management against Stripe and the local card table.
"""
from typing import Any, Dict, List, Optional

import stripe
from django.db import transaction

from apps.core.models import SavedCard, User
from apps.core.services.base import BaseService, ServiceResult
from apps.integrations.services.stripe_client import (
    get_stripe_client, stripe_error_details, stripe_error_message
)


class CardService(BaseService):
    """
    Keeps a user's saved cards and default payment method in step with
    Stripe.

    Stripe is always updated first and the local row mirrors it. When the
    local step fails after Stripe succeeded, a read-repair task reconciles
    the two later (see apps.payments.tasks).
    """

    def __init__(self, client: Optional[stripe.StripeClient] = None):
        super().__init__()
        self.client = client or get_stripe_client()

    @staticmethod
    def card_summary(card: SavedCard) -> Dict[str, Any]:
        return {
            'id': card.payment_method_id,
            'brand': card.brand,
            'last4': card.last4,
            'exp_month': card.exp_month,
            'exp_year': card.exp_year,
            'created_at': card.created_at,
        }

    def _stripe_failure(self, message: str, exc: stripe.error.StripeError) -> ServiceResult:
        return ServiceResult.fail(
            stripe_error_message(exc, message),
            error_code="STRIPE_ERROR",
            details=stripe_error_details(exc)
        )

    def save_card(self, user: User, payment_method: Dict[str, Any]) -> SavedCard:
        """
        Store the card summary of a Stripe PaymentMethod for a user.
        Saving the same payment method twice returns the existing row.
        """
        card = payment_method.get('card') or {}
        saved, created = SavedCard.objects.get_or_create(
            user=user,
            payment_method_id=payment_method['id'],
            defaults={
                'brand': card.get('brand') or '',
                'last4': card.get('last4') or '',
                'exp_month': card.get('exp_month'),
                'exp_year': card.get('exp_year'),
            }
        )
        if created:
            self.log_info(
                f"Saved card for user {user.pk}",
                payment_method_id=saved.payment_method_id
            )
        return saved

    def fetch_and_save_card(self, user: User, payment_method_id: str) -> SavedCard:
        """
        Retrieve a PaymentMethod from Stripe and save it for the user.

        Raises:
            stripe.error.StripeError: if the payment method cannot be retrieved
        """
        payment_method = self.client.payment_methods.retrieve(payment_method_id)
        return self.save_card(user, payment_method)

    def list_cards(self, user_id: str) -> ServiceResult:
        """
        List a user's saved cards, oldest first.

        Args:
            user_id: Application user ID

        Returns:
            ServiceResult with a list of card summaries
        """
        try:
            user = User.objects.get(pk=user_id)
        except User.DoesNotExist:
            return ServiceResult.fail(
                "User not found",
                error_code="USER_NOT_FOUND"
            )

        cards: List[Dict[str, Any]] = [
            self.card_summary(card) for card in user.saved_cards.all()
        ]
        return ServiceResult.ok(cards)

    def get_payment_method(self, payment_method_id: str) -> ServiceResult:
        """
        Retrieve a PaymentMethod from Stripe.

        Returns:
            ServiceResult with the Stripe PaymentMethod as data
        """
        try:
            payment_method = self.client.payment_methods.retrieve(payment_method_id)
        except stripe.error.StripeError as e:
            self.log_error(
                "Stripe error retrieving payment method",
                exception=e,
                payment_method_id=payment_method_id
            )
            return self._stripe_failure("Failed to retrieve payment method", e)

        return ServiceResult.ok(payment_method)

    def attach_payment_method(
        self,
        payment_method_id: Optional[str],
        customer_id: Optional[str]
    ) -> ServiceResult:
        """
        Attach a PaymentMethod to a Stripe customer.

        Returns:
            ServiceResult with the attached PaymentMethod, or MISSING_FIELDS,
            ATTACH_FAILED (payment method does not exist) or STRIPE_ERROR
        """
        if not payment_method_id or not customer_id:
            return ServiceResult.fail(
                "Missing required data",
                error_code="MISSING_FIELDS"
            )

        try:
            payment_method = self.client.payment_methods.attach(
                payment_method_id,
                params={'customer': customer_id}
            )
        except stripe.error.InvalidRequestError as e:
            if getattr(e, 'code', None) == 'resource_missing':
                self.log_warning(
                    "Payment method to attach does not exist",
                    payment_method_id=payment_method_id,
                    customer_id=customer_id
                )
                return ServiceResult.fail(
                    "Payment method could not be attached",
                    error_code="ATTACH_FAILED",
                    details=stripe_error_details(e)
                )
            self.log_error(
                "Stripe error attaching payment method",
                exception=e,
                payment_method_id=payment_method_id
            )
            return self._stripe_failure("Failed to attach payment method", e)
        except stripe.error.StripeError as e:
            self.log_error(
                "Stripe error attaching payment method",
                exception=e,
                payment_method_id=payment_method_id
            )
            return self._stripe_failure("Failed to attach payment method", e)

        return ServiceResult.ok(payment_method)

    def set_default_card(
        self,
        customer_id: Optional[str],
        payment_method_id: Optional[str],
        user_id: Optional[str]
    ) -> ServiceResult:
        """
        Make a card the customer's default for invoices and mirror it locally.

        Returns:
            ServiceResult with a confirmation message
        """
        if not customer_id or not payment_method_id or not user_id:
            return ServiceResult.fail(
                "Missing required data",
                error_code="MISSING_FIELDS"
            )

        try:
            self.client.customers.update(
                customer_id,
                params={
                    'invoice_settings': {
                        'default_payment_method': payment_method_id
                    }
                }
            )
        except stripe.error.StripeError as e:
            self.log_error(
                "Stripe error setting default payment method",
                exception=e,
                customer_id=customer_id
            )
            return self._stripe_failure("Failed to set default card", e)

        User.objects.filter(pk=user_id).update(
            default_payment_method=payment_method_id
        )

        self.log_info(
            f"Default card updated for user {user_id}",
            payment_method_id=payment_method_id
        )
        return ServiceResult.ok({'message': 'Default card updated successfully'})

    def remove_card(
        self,
        payment_method_id: Optional[str],
        user_id: Optional[str]
    ) -> ServiceResult:
        """
        Detach a card in Stripe, then drop it from the user's saved cards.

        If the local step fails after the detach, the card is left for the
        read-repair task, which is queued here.

        Returns:
            ServiceResult with a confirmation message
        """
        if not payment_method_id or not user_id:
            return ServiceResult.fail(
                "Missing required data",
                error_code="MISSING_FIELDS"
            )

        try:
            self.client.payment_methods.detach(payment_method_id)
        except stripe.error.StripeError as e:
            self.log_error(
                "Stripe error detaching payment method",
                exception=e,
                payment_method_id=payment_method_id
            )
            return self._stripe_failure("Failed to remove card", e)

        try:
            self._forget_card(user_id, payment_method_id)
        except Exception as e:
            from apps.payments.tasks import repair_saved_cards

            self.log_error(
                "Card detached in Stripe but local removal failed; queued repair",
                exception=e,
                user_id=user_id,
                payment_method_id=payment_method_id
            )
            repair_saved_cards.delay(user_id)

        return ServiceResult.ok({'message': 'Card removed successfully'})

    @transaction.atomic
    def _forget_card(self, user_id: str, payment_method_id: str) -> None:
        SavedCard.objects.filter(
            user_id=user_id,
            payment_method_id=payment_method_id
        ).delete()
        User.objects.filter(
            pk=user_id,
            default_payment_method=payment_method_id
        ).update(default_payment_method=None)

    def repair_saved_cards(self, user_id: str) -> ServiceResult:
        """
        Drop saved cards that are no longer attached to the user's Stripe
        customer and clear a default that points at one of them.

        Returns:
            ServiceResult with the removed payment method IDs
        """
        try:
            user = User.objects.get(pk=user_id)
        except User.DoesNotExist:
            return ServiceResult.fail(
                "User not found",
                error_code="USER_NOT_FOUND"
            )

        if not user.stripe_customer_id:
            attached = set()
        else:
            try:
                attached = {
                    pm.id for pm in self.client.payment_methods.list(params={
                        'customer': user.stripe_customer_id,
                        'type': 'card',
                    }).auto_paging_iter()
                }
            except stripe.error.StripeError as e:
                self.log_error(
                    "Stripe error listing payment methods for repair",
                    exception=e,
                    user_id=user_id
                )
                return self._stripe_failure("Failed to list payment methods", e)

        with transaction.atomic():
            stale = user.saved_cards.exclude(payment_method_id__in=attached)
            removed = list(stale.values_list('payment_method_id', flat=True))
            stale.delete()

            default_cleared = bool(
                user.default_payment_method
                and user.default_payment_method not in attached
            )
            if default_cleared:
                User.objects.filter(pk=user_id).update(default_payment_method=None)

        if removed or default_cleared:
            self.log_warning(
                f"Repaired saved cards for user {user_id}",
                removed=removed,
                default_cleared=default_cleared
            )

        return ServiceResult.ok({
            'removed': removed,
            'default_cleared': default_cleared
        })
