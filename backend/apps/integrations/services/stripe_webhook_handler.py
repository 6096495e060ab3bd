"""
Stripe webhook event handler service.
Reconciles orders, wallets and saved cards with Stripe payment outcomes.
"""
from typing import Any, Dict, Optional

import stripe
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.core.models import SavedCard, User, WalletTransaction
from apps.core.services.base import BaseService, ServiceResult
from apps.integrations.events import (
    PaymentIntentPaymentFailed,
    PaymentIntentSucceeded,
    SetupIntentSucceeded,
    parse_event,
)
from apps.orders.models import Order
from apps.payments.services.card_service import CardService
from apps.payments.services.wallet_service import WalletService


class StripeWebhookHandler(BaseService):
    """
    Handles verified Stripe webhook events with event-specific methods.
    Uses a handler registry keyed on the typed event variant.

    Supported Events:
    - payment_intent.succeeded: Mark the order paid and take the wallet
      portion, or credit a wallet top-up
    - payment_intent.payment_failed: Mark the order failed
    - setup_intent.succeeded: Save the new card

    Every handler is idempotent; Stripe redelivers events freely.
    """

    def __init__(self, client: Optional[stripe.StripeClient] = None,
                 wallet_service: Optional[WalletService] = None,
                 card_service: Optional[CardService] = None):
        """Initialize handler with event registry."""
        super().__init__()
        self.wallet_service = wallet_service or WalletService()
        self.card_service = card_service or CardService(client=client)

        # Event handler registry
        self.handlers = {
            PaymentIntentSucceeded: self.handle_payment_intent_succeeded,
            PaymentIntentPaymentFailed: self.handle_payment_intent_failed,
            SetupIntentSucceeded: self.handle_setup_intent_succeeded,
        }

    def handle_event(self, event: Dict[str, Any]) -> ServiceResult:
        """
        Main entry point for webhook events.
        Routes events to specific handlers based on event type.

        Args:
            event: Verified Stripe event (dict-like)

        Returns:
            ServiceResult indicating success or failure; failures are
            informational only and never change the HTTP response
        """
        parsed = parse_event(event)
        event_type = event.get('type')
        event_id = event.get('id')

        self.log_info(
            f"Processing webhook event: {event_type}",
            event_id=event_id,
            event_type=event_type
        )

        handler = self.handlers.get(type(parsed))

        if handler is None:
            # Unknown event type - log but don't error
            self.log_info(
                f"Unhandled webhook event type: {event_type}",
                event_id=event_id
            )
            return ServiceResult.ok({
                'message': f'Event type {event_type} not handled',
                'event_id': event_id
            })

        try:
            result = handler(parsed)

            if result.success:
                self.log_info(
                    f"Successfully handled {event_type}",
                    event_id=event_id
                )
            else:
                self.log_error(
                    f"Handler failed for {event_type}: {result.error}",
                    event_id=event_id,
                    error_code=result.error_code
                )

            return result

        except Exception as e:
            self.log_error(
                f"Exception handling {event_type}",
                exception=e,
                event_id=event_id
            )
            return ServiceResult.fail(
                f"Failed to process event: {str(e)}",
                error_code="HANDLER_EXCEPTION"
            )

    def handle_payment_intent_succeeded(self, event: PaymentIntentSucceeded) -> ServiceResult:
        """
        Handle successful payment.

        Wallet top-ups credit the wallet; order payments move the order to
        paid/confirmed, deduct the wallet portion and record the order in
        the user's history. A second delivery of the same event is a no-op.

        Args:
            event: Parsed payment_intent.succeeded event

        Returns:
            ServiceResult with what was applied
        """
        intent = event.intent

        self.log_info(
            f"Payment intent succeeded: {intent.id}",
            amount=intent.amount,
            metadata=intent.metadata
        )

        if intent.is_wallet_top_up:
            return self._handle_wallet_top_up_succeeded(event)

        order_id = intent.order_id
        user_id = intent.user_id
        if not order_id or not user_id:
            self.log_warning(
                "Payment intent has no orderId or userId in metadata",
                intent_id=intent.id
            )
            return ServiceResult.fail(
                "Missing orderId or userId in payment metadata",
                error_code="MISSING_METADATA"
            )

        with transaction.atomic():
            order = Order.objects.select_for_update().filter(pk=order_id).first()
            if order is None:
                return ServiceResult.fail(
                    f"Order {order_id} not found",
                    error_code="ORDER_NOT_FOUND"
                )

            user = User.objects.select_for_update().filter(pk=user_id).first()
            if user is None:
                return ServiceResult.fail(
                    f"User {user_id} not found",
                    error_code="USER_NOT_FOUND"
                )

            if order.is_paid:
                self.log_info(
                    f"Order {order_id} already paid, skipping",
                    intent_id=intent.id
                )
                return ServiceResult.ok({
                    'order_id': order_id,
                    'already_paid': True
                })

            now = timezone.now()
            currency = (intent.currency or settings.PAYMENTS_DEFAULT_CURRENCY).upper()

            # Conditional write: only one delivery can flip the order to paid
            updated = Order.objects.filter(pk=order_id).exclude(
                payment_status=Order.PAYMENT_PAID
            ).update(
                payment_status=Order.PAYMENT_PAID,
                order_status=Order.STATUS_CONFIRMED,
                verified=True,
                stripe_payment_intent_id=intent.id,
                stripe_charge_id=intent.latest_charge or '',
                currency=currency,
                paid_at=now,
                updated_at=now
            )
            if not updated:
                return ServiceResult.ok({
                    'order_id': order_id,
                    'already_paid': True
                })

            wallet_deducted = 0
            if intent.wallet_amount > 0:
                debit = self.wallet_service.debit_for_order(
                    user,
                    intent.wallet_amount,
                    order_id=order_id,
                    payment_intent_id=intent.id
                )
                if debit.success:
                    wallet_deducted = intent.wallet_amount
                else:
                    # Order stays paid; the shortfall is left for support
                    self.log_error(
                        f"Wallet deduction failed for order {order_id}: {debit.error}",
                        user_id=user_id,
                        wallet_amount=intent.wallet_amount,
                        balance=user.wallet_balance
                    )

            if order_id not in user.order_history:
                user.order_history = [*user.order_history, order_id]
                user.save(update_fields=['order_history', 'updated_at'])

        self.log_info(
            f"Marked order {order_id} as paid",
            intent_id=intent.id,
            wallet_deducted=wallet_deducted
        )

        return ServiceResult.ok({
            'order_id': order_id,
            'already_paid': False,
            'wallet_deducted': wallet_deducted
        })

    def _handle_wallet_top_up_succeeded(self, event: PaymentIntentSucceeded) -> ServiceResult:
        """
        Credit a wallet top-up confirmed client-side.
        The deposit ledger makes this safe against the synchronous credit
        in add_money_to_wallet and against redelivery.
        """
        intent = event.intent
        user_id = intent.user_id
        if not user_id:
            self.log_warning(
                "Wallet top-up has no userId in metadata",
                intent_id=intent.id
            )
            return ServiceResult.fail(
                "Missing userId in payment metadata",
                error_code="MISSING_METADATA"
            )

        with transaction.atomic():
            user = User.objects.select_for_update().filter(pk=user_id).first()
            if user is None:
                return ServiceResult.fail(
                    f"User {user_id} not found",
                    error_code="USER_NOT_FOUND"
                )

            # A card already saved for the user means the top-up was a saved-card
            # charge that needed client confirmation
            paid_with_saved_card = bool(intent.payment_method) and SavedCard.objects.filter(
                user=user, payment_method_id=intent.payment_method
            ).exists()

            result = self.wallet_service.credit_deposit(
                user,
                intent.amount,
                payment_intent_id=intent.id,
                charge_id=intent.latest_charge,
                payment_method=(
                    WalletTransaction.METHOD_SAVED_CARD if paid_with_saved_card
                    else WalletTransaction.METHOD_NEW_CARD
                ),
                save_card=intent.save_card
            )

        if result.success and intent.save_card and intent.payment_method:
            try:
                self.card_service.fetch_and_save_card(user, intent.payment_method)
            except stripe.error.StripeError as e:
                self.log_error(
                    "Error saving card after wallet top-up",
                    exception=e,
                    user_id=user_id
                )

        return result

    def handle_payment_intent_failed(self, event: PaymentIntentPaymentFailed) -> ServiceResult:
        """
        Handle failed payment.
        Records the failure on the order unless it has already been paid.

        Args:
            event: Parsed payment_intent.payment_failed event

        Returns:
            ServiceResult with the recorded error
        """
        intent = event.intent
        order_id = intent.order_id
        error_message = intent.last_payment_error_message or "Payment failed"

        self.log_warning(
            f"Payment intent failed: {intent.id}",
            amount=intent.amount,
            error_message=error_message,
            metadata=intent.metadata
        )

        if not order_id or not intent.user_id:
            return ServiceResult.fail(
                "Missing orderId or userId in payment metadata",
                error_code="MISSING_METADATA"
            )

        updated = Order.objects.filter(pk=order_id).exclude(
            payment_status=Order.PAYMENT_PAID
        ).update(
            payment_status=Order.PAYMENT_FAILED,
            payment_error=error_message,
            updated_at=timezone.now()
        )

        if not updated:
            if not Order.objects.filter(pk=order_id).exists():
                return ServiceResult.fail(
                    f"Order {order_id} not found",
                    error_code="ORDER_NOT_FOUND"
                )
            self.log_info(
                f"Ignoring failure for already paid order {order_id}",
                intent_id=intent.id
            )

        return ServiceResult.ok({
            'order_id': order_id,
            'payment_failed': bool(updated),
            'error': error_message
        })

    def handle_setup_intent_succeeded(self, event: SetupIntentSucceeded) -> ServiceResult:
        """
        Handle a completed card setup.
        Saves the card for the user owning the Stripe customer.

        Args:
            event: Parsed setup_intent.succeeded event

        Returns:
            ServiceResult with the saved card ID
        """
        setup_intent = event.setup_intent
        customer_id = setup_intent.customer
        payment_method_id = setup_intent.payment_method

        if not customer_id or not payment_method_id:
            self.log_warning(
                "Setup intent has no customer or payment method",
                setup_intent_id=setup_intent.id
            )
            return ServiceResult.fail(
                "Missing customer or payment method on setup intent",
                error_code="MISSING_METADATA"
            )

        user = User.objects.filter(stripe_customer_id=customer_id).first()
        if user is None:
            return ServiceResult.fail(
                f"No user for customer {customer_id}",
                error_code="USER_NOT_FOUND"
            )

        card = self.card_service.fetch_and_save_card(user, payment_method_id)

        return ServiceResult.ok({
            'user_id': user.pk,
            'payment_method_id': card.payment_method_id
        })
