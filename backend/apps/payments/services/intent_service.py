"""
Payment and setup intent issuing.
Creates Stripe intents for order checkout, card setup and wallet top-ups.
"""
from typing import Any, Dict, Optional

import stripe
from django.conf import settings
from django.db import transaction

from apps.core.models import User, WalletTransaction
from apps.core.services.base import BaseService, ServiceResult
from apps.integrations.events import WALLET_TOP_UP, PaymentIntentData
from apps.integrations.services.stripe_client import (
    get_stripe_client, stripe_error_details, stripe_error_message
)
from .card_service import CardService
from .customer_registry import CustomerRegistry
from .wallet_service import WalletService


class PaymentIntentService(BaseService):
    """
    Issues Stripe intents on behalf of the client application.

    Order payments are never confirmed here: the client confirms with the
    returned client secret and the webhook reconciles the order. Wallet
    top-ups with a saved card are confirmed off-session and credited
    immediately when Stripe reports success.
    """

    CONFIRMATION_STATUSES = ('requires_confirmation', 'requires_payment_method')
    ACTION_STATUSES = ('requires_action', 'requires_payment_method')

    def __init__(self, client: Optional[stripe.StripeClient] = None):
        super().__init__()
        self.client = client or get_stripe_client()
        self.customers = CustomerRegistry(client=self.client)
        self.cards = CardService(client=self.client)
        self.wallet = WalletService()

    def _stripe_failure(self, message: str, exc: stripe.error.StripeError) -> ServiceResult:
        return ServiceResult.fail(
            stripe_error_message(exc, message),
            error_code="STRIPE_ERROR",
            details=stripe_error_details(exc)
        )

    def _attach_quietly(self, payment_method_id: str, customer_id: str) -> None:
        """Attach a card to the customer, tolerating any attach failure."""
        try:
            self.client.payment_methods.attach(
                payment_method_id,
                params={'customer': customer_id}
            )
        except stripe.error.StripeError as e:
            message = str(e).lower()
            if 'already attached' in message or 'already been attached' in message:
                self.log_info(
                    "Payment method already attached",
                    payment_method_id=payment_method_id
                )
                return
            # The intent itself will surface an unusable card
            self.log_error(
                "Error attaching payment method",
                exception=e,
                payment_method_id=payment_method_id,
                customer_id=customer_id
            )

    @staticmethod
    def _invalid_amount(amount: Any) -> bool:
        return (
            amount is None
            or isinstance(amount, bool)
            or not isinstance(amount, int)
            or amount <= 0
        )

    def create_payment_intent(
        self,
        amount: Optional[int],
        order_id: Optional[str],
        user_id: Optional[str],
        payment_method_id: Optional[str] = None,
        wallet_amount: int = 0,
        currency: Optional[str] = None
    ) -> ServiceResult:
        """
        Create the card-side PaymentIntent for an order checkout.
        Orders fully covered by the wallet return before any Stripe call, so
        no Stripe customer is created for them.

        Args:
            amount: Order total, minor units
            order_id: Order being paid
            user_id: Paying user
            payment_method_id: Saved card to pay with, if any
            wallet_amount: Portion covered by the wallet, deducted by the
                webhook on success
            currency: ISO currency code

        Returns:
            ServiceResult with client_secret, payment_intent_id, wallet_only,
            status and requires_confirmation
        """
        wallet_amount = wallet_amount or 0
        currency = currency or settings.PAYMENTS_DEFAULT_CURRENCY
        if self._invalid_amount(amount) or wallet_amount < 0:
            return ServiceResult.fail(
                "Invalid amount",
                error_code="INVALID_AMOUNT"
            )

        if not order_id or not user_id:
            return ServiceResult.fail(
                "Missing required fields",
                error_code="MISSING_FIELDS"
            )

        user = User.objects.filter(pk=user_id).first()
        if user is None:
            return ServiceResult.fail(
                "User not found",
                error_code="USER_NOT_FOUND"
            )

        stripe_amount = amount - wallet_amount
        if stripe_amount <= 0:
            self.log_info(
                f"Order {order_id} fully covered by wallet",
                user_id=user_id,
                wallet_amount=wallet_amount
            )
            return ServiceResult.ok({
                'client_secret': None,
                'payment_intent_id': None,
                'wallet_only': True,
                'status': None,
                'requires_confirmation': False
            })

        try:
            customer_id = self.customers.get_or_create_customer(user_id, user.email)

            params: Dict[str, Any] = {
                'amount': stripe_amount,
                'currency': currency,
                'customer': customer_id,
                'metadata': {
                    'orderId': order_id,
                    'userId': user_id,
                    'walletAmount': str(wallet_amount),
                },
                'automatic_payment_methods': {
                    'enabled': True,
                    'allow_redirects': 'never',
                },
            }

            if payment_method_id:
                params['payment_method'] = payment_method_id
                self._attach_quietly(payment_method_id, customer_id)

            intent = self.client.payment_intents.create(params=params)

        except stripe.error.StripeError as e:
            self.log_error(
                "Stripe error creating payment intent",
                exception=e,
                order_id=order_id,
                user_id=user_id
            )
            return self._stripe_failure("Failed to create payment intent", e)

        self.log_info(
            f"Payment intent created for order {order_id}",
            payment_intent_id=intent.id,
            amount=stripe_amount,
            status=intent.status
        )

        return ServiceResult.ok({
            'client_secret': intent.client_secret,
            'payment_intent_id': intent.id,
            'wallet_only': False,
            'status': intent.status,
            'requires_confirmation': intent.status in self.CONFIRMATION_STATUSES
        })

    def create_setup_intent(self, user_id: Optional[str],
                            email: Optional[str] = None) -> ServiceResult:
        """
        Create an off-session SetupIntent so the client can save a card.

        The card is recorded when setup_intent.succeeded arrives.

        Returns:
            ServiceResult with client_secret and setup_intent_id
        """
        if not user_id:
            return ServiceResult.fail(
                "Missing user ID",
                error_code="MISSING_FIELDS"
            )

        try:
            customer_id = self.customers.get_or_create_customer(user_id, email)
            setup_intent = self.client.setup_intents.create(params={
                'customer': customer_id,
                'payment_method_types': ['card'],
                'usage': 'off_session',
            })
        except stripe.error.StripeError as e:
            self.log_error(
                "Stripe error creating setup intent",
                exception=e,
                user_id=user_id
            )
            return self._stripe_failure("Failed to create setup intent", e)

        self.log_info(
            f"Setup intent created for user {user_id}",
            setup_intent_id=setup_intent.id
        )

        return ServiceResult.ok({
            'client_secret': setup_intent.client_secret,
            'setup_intent_id': setup_intent.id
        })

    def add_money_to_wallet(
        self,
        amount: Optional[int],
        user_id: Optional[str],
        payment_method_id: Optional[str] = None,
        save_card: bool = False,
        currency: Optional[str] = None
    ) -> ServiceResult:
        """
        Top up a wallet by card.

        With a saved card the intent is confirmed off-session and, on
        success, the wallet is credited straight away. Otherwise the client
        confirms with the returned secret and the webhook credits the wallet.

        Returns:
            ServiceResult whose data either has requires_confirmation=True
            with a client_secret, or success=True with amount_added and
            new_balance
        """
        currency = currency or settings.PAYMENTS_DEFAULT_CURRENCY
        if self._invalid_amount(amount):
            return ServiceResult.fail(
                "Invalid amount",
                error_code="INVALID_AMOUNT"
            )

        if not user_id:
            return ServiceResult.fail(
                "Missing user ID",
                error_code="MISSING_FIELDS"
            )

        user = User.objects.filter(pk=user_id).first()
        if user is None:
            return ServiceResult.fail(
                "User not found",
                error_code="USER_NOT_FOUND"
            )

        try:
            customer_id = self.customers.get_or_create_customer(user_id, user.email)

            params: Dict[str, Any] = {
                'amount': amount,
                'currency': currency,
                'customer': customer_id,
                'metadata': {
                    'userId': user_id,
                    'type': WALLET_TOP_UP,
                    'saveCard': 'true' if save_card else 'false',
                },
                'automatic_payment_methods': {
                    'enabled': True,
                    'allow_redirects': 'never',
                },
            }

            if payment_method_id:
                params['payment_method'] = payment_method_id
                params['confirm'] = True
                params['off_session'] = True
                self._attach_quietly(payment_method_id, customer_id)

            intent = self.client.payment_intents.create(params=params)

        except stripe.error.StripeError as e:
            self.log_error(
                "Stripe error adding money to wallet",
                exception=e,
                user_id=user_id
            )
            return self._stripe_failure("Failed to add money to wallet", e)

        self.log_info(
            "Payment intent created for wallet top-up",
            payment_intent_id=intent.id,
            status=intent.status,
            amount=amount
        )

        if intent.status in self.ACTION_STATUSES:
            return ServiceResult.ok({
                'requires_confirmation': True,
                'client_secret': intent.client_secret,
                'payment_intent_id': intent.id,
                'status': intent.status
            })

        if intent.status != 'succeeded':
            user.refresh_from_db(fields=['wallet_balance'])
            return ServiceResult.ok({
                'success': True,
                'payment_intent_id': intent.id,
                'status': intent.status,
                'requires_confirmation': False,
                'amount_added': 0,
                'new_balance': user.wallet_balance
            })

        intent_data = PaymentIntentData.from_stripe(intent)
        with transaction.atomic():
            locked_user = User.objects.select_for_update().get(pk=user_id)
            credit = self.wallet.credit_deposit(
                locked_user,
                amount,
                payment_intent_id=intent.id,
                charge_id=intent_data.latest_charge,
                payment_method=(
                    WalletTransaction.METHOD_SAVED_CARD if payment_method_id
                    else WalletTransaction.METHOD_NEW_CARD
                ),
                save_card=save_card
            )

        if save_card and not payment_method_id and intent_data.payment_method:
            try:
                self.cards.fetch_and_save_card(locked_user, intent_data.payment_method)
            except stripe.error.StripeError as e:
                self.log_error(
                    "Error saving new card after top-up",
                    exception=e,
                    user_id=user_id
                )

        return ServiceResult.ok({
            'success': True,
            'payment_intent_id': intent.id,
            'status': intent.status,
            'requires_confirmation': False,
            'amount_added': amount,
            'new_balance': credit.data['new_balance']
        })
