"""
Wallet ledger service.
The only place that moves a wallet balance or appends wallet transactions.
"""
from typing import Optional

from django.db import IntegrityError, transaction

from apps.core.models import User, WalletTransaction
from apps.core.services.base import BaseService, ServiceResult


class WalletService(BaseService):
    """
    Credits and debits user wallets.

    Callers pass a User row they have already locked with select_for_update();
    every method runs inside an atomic block so it is also safe standalone.
    Balances are integers in minor currency units.
    """

    DEPOSIT_DESCRIPTION = "Wallet top-up via card"

    def credit_deposit(
        self,
        user: User,
        amount: int,
        payment_intent_id: str,
        charge_id: Optional[str] = None,
        payment_method: str = WalletTransaction.METHOD_NEW_CARD,
        save_card: bool = False
    ) -> ServiceResult:
        """
        Credit a card top-up to the wallet, at most once per payment intent.

        Args:
            user: Locked User row
            amount: Amount to add, minor units
            payment_intent_id: Stripe PaymentIntent that funded the deposit
            charge_id: Stripe charge ID if known
            payment_method: 'saved_card' or 'new_card'
            save_card: Whether the client asked to keep the card

        Returns:
            ServiceResult with credited flag, amount_added and new_balance
        """
        if amount <= 0:
            return ServiceResult.fail(
                "Deposit amount must be positive",
                error_code="INVALID_AMOUNT"
            )

        already_credited = WalletTransaction.objects.filter(
            stripe_payment_intent_id=payment_intent_id,
            type=WalletTransaction.TYPE_DEPOSIT
        ).exists()
        if already_credited:
            self.log_info(
                f"Deposit for {payment_intent_id} already recorded",
                user_id=user.pk
            )
            return ServiceResult.ok({
                'credited': False,
                'amount_added': 0,
                'new_balance': user.wallet_balance
            })

        previous_balance = user.wallet_balance
        new_balance = previous_balance + amount

        try:
            with transaction.atomic():
                WalletTransaction.objects.create(
                    user=user,
                    type=WalletTransaction.TYPE_DEPOSIT,
                    amount=amount,
                    previous_balance=previous_balance,
                    new_balance=new_balance,
                    description=self.DEPOSIT_DESCRIPTION,
                    stripe_payment_intent_id=payment_intent_id,
                    stripe_charge_id=charge_id,
                    payment_method=payment_method,
                    save_card=save_card
                )
                user.wallet_balance = new_balance
                user.save(update_fields=['wallet_balance', 'updated_at'])
        except IntegrityError:
            # Lost the race against the other delivery path for this intent
            user.refresh_from_db(fields=['wallet_balance'])
            self.log_info(
                f"Deposit for {payment_intent_id} recorded concurrently",
                user_id=user.pk
            )
            return ServiceResult.ok({
                'credited': False,
                'amount_added': 0,
                'new_balance': user.wallet_balance
            })

        self.log_info(
            f"Wallet credited for user {user.pk}",
            amount=amount,
            new_balance=new_balance,
            payment_intent_id=payment_intent_id
        )

        return ServiceResult.ok({
            'credited': True,
            'amount_added': amount,
            'new_balance': new_balance
        })

    def debit_for_order(
        self,
        user: User,
        amount: int,
        order_id: str,
        payment_intent_id: Optional[str] = None
    ) -> ServiceResult:
        """
        Deduct the wallet portion of an order payment.

        Args:
            user: Locked User row
            amount: Amount to deduct, minor units
            order_id: Order being paid
            payment_intent_id: Stripe PaymentIntent covering the card portion

        Returns:
            ServiceResult with new_balance, or INSUFFICIENT_BALANCE
        """
        if amount <= 0:
            return ServiceResult.fail(
                "Debit amount must be positive",
                error_code="INVALID_AMOUNT"
            )

        previous_balance = user.wallet_balance
        if previous_balance < amount:
            return ServiceResult.fail(
                "Insufficient wallet balance",
                error_code="INSUFFICIENT_BALANCE",
                details={'balance': previous_balance, 'requested': amount}
            )

        new_balance = previous_balance - amount

        with transaction.atomic():
            WalletTransaction.objects.create(
                user=user,
                type=WalletTransaction.TYPE_PAYMENT,
                amount=amount,
                previous_balance=previous_balance,
                new_balance=new_balance,
                description=f"Payment for order {order_id}",
                stripe_payment_intent_id=payment_intent_id,
                payment_method=WalletTransaction.METHOD_WALLET,
                order_id=order_id
            )
            user.wallet_balance = new_balance
            user.save(update_fields=['wallet_balance', 'updated_at'])

        self.log_info(
            f"Wallet debited for order {order_id}",
            user_id=user.pk,
            amount=amount,
            new_balance=new_balance
        )

        return ServiceResult.ok({
            'amount_deducted': amount,
            'new_balance': new_balance
        })
