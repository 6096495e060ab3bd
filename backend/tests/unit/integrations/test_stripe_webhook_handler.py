"""
Unit tests for StripeWebhookHandler.
Tests order reconciliation, wallet top-ups, failures, card setup and
redelivery of the same event.
"""
from unittest.mock import MagicMock, patch

import pytest
import stripe

from apps.core.models import SavedCard, WalletTransaction
from apps.orders.models import Order
from tests.conftest import (
    OrderFactory,
    SavedCardFactory,
    UserFactory,
    WalletTransactionFactory,
    stripe_event,
    stripe_payment_method,
)


def succeeded_event(order_id='o1', user_id='u1', wallet_amount='0',
                    intent_id='pi_1', **extra):
    obj = {
        'id': intent_id,
        'amount': 1000,
        'currency': 'gbp',
        'latest_charge': 'ch_1',
        'metadata': {
            'orderId': order_id,
            'userId': user_id,
            'walletAmount': wallet_amount,
        },
    }
    obj.update(extra)
    return stripe_event('payment_intent.succeeded', obj)


@pytest.mark.django_db
class TestOrderPaymentSucceeded:
    """Test payment_intent.succeeded for order payments."""

    def test_mixed_payment_marks_paid_and_deducts_wallet(self, webhook_handler):
        user = UserFactory(id='u1', wallet_balance=1000)
        OrderFactory(id='o1', user=user)

        result = webhook_handler.handle_event(succeeded_event(wallet_amount='500'))

        assert result.success is True
        assert result.data['wallet_deducted'] == 500

        order = Order.objects.get(pk='o1')
        assert order.payment_status == Order.PAYMENT_PAID
        assert order.order_status == Order.STATUS_CONFIRMED
        assert order.verified is True
        assert order.stripe_payment_intent_id == 'pi_1'
        assert order.stripe_charge_id == 'ch_1'
        assert order.currency == 'GBP'
        assert order.paid_at is not None

        user.refresh_from_db()
        assert user.wallet_balance == 500
        assert user.order_history == ['o1']

        txn = WalletTransaction.objects.get(user=user)
        assert txn.type == WalletTransaction.TYPE_PAYMENT
        assert txn.amount == 500
        assert txn.previous_balance == 1000
        assert txn.new_balance == 500
        assert txn.order_id == 'o1'

    def test_redelivery_is_a_no_op(self, webhook_handler):
        user = UserFactory(id='u1', wallet_balance=1000)
        OrderFactory(id='o1', user=user)
        event = succeeded_event(wallet_amount='500')

        webhook_handler.handle_event(event)
        second = webhook_handler.handle_event(event)

        assert second.success is True
        assert second.data['already_paid'] is True

        user.refresh_from_db()
        assert user.wallet_balance == 500
        assert user.order_history == ['o1']
        assert WalletTransaction.objects.filter(user=user).count() == 1

    def test_concurrent_delivery_loses_conditional_write(self, webhook_handler):
        """A stale unpaid read must not apply anything once the row is paid."""
        user = UserFactory(id='u1', wallet_balance=1000)
        stale_order = OrderFactory(id='o1', user=user)
        # Another delivery flips the row after this one read it
        Order.objects.filter(pk='o1').update(payment_status=Order.PAYMENT_PAID)

        locked = MagicMock()
        locked.filter.return_value.first.return_value = stale_order
        with patch.object(Order.objects, 'select_for_update', return_value=locked):
            result = webhook_handler.handle_event(succeeded_event(wallet_amount='500'))

        assert result.success is True
        assert result.data == {'order_id': 'o1', 'already_paid': True}

        user.refresh_from_db()
        assert user.wallet_balance == 1000
        assert user.order_history == []
        assert not WalletTransaction.objects.exists()

    def test_insufficient_balance_still_pays_order(self, webhook_handler):
        user = UserFactory(id='u1', wallet_balance=300)
        OrderFactory(id='o1', user=user)

        result = webhook_handler.handle_event(succeeded_event(wallet_amount='500'))

        assert result.success is True
        assert result.data['wallet_deducted'] == 0

        assert Order.objects.get(pk='o1').payment_status == Order.PAYMENT_PAID
        user.refresh_from_db()
        assert user.wallet_balance == 300
        assert user.order_history == ['o1']
        assert not WalletTransaction.objects.exists()

    def test_card_only_payment_leaves_wallet_alone(self, webhook_handler):
        user = UserFactory(id='u1', wallet_balance=1000)
        OrderFactory(id='o1', user=user)

        webhook_handler.handle_event(succeeded_event())

        user.refresh_from_db()
        assert user.wallet_balance == 1000
        assert not WalletTransaction.objects.exists()

    def test_history_not_duplicated(self, webhook_handler):
        user = UserFactory(id='u1', order_history=['o1'])
        OrderFactory(id='o1', user=user)

        webhook_handler.handle_event(succeeded_event())

        user.refresh_from_db()
        assert user.order_history == ['o1']

    def test_missing_metadata_changes_nothing(self, webhook_handler):
        user = UserFactory(id='u1')
        OrderFactory(id='o1', user=user)

        result = webhook_handler.handle_event(succeeded_event(order_id=''))

        assert result.success is False
        assert result.error_code == 'MISSING_METADATA'
        assert Order.objects.get(pk='o1').payment_status == Order.PAYMENT_UNPAID

    def test_unknown_order(self, webhook_handler):
        UserFactory(id='u1')

        result = webhook_handler.handle_event(succeeded_event(order_id='nope'))

        assert result.error_code == 'ORDER_NOT_FOUND'

    def test_unknown_user_leaves_order_unpaid(self, webhook_handler):
        OrderFactory(id='o1', user=None)

        result = webhook_handler.handle_event(succeeded_event(user_id='ghost'))

        assert result.error_code == 'USER_NOT_FOUND'
        assert Order.objects.get(pk='o1').payment_status == Order.PAYMENT_UNPAID

    def test_failed_order_can_still_be_paid(self, webhook_handler):
        user = UserFactory(id='u1')
        OrderFactory(id='o1', user=user, payment_status=Order.PAYMENT_FAILED)

        webhook_handler.handle_event(succeeded_event())

        assert Order.objects.get(pk='o1').payment_status == Order.PAYMENT_PAID

    def test_currency_falls_back_to_default(self, webhook_handler):
        user = UserFactory(id='u1')
        OrderFactory(id='o1', user=user)

        webhook_handler.handle_event(succeeded_event(currency=None))

        assert Order.objects.get(pk='o1').currency == 'GBP'

    def test_handler_exception_is_contained(self, webhook_handler):
        user = UserFactory(id='u1', wallet_balance=1000)
        OrderFactory(id='o1', user=user)

        with patch.object(
            webhook_handler.wallet_service, 'debit_for_order',
            side_effect=RuntimeError('boom')
        ):
            result = webhook_handler.handle_event(succeeded_event(wallet_amount='500'))

        assert result.success is False
        assert result.error_code == 'HANDLER_EXCEPTION'
        # Whole reconciliation rolled back so a redelivery can apply it
        assert Order.objects.get(pk='o1').payment_status == Order.PAYMENT_UNPAID


@pytest.mark.django_db
class TestWalletTopUpSucceeded:
    """Test payment_intent.succeeded for wallet top-ups."""

    def top_up_event(self, save_card='false', payment_method='pm_new'):
        return stripe_event('payment_intent.succeeded', {
            'id': 'pi_top',
            'amount': 2000,
            'currency': 'gbp',
            'payment_method': payment_method,
            'latest_charge': 'ch_top',
            'metadata': {'userId': 'u1', 'type': 'wallet_top_up', 'saveCard': save_card},
        })

    def test_credits_wallet(self, webhook_handler):
        user = UserFactory(id='u1', wallet_balance=500)

        result = webhook_handler.handle_event(self.top_up_event())

        assert result.success is True
        user.refresh_from_db()
        assert user.wallet_balance == 2500

        txn = WalletTransaction.objects.get(user=user)
        assert txn.type == WalletTransaction.TYPE_DEPOSIT
        assert txn.stripe_payment_intent_id == 'pi_top'
        assert txn.stripe_charge_id == 'ch_top'
        assert txn.payment_method == WalletTransaction.METHOD_NEW_CARD

    def test_saved_card_top_up_tagged_saved_card(self, webhook_handler):
        user = UserFactory(id='u1', wallet_balance=500)
        SavedCardFactory(user=user, payment_method_id='pm_saved')

        webhook_handler.handle_event(self.top_up_event(payment_method='pm_saved'))

        txn = WalletTransaction.objects.get(user=user)
        assert txn.payment_method == WalletTransaction.METHOD_SAVED_CARD

    def test_already_credited_by_sync_path(self, webhook_handler):
        user = UserFactory(id='u1', wallet_balance=2500)
        WalletTransactionFactory(
            user=user, amount=2000, previous_balance=500,
            stripe_payment_intent_id='pi_top'
        )

        result = webhook_handler.handle_event(self.top_up_event())

        assert result.data['credited'] is False
        user.refresh_from_db()
        assert user.wallet_balance == 2500

    def test_saves_card_when_requested(self, webhook_handler, stripe_client):
        UserFactory(id='u1')
        stripe_client.payment_methods.retrieve.return_value = stripe_payment_method('pm_new')

        webhook_handler.handle_event(self.top_up_event(save_card='true'))

        assert SavedCard.objects.filter(user_id='u1', payment_method_id='pm_new').exists()

    def test_no_card_saved_by_default(self, webhook_handler, stripe_client):
        UserFactory(id='u1')

        webhook_handler.handle_event(self.top_up_event())

        stripe_client.payment_methods.retrieve.assert_not_called()
        assert not SavedCard.objects.exists()


@pytest.mark.django_db
class TestPaymentFailed:
    """Test payment_intent.payment_failed."""

    def failed_event(self, error=None):
        obj = {
            'id': 'pi_1',
            'metadata': {'orderId': 'o1', 'userId': 'u1', 'walletAmount': '0'},
            'last_payment_error': {'message': error} if error else None,
        }
        return stripe_event('payment_intent.payment_failed', obj)

    def test_marks_order_failed_with_message(self, webhook_handler):
        OrderFactory(id='o1')

        result = webhook_handler.handle_event(self.failed_event('Your card was declined.'))

        assert result.success is True
        order = Order.objects.get(pk='o1')
        assert order.payment_status == Order.PAYMENT_FAILED
        assert order.payment_error == 'Your card was declined.'

    def test_default_message(self, webhook_handler):
        OrderFactory(id='o1')

        webhook_handler.handle_event(self.failed_event())

        assert Order.objects.get(pk='o1').payment_error == 'Payment failed'

    def test_paid_order_is_not_downgraded(self, webhook_handler):
        OrderFactory(id='o1', payment_status=Order.PAYMENT_PAID)

        result = webhook_handler.handle_event(self.failed_event('late failure'))

        assert result.data['payment_failed'] is False
        order = Order.objects.get(pk='o1')
        assert order.payment_status == Order.PAYMENT_PAID
        assert order.payment_error == ''

    def test_unknown_order(self, webhook_handler):
        result = webhook_handler.handle_event(self.failed_event())

        assert result.error_code == 'ORDER_NOT_FOUND'


@pytest.mark.django_db
class TestSetupIntentSucceeded:
    """Test setup_intent.succeeded."""

    def setup_event(self, customer='cus_1', payment_method='pm_1'):
        return stripe_event('setup_intent.succeeded', {
            'id': 'seti_1',
            'customer': customer,
            'payment_method': payment_method,
        })

    def test_saves_card_for_customer_owner(self, webhook_handler, stripe_client):
        user = UserFactory(id='u1', stripe_customer_id='cus_1')
        stripe_client.payment_methods.retrieve.return_value = stripe_payment_method(
            'pm_1', brand='visa', last4='4242', exp_month=12, exp_year=2030
        )

        result = webhook_handler.handle_event(self.setup_event())

        assert result.success is True
        card = SavedCard.objects.get(user=user)
        assert (card.payment_method_id, card.brand, card.last4) == ('pm_1', 'visa', '4242')

    def test_redelivery_does_not_duplicate(self, webhook_handler, stripe_client):
        UserFactory(id='u1', stripe_customer_id='cus_1')
        stripe_client.payment_methods.retrieve.return_value = stripe_payment_method('pm_1')

        webhook_handler.handle_event(self.setup_event())
        webhook_handler.handle_event(self.setup_event())

        assert SavedCard.objects.count() == 1

    def test_unknown_customer(self, webhook_handler, stripe_client):
        result = webhook_handler.handle_event(self.setup_event(customer='cus_unknown'))

        assert result.error_code == 'USER_NOT_FOUND'
        stripe_client.payment_methods.retrieve.assert_not_called()

    def test_missing_payment_method(self, webhook_handler):
        result = webhook_handler.handle_event(self.setup_event(payment_method=None))

        assert result.error_code == 'MISSING_METADATA'

    def test_stripe_error_is_contained(self, webhook_handler, stripe_client):
        UserFactory(id='u1', stripe_customer_id='cus_1')
        stripe_client.payment_methods.retrieve.side_effect = stripe.error.APIConnectionError(
            'Network down'
        )

        result = webhook_handler.handle_event(self.setup_event())

        assert result.error_code == 'HANDLER_EXCEPTION'


class TestUnrecognizedEvents:
    """Test that other event types are acknowledged and ignored."""

    def test_unknown_event_type(self, webhook_handler):
        result = webhook_handler.handle_event(
            stripe_event('customer.created', {'id': 'cus_1'})
        )

        assert result.success is True
        assert 'not handled' in result.data['message']
