"""
Unit tests for webhook event parsing.
"""
from apps.integrations.events import (
    PaymentIntentData,
    PaymentIntentPaymentFailed,
    PaymentIntentSucceeded,
    SetupIntentSucceeded,
    UnrecognizedEvent,
    parse_event,
)
from tests.conftest import stripe_event, stripe_payment_intent


class TestParseEvent:
    """Test mapping raw events to typed variants."""

    def test_payment_intent_succeeded(self):
        event = stripe_event('payment_intent.succeeded', {
            'id': 'pi_1',
            'amount': 1000,
            'currency': 'gbp',
            'latest_charge': 'ch_1',
            'metadata': {'orderId': 'o1', 'userId': 'u1', 'walletAmount': '500'},
        }, event_id='evt_1')

        parsed = parse_event(event)

        assert isinstance(parsed, PaymentIntentSucceeded)
        assert parsed.event_id == 'evt_1'
        assert parsed.intent.order_id == 'o1'
        assert parsed.intent.user_id == 'u1'
        assert parsed.intent.wallet_amount == 500
        assert parsed.intent.latest_charge == 'ch_1'
        assert parsed.intent.is_wallet_top_up is False

    def test_payment_failed_carries_error_message(self):
        event = stripe_event('payment_intent.payment_failed', {
            'id': 'pi_1',
            'metadata': {'orderId': 'o1', 'userId': 'u1'},
            'last_payment_error': {'message': 'Your card was declined.'},
        })

        parsed = parse_event(event)

        assert isinstance(parsed, PaymentIntentPaymentFailed)
        assert parsed.intent.last_payment_error_message == 'Your card was declined.'

    def test_setup_intent_succeeded(self):
        event = stripe_event('setup_intent.succeeded', {
            'id': 'seti_1',
            'customer': 'cus_1',
            'payment_method': 'pm_1',
        })

        parsed = parse_event(event)

        assert isinstance(parsed, SetupIntentSucceeded)
        assert parsed.setup_intent.customer == 'cus_1'
        assert parsed.setup_intent.payment_method == 'pm_1'

    def test_unknown_type(self):
        parsed = parse_event(stripe_event('charge.refunded', {'id': 'ch_1'}, event_id='evt_9'))

        assert parsed == UnrecognizedEvent('evt_9', 'charge.refunded')


class TestPaymentIntentData:
    """Test metadata accessors."""

    def test_wallet_amount_defaults_and_bad_values(self):
        assert PaymentIntentData(id='pi', metadata={}).wallet_amount == 0
        assert PaymentIntentData(id='pi', metadata={'walletAmount': 'abc'}).wallet_amount == 0
        assert PaymentIntentData(id='pi', metadata={'walletAmount': '250.0'}).wallet_amount == 250

    def test_wallet_top_up_flags(self):
        data = PaymentIntentData(
            id='pi', metadata={'type': 'wallet_top_up', 'userId': 'u1', 'saveCard': 'true'}
        )

        assert data.is_wallet_top_up is True
        assert data.save_card is True
        assert data.order_id is None

    def test_expanded_objects_reduce_to_ids(self):
        intent = stripe_payment_intent(
            latest_charge={'id': 'ch_1', 'object': 'charge'},
            payment_method={'id': 'pm_1', 'object': 'payment_method'},
        )

        data = PaymentIntentData.from_stripe(intent)

        assert data.latest_charge == 'ch_1'
        assert data.payment_method == 'pm_1'
