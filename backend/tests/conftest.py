"""
Pytest configuration and fixtures for the checkout payments tests.
Provides model factories, a mocked Stripe client and webhook signing helpers.
"""
import hashlib
import hmac
import json
import time
from typing import Any, Dict, Optional
from unittest.mock import MagicMock

import factory
import pytest
import stripe
from factory.django import DjangoModelFactory
from faker import Faker

from apps.core.models import SavedCard, User, WalletTransaction
from apps.integrations.services.stripe_client import get_stripe_client
from apps.orders.models import Order

fake = Faker('en_GB')  # Use UK locale for UK-specific data

WEBHOOK_SECRET = 'whsec_test_secret'


# ==================== Factory Classes ====================

class UserFactory(DjangoModelFactory):
    """Factory for creating test users."""

    class Meta:
        model = User
        skip_postgeneration_save = True

    id = factory.Sequence(lambda n: f'user{n}')
    email = factory.Faker('email')
    username = factory.SelfAttribute('id')
    stripe_customer_id = None
    wallet_balance = 0
    default_payment_method = None
    order_history = factory.LazyFunction(list)
    is_active = True


class OrderFactory(DjangoModelFactory):
    """Factory for creating test orders."""

    class Meta:
        model = Order

    id = factory.Sequence(lambda n: f'order{n}')
    user = factory.SubFactory(UserFactory)
    payment_status = Order.PAYMENT_UNPAID
    order_status = Order.STATUS_PENDING
    verified = False
    paid_at = None


class SavedCardFactory(DjangoModelFactory):
    """Factory for creating saved card summaries."""

    class Meta:
        model = SavedCard

    user = factory.SubFactory(UserFactory)
    payment_method_id = factory.Sequence(lambda n: f'pm_test_{n}')
    brand = factory.Faker('random_element', elements=['visa', 'mastercard', 'amex'])
    last4 = factory.LazyAttribute(lambda _: fake.numerify('####'))
    exp_month = factory.Faker('random_int', min=1, max=12)
    exp_year = factory.Faker('random_int', min=2030, max=2035)


class WalletTransactionFactory(DjangoModelFactory):
    """Factory for wallet ledger entries."""

    class Meta:
        model = WalletTransaction

    user = factory.SubFactory(UserFactory)
    type = WalletTransaction.TYPE_DEPOSIT
    amount = 1000
    previous_balance = 0
    new_balance = factory.LazyAttribute(lambda o: o.previous_balance + o.amount)
    stripe_payment_intent_id = factory.Sequence(lambda n: f'pi_test_{n}')
    payment_method = WalletTransaction.METHOD_NEW_CARD


# ==================== Stripe Object Builders ====================

def stripe_payment_intent(**values) -> stripe.PaymentIntent:
    """Build a PaymentIntent the way the SDK returns it (attr and key access)."""
    data = {
        'id': 'pi_test_123',
        'object': 'payment_intent',
        'amount': 1000,
        'currency': 'gbp',
        'status': 'requires_payment_method',
        'client_secret': 'pi_test_123_secret_abc',
        'customer': 'cus_test_123',
        'payment_method': None,
        'latest_charge': None,
        'metadata': {},
    }
    data.update(values)
    return stripe.PaymentIntent.construct_from(data, 'sk_test_dummy')


def stripe_payment_method(pm_id: str = 'pm_test_card', **card) -> stripe.PaymentMethod:
    card_data = {'brand': 'visa', 'last4': '4242', 'exp_month': 12, 'exp_year': 2030}
    card_data.update(card)
    return stripe.PaymentMethod.construct_from({
        'id': pm_id,
        'object': 'payment_method',
        'type': 'card',
        'card': card_data,
    }, 'sk_test_dummy')


def stripe_event(event_type: str, obj: Dict[str, Any],
                 event_id: str = 'evt_test_1') -> Dict[str, Any]:
    """Build a raw Stripe event dict around a data object."""
    return {
        'id': event_id,
        'object': 'event',
        'type': event_type,
        'data': {'object': obj},
    }


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET,
                 timestamp: Optional[int] = None) -> str:
    """Compute a Stripe-Signature header value for a payload."""
    timestamp = timestamp or int(time.time())
    signed_payload = f"{timestamp}.{payload.decode('utf-8')}"
    signature = hmac.new(
        secret.encode('utf-8'),
        signed_payload.encode('utf-8'),
        hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def encode_event(event: Dict[str, Any]) -> bytes:
    return json.dumps(event).encode('utf-8')


# ==================== Pytest Fixtures ====================

@pytest.fixture(autouse=True)
def stripe_client(mocker):
    """
    Replace the shared StripeClient with a MagicMock for every test.
    Anything built through get_stripe_client() receives this mock.
    """
    client = MagicMock(name='StripeClient')
    get_stripe_client.cache_clear()
    mocker.patch('stripe.StripeClient', return_value=client)
    yield client
    get_stripe_client.cache_clear()


@pytest.fixture
def test_user(db):
    """Create a test user with a Stripe customer."""
    return UserFactory(id='u1', stripe_customer_id='cus_test_123')


@pytest.fixture
def test_order(db, test_user):
    return OrderFactory(id='o1', user=test_user)


@pytest.fixture
def card_service(stripe_client):
    from apps.payments.services.card_service import CardService
    return CardService(client=stripe_client)


@pytest.fixture
def intent_service(stripe_client):
    from apps.payments.services.intent_service import PaymentIntentService
    return PaymentIntentService(client=stripe_client)


@pytest.fixture
def wallet_service():
    from apps.payments.services.wallet_service import WalletService
    return WalletService()


@pytest.fixture
def webhook_handler(stripe_client):
    from apps.integrations.services.stripe_webhook_handler import StripeWebhookHandler
    return StripeWebhookHandler(client=stripe_client)


# ==================== Settings Override Fixtures ====================

@pytest.fixture
def webhook_secret(settings):
    settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET
    return WEBHOOK_SECRET
