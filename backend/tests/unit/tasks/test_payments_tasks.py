"""
Unit tests for payments Celery tasks.
Tests saved-card repair for one user and the periodic sweep.
"""
from unittest.mock import MagicMock

import pytest
import stripe

from apps.core.models import SavedCard, User
from apps.payments.tasks import repair_all_saved_cards, repair_saved_cards
from tests.conftest import SavedCardFactory, UserFactory, stripe_payment_method


def attached_cards(by_customer):
    """Build a payment_methods.list side effect keyed by customer ID."""
    def listing(params):
        page = MagicMock()
        page.auto_paging_iter.return_value = iter([
            stripe_payment_method(pm_id)
            for pm_id in by_customer.get(params['customer'], [])
        ])
        return page
    return listing


@pytest.mark.django_db
class TestRepairSavedCardsTask:
    """Test the single-user repair task."""

    def test_removes_detached_card(self, stripe_client):
        user = UserFactory(id='u1', stripe_customer_id='cus_1')
        SavedCardFactory(user=user, payment_method_id='pm_keep')
        SavedCardFactory(user=user, payment_method_id='pm_gone')
        stripe_client.payment_methods.list.side_effect = attached_cards({
            'cus_1': ['pm_keep']
        })

        result = repair_saved_cards('u1')

        assert result == {'removed': ['pm_gone'], 'default_cleared': False}
        assert list(
            SavedCard.objects.values_list('payment_method_id', flat=True)
        ) == ['pm_keep']

    def test_runs_eagerly_through_delay(self, stripe_client):
        user = UserFactory(id='u1', stripe_customer_id='cus_1', default_payment_method='pm_x')
        stripe_client.payment_methods.list.side_effect = attached_cards({})

        result = repair_saved_cards.delay('u1').get()

        assert result['default_cleared'] is True
        user.refresh_from_db()
        assert user.default_payment_method is None

    def test_unknown_user(self):
        result = repair_saved_cards('ghost')

        assert result == {'error': 'User not found', 'error_code': 'USER_NOT_FOUND'}

    def test_stripe_failure_reported(self, stripe_client):
        UserFactory(id='u1', stripe_customer_id='cus_1')
        stripe_client.payment_methods.list.side_effect = stripe.error.APIConnectionError(
            'Network down'
        )

        result = repair_saved_cards('u1')

        assert result['error_code'] == 'STRIPE_ERROR'


@pytest.mark.django_db
class TestRepairAllSavedCardsTask:
    """Test the periodic sweep."""

    def test_sweeps_users_with_cards_or_default(self, stripe_client):
        drifted = UserFactory(id='drifted', stripe_customer_id='cus_1')
        SavedCardFactory(user=drifted, payment_method_id='pm_keep')
        SavedCardFactory(user=drifted, payment_method_id='pm_gone')

        consistent = UserFactory(id='consistent', stripe_customer_id='cus_2')
        SavedCardFactory(user=consistent, payment_method_id='pm_ok')

        UserFactory(id='default_only', default_payment_method='pm_orphan')
        UserFactory(id='no_cards')

        stripe_client.payment_methods.list.side_effect = attached_cards({
            'cus_1': ['pm_keep'],
            'cus_2': ['pm_ok'],
        })

        stats = repair_all_saved_cards()

        assert stats == {'processed': 3, 'repaired': 2, 'failed': 0}
        assert not SavedCard.objects.filter(payment_method_id='pm_gone').exists()
        assert User.objects.get(pk='default_only').default_payment_method is None

    def test_counts_failures_and_continues(self, stripe_client):
        broken = UserFactory(id='broken', stripe_customer_id='cus_bad')
        SavedCardFactory(user=broken, payment_method_id='pm_a')
        healthy = UserFactory(id='healthy', stripe_customer_id='cus_ok')
        SavedCardFactory(user=healthy, payment_method_id='pm_b')

        def listing(params):
            if params['customer'] == 'cus_bad':
                raise stripe.error.APIError('Something went wrong')
            return attached_cards({'cus_ok': ['pm_b']})(params)

        stripe_client.payment_methods.list.side_effect = listing

        stats = repair_all_saved_cards()

        assert stats == {'processed': 2, 'repaired': 0, 'failed': 1}
        assert SavedCard.objects.filter(payment_method_id='pm_a').exists()
