"""
Celery tasks for saved-card maintenance.
Repairs local saved cards that drifted from Stripe after a partial removal.
"""
from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task(name='repair_saved_cards')
def repair_saved_cards(user_id):
    """
    Reconcile one user's saved cards with the cards attached in Stripe.
    Queued when a card was detached in Stripe but the local delete failed.

    Args:
        user_id: ID of the user to repair
    """
    from apps.payments.services.card_service import CardService

    result = CardService().repair_saved_cards(user_id)

    if result.success:
        logger.info(
            f"Repaired saved cards for user {user_id}: "
            f"removed {len(result.data['removed'])}"
        )
        return result.data

    logger.error(
        f"Saved card repair failed for user {user_id}: {result.error}"
    )
    return {'error': result.error, 'error_code': result.error_code}


@shared_task(name='repair_all_saved_cards')
def repair_all_saved_cards():
    """
    Sweep every user with saved cards or a default card.
    Runs daily via Celery Beat.
    """
    from django.db.models import Q
    from apps.core.models import User
    from apps.payments.services.card_service import CardService

    service = CardService()
    user_ids = (
        User.objects.filter(
            Q(saved_cards__isnull=False) | Q(default_payment_method__isnull=False)
        )
        .values_list('id', flat=True)
        .distinct()
    )

    stats = {'processed': 0, 'repaired': 0, 'failed': 0}

    for user_id in user_ids:
        stats['processed'] += 1
        result = service.repair_saved_cards(user_id)
        if not result.success:
            stats['failed'] += 1
            logger.error(
                f"Saved card repair failed for user {user_id}: {result.error}"
            )
        elif result.data['removed'] or result.data['default_cleared']:
            stats['repaired'] += 1

    logger.info(
        f"Saved card sweep - "
        f"Processed: {stats['processed']}, "
        f"Repaired: {stats['repaired']}, "
        f"Failed: {stats['failed']}"
    )
    return stats
