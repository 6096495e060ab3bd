"""
Stripe webhook endpoint.
"""
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from drf_spectacular.utils import extend_schema, OpenApiExample
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny

from .services.stripe_webhook_handler import StripeWebhookHandler
from .services.webhook_verifier import WebhookVerifier

logger = logging.getLogger(__name__)


@extend_schema(
    summary="Stripe webhook handler",
    description="""
    **System-to-System Endpoint** - Called by Stripe, not by clients.

    **Supported Events:**
    - `payment_intent.succeeded`: Order paid (wallet portion deducted) or wallet top-up credited
    - `payment_intent.payment_failed`: Order marked as failed
    - `setup_intent.succeeded`: New card saved for the customer's user

    **Security:**
    - Verifies the Stripe-Signature header over the raw request body
    - Rejects requests with invalid or missing signatures

    **Response Behavior:**
    - Always returns 200 once the signature checks out, even on processing errors
    - Only returns 400 for signature or payload verification failures
    - Idempotent - safe to receive the same event multiple times

    **Permissions:** Public (AllowAny) - authentication via Stripe signature
    """,
    request={
        'application/json': {
            'type': 'object',
            'description': 'Stripe webhook event payload (signed by Stripe)'
        }
    },
    responses={
        200: {
            'description': 'Event acknowledged',
            'examples': [
                OpenApiExample(
                    'Event Received',
                    value={
                        'received': True,
                        'event_id': 'evt_xxxxx',
                        'event_type': 'payment_intent.succeeded'
                    }
                )
            ]
        },
        400: {
            'description': 'Invalid signature or malformed payload',
            'examples': [
                OpenApiExample(
                    'Invalid Signature',
                    value={
                        'error': 'Invalid signature',
                        'error_code': 'INVALID_SIGNATURE'
                    }
                )
            ]
        }
    },
    tags=['Stripe Webhooks (System)'],
)
@api_view(['POST'])
@csrf_exempt
@permission_classes([AllowAny])
def stripe_webhook(request):
    """
    Handle Stripe webhooks.
    POST /webhooks/stripe/

    Returns:
        200: Event received (always, even on processing errors)
        400: Missing/invalid signature or payload
    """
    # Raw bytes; touching request.data first would consume the stream
    payload = request.body
    sig_header = request.META.get('HTTP_STRIPE_SIGNATURE')

    logger.info("Stripe webhook received", extra={
        'content_length': len(payload),
        'has_signature': bool(sig_header)
    })

    verify_result = WebhookVerifier().verify(payload, sig_header)

    if not verify_result.success:
        logger.error(
            f"Stripe webhook verification failed: {verify_result.error}",
            extra={'error_code': verify_result.error_code}
        )
        return JsonResponse({
            'error': verify_result.error,
            'error_code': verify_result.error_code
        }, status=400)

    event = verify_result.data
    event_id = event.get('id')
    event_type = event.get('type')

    try:
        result = StripeWebhookHandler().handle_event(event)

        if not result.success:
            logger.error(
                f"Webhook handler failed: {result.error}",
                extra={
                    'event_id': event_id,
                    'event_type': event_type,
                    'error_code': result.error_code
                }
            )

    except Exception:
        # Acknowledge anyway; Stripe redelivery is the only retry
        logger.exception(
            f"Exception handling webhook {event_type}",
            extra={
                'event_id': event_id,
                'event_type': event_type
            }
        )

    return JsonResponse({
        'received': True,
        'event_id': event_id,
        'event_type': event_type
    }, status=200)
