"""
Serializers for payment operations.
Request bodies and responses use the client's camelCase keys; services work
in snake_case.
"""
from rest_framework import serializers


class CreatePaymentIntentSerializer(serializers.Serializer):
    """
    Request body for POST /payments/create-payment-intent/.
    Presence of amount, orderId and userId is checked by the service so the
    error precedence (amount, then ids, then user) stays in one place.
    """
    amount = serializers.IntegerField(
        default=None,
        allow_null=True,
        help_text="Order total in pence"
    )
    orderId = serializers.CharField(
        source='order_id',
        default=None,
        allow_blank=True,
        allow_null=True
    )
    userId = serializers.CharField(
        source='user_id',
        default=None,
        allow_blank=True,
        allow_null=True
    )
    paymentMethodId = serializers.CharField(
        source='payment_method_id',
        default=None,
        allow_blank=True,
        allow_null=True,
        help_text="Saved card to charge"
    )
    walletAmount = serializers.IntegerField(
        source='wallet_amount',
        allow_null=True,
        default=0,
        help_text="Portion paid from the wallet, in pence"
    )
    currency = serializers.CharField(default=None, allow_null=True)


class PaymentIntentResponseSerializer(serializers.Serializer):
    clientSecret = serializers.CharField(source='client_secret', allow_null=True)
    paymentIntentId = serializers.CharField(source='payment_intent_id', allow_null=True)
    walletOnly = serializers.BooleanField(source='wallet_only')
    status = serializers.CharField(allow_null=True)
    requiresConfirmation = serializers.BooleanField(source='requires_confirmation')


class CreateSetupIntentSerializer(serializers.Serializer):
    userId = serializers.CharField(
        source='user_id',
        default=None,
        allow_blank=True,
        allow_null=True
    )
    email = serializers.CharField(default=None, allow_blank=True, allow_null=True)


class SetupIntentResponseSerializer(serializers.Serializer):
    clientSecret = serializers.CharField(source='client_secret')
    setupIntentId = serializers.CharField(source='setup_intent_id')


class SetDefaultCardSerializer(serializers.Serializer):
    customerId = serializers.CharField(
        source='customer_id', default=None, allow_blank=True, allow_null=True
    )
    paymentMethodId = serializers.CharField(
        source='payment_method_id', default=None, allow_blank=True, allow_null=True
    )
    userId = serializers.CharField(
        source='user_id', default=None, allow_blank=True, allow_null=True
    )


class AttachPaymentMethodSerializer(serializers.Serializer):
    paymentMethodId = serializers.CharField(
        source='payment_method_id', default=None, allow_blank=True, allow_null=True
    )
    customerId = serializers.CharField(
        source='customer_id', default=None, allow_blank=True, allow_null=True
    )


class RemoveCardSerializer(serializers.Serializer):
    userId = serializers.CharField(
        source='user_id', default=None, allow_blank=True, allow_null=True
    )


class AddMoneyToWalletSerializer(serializers.Serializer):
    amount = serializers.IntegerField(
        default=None,
        allow_null=True,
        help_text="Top-up amount in pence"
    )
    userId = serializers.CharField(
        source='user_id', default=None, allow_blank=True, allow_null=True
    )
    paymentMethodId = serializers.CharField(
        source='payment_method_id',
        default=None,
        allow_blank=True,
        allow_null=True,
        help_text="Saved card; confirms off-session when given"
    )
    saveCard = serializers.BooleanField(source='save_card', required=False, default=False)
    currency = serializers.CharField(default=None, allow_null=True)


class WalletTopUpResponseSerializer(serializers.Serializer):
    """
    Either a completed top-up or a pending one awaiting client confirmation.
    """
    success = serializers.BooleanField(required=False)
    paymentIntentId = serializers.CharField(source='payment_intent_id')
    status = serializers.CharField()
    requiresConfirmation = serializers.BooleanField(source='requires_confirmation')
    clientSecret = serializers.CharField(source='client_secret', required=False)
    amountAdded = serializers.IntegerField(source='amount_added', required=False)
    newBalance = serializers.IntegerField(source='new_balance', required=False)


class SavedCardSerializer(serializers.Serializer):
    id = serializers.CharField()
    brand = serializers.CharField()
    last4 = serializers.CharField()
    expMonth = serializers.IntegerField(source='exp_month', allow_null=True)
    expYear = serializers.IntegerField(source='exp_year', allow_null=True)
    createdAt = serializers.DateTimeField(source='created_at')


class ActionResultSerializer(serializers.Serializer):
    success = serializers.BooleanField(default=True)
    message = serializers.CharField()


class PaymentErrorSerializer(serializers.Serializer):
    """
    Serializer for payment error responses.
    Stripe failures carry `details` (error class) and `code` (Stripe code).
    """
    error = serializers.CharField(help_text="Error message")
    details = serializers.CharField(
        required=False,
        help_text="Stripe error type"
    )
    code = serializers.CharField(
        default=None,
        allow_null=True,
        help_text="Stripe error code"
    )

    def to_representation(self, instance):
        """
        Format error response.

        Args:
            instance: ServiceResult
        """
        body = {'error': instance.error}
        if instance.error_code == 'STRIPE_ERROR' and instance.details:
            body['details'] = instance.details.get('type')
            body['code'] = instance.details.get('code')
        return body
