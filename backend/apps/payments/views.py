"""
API views for payment operations.
Handles payment/setup intent creation, saved cards and wallet top-ups.
"""
from rest_framework import views, status
from rest_framework.response import Response
from rest_framework.permissions import AllowAny

from drf_spectacular.utils import extend_schema, OpenApiExample
from drf_spectacular.types import OpenApiTypes as Types

from .serializers import (
    ActionResultSerializer,
    AddMoneyToWalletSerializer,
    AttachPaymentMethodSerializer,
    CreatePaymentIntentSerializer,
    CreateSetupIntentSerializer,
    PaymentErrorSerializer,
    PaymentIntentResponseSerializer,
    RemoveCardSerializer,
    SavedCardSerializer,
    SetDefaultCardSerializer,
    SetupIntentResponseSerializer,
    WalletTopUpResponseSerializer,
)
from .services.card_service import CardService
from .services.intent_service import PaymentIntentService


ERROR_STATUS = {
    'INVALID_AMOUNT': status.HTTP_400_BAD_REQUEST,
    'MISSING_FIELDS': status.HTTP_400_BAD_REQUEST,
    'ATTACH_FAILED': status.HTTP_400_BAD_REQUEST,
    'USER_NOT_FOUND': status.HTTP_404_NOT_FOUND,
    'STRIPE_ERROR': status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_response(result):
    """Render a failed ServiceResult with the status its error code maps to."""
    return Response(
        PaymentErrorSerializer(result).data,
        status=ERROR_STATUS.get(
            result.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    )


def invalid_request(serializer):
    return Response(
        {'error': 'Invalid request', 'fields': serializer.errors},
        status=status.HTTP_400_BAD_REQUEST
    )


class PaymentsAPIView(views.APIView):
    """
    Base for payment endpoints. Identity is carried in the request body
    by the client application, so no DRF authentication is enforced here.
    """
    permission_classes = [AllowAny]


class CreatePaymentIntentView(PaymentsAPIView):
    """
    Create a PaymentIntent for the card portion of an order.

    POST /api/v1/payments/create-payment-intent/
    """

    @extend_schema(
        summary="Create payment intent for an order",
        description="""
        Create a Stripe payment intent for the part of an order not covered
        by the wallet.

        **Payment Flow:**
        1. Validates amount, order and user
        2. Resolves (or creates) the user's Stripe customer
        3. Creates an unconfirmed payment intent (wallet-only orders skip this)
        4. Client confirms with the returned client secret
        5. The webhook marks the order paid and deducts the wallet portion
        """,
        request=CreatePaymentIntentSerializer,
        responses={
            200: PaymentIntentResponseSerializer,
            400: PaymentErrorSerializer,
            404: PaymentErrorSerializer,
            500: PaymentErrorSerializer,
        },
        examples=[
            OpenApiExample(
                'Mixed wallet and card',
                value={
                    'amount': 1500,
                    'orderId': 'o1',
                    'userId': 'u1',
                    'walletAmount': 500
                },
                request_only=True
            )
        ],
        tags=['Payments']
    )
    def post(self, request):
        serializer = CreatePaymentIntentSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer)

        result = PaymentIntentService().create_payment_intent(**serializer.validated_data)
        if not result.success:
            return error_response(result)

        return Response(
            PaymentIntentResponseSerializer(result.data).data,
            status=status.HTTP_200_OK
        )


class CreateSetupIntentView(PaymentsAPIView):
    """
    POST /api/v1/payments/create-setup-intent/
    """

    @extend_schema(
        summary="Create setup intent to save a card",
        request=CreateSetupIntentSerializer,
        responses={
            200: SetupIntentResponseSerializer,
            400: PaymentErrorSerializer,
            500: PaymentErrorSerializer,
        },
        tags=['Payments']
    )
    def post(self, request):
        serializer = CreateSetupIntentSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer)

        result = PaymentIntentService().create_setup_intent(**serializer.validated_data)
        if not result.success:
            return error_response(result)

        return Response(SetupIntentResponseSerializer(result.data).data)


class PaymentMethodDetailView(PaymentsAPIView):
    """
    GET /api/v1/payments/payment-method/<id>/
    """

    @extend_schema(
        summary="Retrieve a Stripe payment method",
        responses={200: Types.OBJECT, 500: PaymentErrorSerializer},
        tags=['Cards']
    )
    def get(self, request, payment_method_id):
        result = CardService().get_payment_method(payment_method_id)
        if not result.success:
            return error_response(result)

        return Response(result.data)


class SetDefaultCardView(PaymentsAPIView):
    """
    POST /api/v1/payments/set-default-card/
    """

    @extend_schema(
        summary="Set the customer's default card",
        request=SetDefaultCardSerializer,
        responses={
            200: ActionResultSerializer,
            400: PaymentErrorSerializer,
            500: PaymentErrorSerializer,
        },
        tags=['Cards']
    )
    def post(self, request):
        serializer = SetDefaultCardSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer)

        result = CardService().set_default_card(**serializer.validated_data)
        if not result.success:
            return error_response(result)

        return Response(ActionResultSerializer(result.data).data)


class SavedCardListView(PaymentsAPIView):
    """
    GET /api/v1/payments/cards/<user_id>/
    """

    @extend_schema(
        summary="List a user's saved cards",
        responses={
            200: SavedCardSerializer(many=True),
            404: PaymentErrorSerializer,
        },
        tags=['Cards']
    )
    def get(self, request, user_id):
        result = CardService().list_cards(user_id)
        if not result.success:
            return error_response(result)

        return Response(SavedCardSerializer(result.data, many=True).data)


class AttachPaymentMethodView(PaymentsAPIView):
    """
    POST /api/v1/payments/attach-payment-method/
    """

    @extend_schema(
        summary="Attach a payment method to a customer",
        request=AttachPaymentMethodSerializer,
        responses={
            200: Types.OBJECT,
            400: PaymentErrorSerializer,
            500: PaymentErrorSerializer,
        },
        tags=['Cards']
    )
    def post(self, request):
        serializer = AttachPaymentMethodSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer)

        result = CardService().attach_payment_method(**serializer.validated_data)
        if not result.success:
            return error_response(result)

        return Response(result.data)


class RemoveCardView(PaymentsAPIView):
    """
    DELETE /api/v1/payments/card/<payment_method_id>/
    """

    @extend_schema(
        summary="Remove a saved card",
        description="Detaches the card in Stripe, then drops it from the user's saved cards.",
        request=RemoveCardSerializer,
        responses={
            200: ActionResultSerializer,
            400: PaymentErrorSerializer,
            500: PaymentErrorSerializer,
        },
        tags=['Cards']
    )
    def delete(self, request, payment_method_id):
        serializer = RemoveCardSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer)

        result = CardService().remove_card(
            payment_method_id,
            serializer.validated_data.get('user_id')
        )
        if not result.success:
            return error_response(result)

        return Response(ActionResultSerializer(result.data).data)


class AddMoneyToWalletView(PaymentsAPIView):
    """
    POST /api/v1/payments/add-money-to-wallet/
    """

    @extend_schema(
        summary="Top up a wallet by card",
        description="""
        With `paymentMethodId` the intent is confirmed off-session and the
        wallet is credited immediately on success. Without it, or when the
        card needs authentication, `requiresConfirmation` is true and the
        client confirms with `clientSecret`; the webhook credits the wallet.
        """,
        request=AddMoneyToWalletSerializer,
        responses={
            200: WalletTopUpResponseSerializer,
            400: PaymentErrorSerializer,
            404: PaymentErrorSerializer,
            500: PaymentErrorSerializer,
        },
        tags=['Wallet']
    )
    def post(self, request):
        serializer = AddMoneyToWalletSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer)

        result = PaymentIntentService().add_money_to_wallet(**serializer.validated_data)
        if not result.success:
            return error_response(result)

        return Response(WalletTopUpResponseSerializer(result.data).data)
