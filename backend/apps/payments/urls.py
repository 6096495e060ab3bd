"""
URL configuration for payment endpoints.
"""
from django.urls import path

from .views import (
    AddMoneyToWalletView,
    AttachPaymentMethodView,
    CreatePaymentIntentView,
    CreateSetupIntentView,
    PaymentMethodDetailView,
    RemoveCardView,
    SavedCardListView,
    SetDefaultCardView,
)

app_name = 'payments'

urlpatterns = [
    path(
        'create-payment-intent/',
        CreatePaymentIntentView.as_view(),
        name='create-payment-intent'
    ),
    path(
        'create-setup-intent/',
        CreateSetupIntentView.as_view(),
        name='create-setup-intent'
    ),
    path(
        'payment-method/<str:payment_method_id>/',
        PaymentMethodDetailView.as_view(),
        name='payment-method-detail'
    ),
    path(
        'set-default-card/',
        SetDefaultCardView.as_view(),
        name='set-default-card'
    ),
    path(
        'cards/<str:user_id>/',
        SavedCardListView.as_view(),
        name='saved-cards'
    ),
    path(
        'attach-payment-method/',
        AttachPaymentMethodView.as_view(),
        name='attach-payment-method'
    ),
    path(
        'card/<str:payment_method_id>/',
        RemoveCardView.as_view(),
        name='remove-card'
    ),
    path(
        'add-money-to-wallet/',
        AddMoneyToWalletView.as_view(),
        name='add-money-to-wallet'
    ),
]
