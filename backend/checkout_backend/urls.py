"""
URL Configuration for the checkout payments backend.
"""
from django.urls import path, include
from django.http import JsonResponse
from django.utils import timezone
from django.conf import settings
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from django.contrib import admin

from apps.integrations.views import stripe_webhook


def home_view(request):
    """API root information"""
    return JsonResponse({
        'message': 'Checkout Payments API',
        'status': 'running',
        'timestamp': timezone.now().isoformat(),
        'endpoints': {
            'api': '/api/v1/',
            'payments': '/api/v1/payments/',
            'webhooks': '/webhooks/stripe/',
            'admin': '/admin/',
        }
    })


def health_view(request):
    """Liveness probe."""
    return JsonResponse({
        'status': 'ok',
        'timestamp': timezone.now().isoformat(),
        'debug': settings.DEBUG,
    })


urlpatterns = [
    path('', home_view, name='home'),
    path('health', health_view, name='health'),
    path('admin/', admin.site.urls),

    # API v1 endpoints
    path('api/v1/', include('checkout_backend.api_urls')),

    # API Documentation
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'),
         name='swagger-ui'),

    # Stripe Webhooks (outside API versioning and auth)
    path('webhooks/stripe/', stripe_webhook, name='stripe-webhook'),
]
