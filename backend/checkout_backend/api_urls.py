"""
Main API URL configuration.
Consolidates all app API endpoints.
"""
from django.urls import path, include

urlpatterns = [
    path('payments/', include('apps.payments.urls')),
]
