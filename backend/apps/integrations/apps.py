"""
Django app configuration for integrations.
"""
from django.apps import AppConfig


class IntegrationsConfig(AppConfig):
    """Configuration for the Stripe integration app."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.integrations'
    verbose_name = 'Integrations'
