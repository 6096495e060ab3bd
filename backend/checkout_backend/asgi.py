"""
ASGI config for checkout_backend project.
"""

import os

# CRITICAL: Set Django settings module BEFORE any Django imports
os.environ.setdefault('DJANGO_SETTINGS_MODULE',
                      'checkout_backend.settings.production')

from django.core.asgi import get_asgi_application  # noqa: E402

application = get_asgi_application()
