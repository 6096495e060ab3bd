# checkout_backend/celery.py
import os
from celery import Celery

# Set default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE',
                      'checkout_backend.settings.development')

# Create Celery application
app = Celery('checkout_backend')

# Load configuration from Django settings with CELERY namespace
# (CELERY_BEAT_SCHEDULE lives in settings/base.py)
app.config_from_object('django.conf:settings', namespace='CELERY')

# ============================================================================
# BROKER CONNECTION SETTINGS
# ============================================================================
app.conf.broker_connection_retry = True
app.conf.broker_connection_retry_on_startup = True

# ============================================================================
# TASK CONFIGURATION
# ============================================================================
app.conf.timezone = 'UTC'
app.conf.enable_utc = True

# Task result backend settings
app.conf.result_expires = 3600  # Results expire after 1 hour

# Task execution settings
app.conf.task_track_started = True
app.conf.task_time_limit = 30 * 60  # 30 minutes hard limit
app.conf.task_soft_time_limit = 25 * 60  # 25 minutes soft limit

# ============================================================================
# AUTODISCOVER TASKS
# ============================================================================
app.autodiscover_tasks()
