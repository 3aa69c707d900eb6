import os
from celery import Celery
from celery.schedules import crontab

# Set default Django settings
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('sellmyimages')

# Load configuration from Django settings
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-discover tasks from installed apps
app.autodiscover_tasks()

# Periodic tasks schedule
app.conf.beat_schedule = {
    'cleanup-abandoned-jobs': {
        'task': 'sellmyimages.tasks.cleanup_abandoned_jobs',
        'schedule': crontab(minute=15),  # Hourly
    },
    'purge-expired-downloads': {
        'task': 'sellmyimages.tasks.purge_expired_downloads',
        'schedule': crontab(hour=3, minute=0),  # Daily at 3 AM UTC
    },
}
