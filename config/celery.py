"""
Celery application for background notifications and scheduled reports.
"""
import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('config')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

app.conf.beat_schedule = {
    'daily-transaction-report': {
        'task': 'ledger.tasks.generate_daily_transaction_report',
        'schedule': crontab(hour=0, minute=15),
    },
}
