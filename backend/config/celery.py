"""
Celery configuration for PMMIS project.
"""

import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('pmmis')

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Tasks live outside Django apps, so list the modules explicitly.
app.autodiscover_tasks(lambda: ['application'], related_name='tasks')

app.conf.task_routes = {
    'application.tasks.notification_tasks.*': {'queue': 'notifications'},
    'application.tasks.currency_tasks.*': {'queue': 'integrations'},
}

app.conf.beat_schedule = {
    'check-task-deadlines': {
        'task': 'application.tasks.notification_tasks.check_task_deadlines',
        'schedule': 3600.0,  # Every hour
    },
    'deliver-scheduled-notifications': {
        'task': 'application.tasks.notification_tasks.deliver_scheduled_notifications',
        'schedule': 900.0,
    },
    'check-contract-expiry': {
        'task': 'application.tasks.contract_tasks.check_contract_expiry',
        'schedule': crontab(hour=7, minute=0),
    },
    'fetch-currency-rates': {
        'task': 'application.tasks.currency_tasks.fetch_currency_rates',
        'schedule': crontab(hour=10, minute=30),
    },
}


@app.task(bind=True, ignore_result=True)
def debug_task(self):
    print(f'Request: {self.request!r}')
