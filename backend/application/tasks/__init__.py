"""
Celery tasks.
"""

from . import contract_tasks, currency_tasks, notification_tasks  # noqa: F401
