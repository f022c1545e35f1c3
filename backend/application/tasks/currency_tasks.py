"""
Currency Tasks.

Daily download of NBT exchange rates.
"""

from datetime import date

from celery import shared_task
from django.utils import timezone
import logging

import requests

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def fetch_currency_rates(self, rate_date: str = None):
    """Fetch and store NBT rates for `rate_date` (ISO) or today."""
    from application.services.currency import CurrencyService

    day = date.fromisoformat(rate_date) if rate_date else timezone.localdate()
    try:
        rates = CurrencyService.refresh(day)
    except requests.RequestException as exc:
        logger.warning(f"NBT rates fetch failed for {day}: {exc}")
        raise self.retry(exc=exc)

    logger.info(f"Fetched {len(rates)} NBT rates for {day}")
    return {'date': day.isoformat(), 'rates': len(rates)}
