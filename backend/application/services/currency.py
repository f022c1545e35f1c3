"""
Currency Services.

Official exchange rates of the National Bank of Tajikistan (NBT).
Lookups go through the Django cache, then the currency_rates table,
and only then the NBT XML export.
"""

import logging
import xml.etree.ElementTree as ET
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import List, Optional

import requests
from django.conf import settings
from django.core.cache import cache
from django.db import IntegrityError, transaction

from infrastructure.persistence.models import CurrencyRate

logger = logging.getLogger(__name__)

CACHE_TIMEOUT = 60 * 60
MAX_RANGE_DAYS = 180


def _rate_dict(char_code, name, nominal, value, rate_date):
    return {
        'char_code': char_code,
        'name': name,
        'nominal': nominal,
        'value': value,
        'date': rate_date,
    }


class CurrencyService:

    @staticmethod
    def cache_key(rate_date: date) -> str:
        return f"nbt_rates_{rate_date:%Y-%m-%d}"

    @staticmethod
    def parse_xml(content: bytes, rate_date: date) -> List[dict]:
        """
        Parse the NBT export. The payload is UTF-8 even when the XML
        declaration claims windows-1251.
        """
        text = content.decode('utf-8', errors='replace')
        text = text.replace('encoding="windows-1251"', '').replace("encoding='windows-1251'", '')
        root = ET.fromstring(text)

        rates = []
        for valute in root.iter('Valute'):
            char_code = (valute.findtext('CharCode') or '').strip()
            if not char_code:
                continue
            try:
                nominal = int((valute.findtext('Nominal') or '1').strip())
                value = Decimal((valute.findtext('Value') or '0').strip().replace(',', '.'))
            except (ValueError, InvalidOperation):
                logger.warning(f"Skipping malformed NBT rate for {char_code} on {rate_date}")
                continue
            rates.append(_rate_dict(char_code, (valute.findtext('Name') or '').strip(), nominal, value, rate_date))
        return rates

    @classmethod
    def fetch_from_nbt(cls, rate_date: date) -> List[dict]:
        """Download rates for one day. Network and parse errors propagate."""
        response = requests.get(
            settings.PMMIS['NBT_RATES_URL'],
            params={'date': rate_date.strftime('%Y-%m-%d'), 'export': 'xmlout'},
            timeout=settings.PMMIS['NBT_TIMEOUT'],
        )
        response.raise_for_status()
        return cls.parse_xml(response.content, rate_date)

    @staticmethod
    def store(rates: List[dict]) -> int:
        created = 0
        for rate in rates:
            try:
                with transaction.atomic():
                    _, was_created = CurrencyRate.objects.update_or_create(
                        date=rate['date'],
                        char_code=rate['char_code'],
                        defaults={'name': rate['name'], 'nominal': rate['nominal'], 'value': rate['value']},
                    )
            except IntegrityError:
                logger.debug(f"Rate {rate['char_code']} for {rate['date']} stored concurrently")
                continue
            created += int(was_created)
        return created

    @classmethod
    def refresh(cls, rate_date: date) -> List[dict]:
        """Fetch from NBT and store, bypassing the cache and the table."""
        rates = cls.fetch_from_nbt(rate_date)
        if rates:
            created = cls.store(rates)
            logger.info(f"Cached {len(rates)} currency rates for {rate_date} ({created} new)")
            cache.set(cls.cache_key(rate_date), rates, CACHE_TIMEOUT)
        return rates

    @classmethod
    def get_rates_for_date(cls, rate_date: date) -> List[dict]:
        key = cls.cache_key(rate_date)
        cached = cache.get(key)
        if cached:
            return cached

        stored = list(CurrencyRate.objects.filter(date=rate_date))
        if stored:
            rates = [_rate_dict(r.char_code, r.name, r.nominal, r.value, r.date) for r in stored]
            cache.set(key, rates, CACHE_TIMEOUT)
            return rates

        try:
            return cls.refresh(rate_date)
        except (requests.RequestException, ET.ParseError) as e:
            logger.error(f"Failed to fetch NBT rates for {rate_date}: {e}")
            return []

    @classmethod
    def get_usd_rate(cls, rate_date: date) -> Optional[Decimal]:
        for rate in cls.get_rates_for_date(rate_date):
            if rate['char_code'].upper() == 'USD':
                return rate['value']
        return None

    @classmethod
    def get_rates_for_range(cls, char_code: str, date_from: date, date_to: date) -> List[dict]:
        """
        Daily series of one currency over business days.

        The range is capped at 180 days from date_from. Only days missing
        from the table are requested from NBT.
        """
        char_code = char_code.upper()
        last = min(date_to, date_from + timedelta(days=MAX_RANGE_DAYS))

        known = {
            r.date: r.value
            for r in CurrencyRate.objects.filter(char_code=char_code, date__range=(date_from, last))
        }

        current = date_from
        while current <= last:
            if current.weekday() < 5 and current not in known:
                for rate in cls.get_rates_for_date(current):
                    if rate['char_code'].upper() == char_code:
                        known[current] = rate['value']
                        break
            current += timedelta(days=1)

        return [
            {'date': day.strftime('%Y-%m-%d'), 'value': value}
            for day, value in sorted(known.items())
            if day.weekday() < 5
        ]
