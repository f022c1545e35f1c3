"""
Currency Rate Views.

NBT exchange rates served from the cache / table / NBT API chain.
"""

import logging
from datetime import timedelta

import requests
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from application.services.currency import MAX_RANGE_DAYS, CurrencyService
from infrastructure.persistence.models import MenuKeys
from ...permissions import IsPmuAdmin, MenuPermission

logger = logging.getLogger(__name__)


def _date_param(request, name, default=None):
    raw = request.query_params.get(name)
    if not raw:
        return default
    value = parse_date(raw)
    if value is None:
        raise ValueError(name)
    return value


class CurrencyRateViewSet(viewsets.ViewSet):
    """
    Endpoints:
    - GET /currency-rates/?date=YYYY-MM-DD - all rates of a day
    - GET /currency-rates/usd/?date=YYYY-MM-DD
    - GET /currency-rates/range/?char_code=USD&date_from=...&date_to=...
    - POST /currency-rates/refresh/?date=... - refetch from NBT (admin)
    """

    permission_classes = [IsAuthenticated, MenuPermission]
    menu_key = MenuKeys.CURRENCY_RATES
    permission_action = None

    def list(self, request):
        try:
            rate_date = _date_param(request, 'date', timezone.localdate())
        except ValueError:
            return Response({'error': 'Некорректная дата'}, status=status.HTTP_400_BAD_REQUEST)
        rates = CurrencyService.get_rates_for_date(rate_date)
        return Response({'date': rate_date, 'rates': rates})

    @action(detail=False, methods=['get'])
    def usd(self, request):
        try:
            rate_date = _date_param(request, 'date', timezone.localdate())
        except ValueError:
            return Response({'error': 'Некорректная дата'}, status=status.HTTP_400_BAD_REQUEST)
        rate = CurrencyService.get_usd_rate(rate_date)
        if rate is None:
            return Response(
                {'error': f'Курс USD на {rate_date:%d.%m.%Y} недоступен'},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response({'date': rate_date, 'char_code': 'USD', 'value': rate})

    @action(detail=False, methods=['get'])
    def range(self, request):
        today = timezone.localdate()
        try:
            date_to = _date_param(request, 'date_to', today)
            date_from = _date_param(request, 'date_from', date_to - timedelta(days=30))
        except ValueError as e:
            return Response({'error': f'Некорректная дата: {e}'}, status=status.HTTP_400_BAD_REQUEST)
        if date_from > date_to:
            return Response(
                {'error': 'Начальная дата позже конечной'},
                status=status.HTTP_400_BAD_REQUEST
            )
        char_code = request.query_params.get('char_code', 'USD')
        series = CurrencyService.get_rates_for_range(char_code, date_from, date_to)
        return Response({
            'char_code': char_code.upper(),
            'date_from': date_from,
            'date_to': min(date_to, date_from + timedelta(days=MAX_RANGE_DAYS)),
            'rates': series,
        })

    @action(detail=False, methods=['post'], permission_classes=[IsAuthenticated, IsPmuAdmin])
    def refresh(self, request):
        try:
            rate_date = _date_param(request, 'date', timezone.localdate())
        except ValueError:
            return Response({'error': 'Некорректная дата'}, status=status.HTTP_400_BAD_REQUEST)
        try:
            rates = CurrencyService.refresh(rate_date)
        except requests.RequestException as e:
            logger.error(f"Manual NBT refresh for {rate_date} failed: {e}")
            return Response(
                {'error': 'Сервис НБТ недоступен'},
                status=status.HTTP_502_BAD_GATEWAY
            )
        return Response({'date': rate_date, 'rates': rates})
