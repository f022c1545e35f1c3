"""
Currency rate ORM Models.
"""

from django.db import models


class CurrencyRate(models.Model):
    """Official NBT rate: `value` TJS for `nominal` units of `char_code`."""

    date = models.DateField(db_index=True, verbose_name="Дата")
    char_code = models.CharField(max_length=3, verbose_name="Код валюты")
    name = models.CharField(max_length=100, blank=True, verbose_name="Название")
    nominal = models.PositiveIntegerField(default=1, verbose_name="Номинал")
    value = models.DecimalField(max_digits=18, decimal_places=6, verbose_name="Курс")
    fetched_at = models.DateTimeField(auto_now=True, verbose_name="Загружено")

    class Meta:
        db_table = 'currency_rates'
        verbose_name = 'Курс валюты'
        verbose_name_plural = 'Курсы валют'
        ordering = ['-date', 'char_code']
        unique_together = [['date', 'char_code']]

    def __str__(self):
        return f"{self.date}: {self.nominal} {self.char_code} = {self.value} TJS"

    @property
    def rate_per_unit(self):
        return self.value / self.nominal if self.nominal else self.value
