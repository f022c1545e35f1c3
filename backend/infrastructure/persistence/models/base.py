"""
Base ORM Models and Mixins.

Every PMMIS table carries timestamps and the users who created and last
changed the row. Financial and contractual tables also keep a full change
history through django-simple-history (`BaseModelWithHistory`).
"""

from django.conf import settings
from django.db import models
from simple_history.models import HistoricalRecords

from domain.shared.value_objects import localized


def _user_reference(related_name, verbose_name):
    return models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name=related_name,
        verbose_name=verbose_name,
    )


class TimeStampedMixin(models.Model):
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Дата создания")
    updated_at = models.DateTimeField(auto_now=True, verbose_name="Дата обновления")

    class Meta:
        abstract = True


class AuditMixin(models.Model):
    """Filled by the API layer from request.user (see AuditViewMixin)."""

    created_by = _user_reference("%(class)s_created", "Создано пользователем")
    updated_by = _user_reference("%(class)s_updated", "Обновлено пользователем")

    class Meta:
        abstract = True


class LocalizedNameMixin(models.Model):
    """Name in Russian (required), Tajik and English; falls back to Russian."""

    name_ru = models.CharField(max_length=500, verbose_name="Название (рус)")
    name_tj = models.CharField(max_length=500, blank=True, verbose_name="Название (тадж)")
    name_en = models.CharField(max_length=500, blank=True, verbose_name="Название (англ)")

    class Meta:
        abstract = True

    def get_name(self, lang=None):
        return localized(lang, self.name_ru, self.name_tj, self.name_en)

    @property
    def name(self):
        return self.name_ru

    def __str__(self):
        return self.name_ru


class BaseModel(TimeStampedMixin, AuditMixin):

    class Meta:
        abstract = True

    def __str__(self):
        return f"{self.__class__.__name__} #{self.pk}"


class BaseModelWithHistory(BaseModel):
    history = HistoricalRecords(inherit=True)

    class Meta:
        abstract = True
