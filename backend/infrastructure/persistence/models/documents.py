"""
Document ORM Models.
"""

import os

from django.conf import settings
from django.db import models


class DocumentTypeChoices(models.TextChoices):
    CONTRACT = 'contract', 'Контракт'
    AMENDMENT = 'amendment', 'Дополнение к контракту'
    AMENDMENT_AGREEMENT = 'amendment_agreement', 'Дополнительное соглашение'
    WORK_ACT = 'work_act', 'Акт выполненных работ'
    INVOICE = 'invoice', 'Счёт-фактура'
    PHOTO = 'photo', 'Фото'
    REPORT = 'report', 'Отчёт'
    OTHER = 'other', 'Прочее'
    TENDER_DOCUMENT = 'tender_document', 'Тендерная документация'
    COMPANY_REGISTRATION = 'company_registration', 'Свидетельство о регистрации'
    COMPANY_LICENSE = 'company_license', 'Лицензия'
    TAX_CERTIFICATE = 'tax_certificate', 'Налоговый сертификат'
    BANK_DETAILS = 'bank_details', 'Банковские реквизиты'
    INSURANCE = 'insurance', 'Страховка'
    SIGNED_CONTRACT = 'signed_contract', 'Подписанный контракт'
    MANDATORY_DOCUMENT = 'mandatory_document', 'Обязательный документ'
    ADDITIONAL_DOCUMENT = 'additional_document', 'Дополнительный документ'


def document_upload_path(instance, filename):
    owner = 'common'
    if instance.contract_id:
        owner = f'contracts/{instance.contract_id}'
    elif instance.contractor_id:
        owner = f'contractors/{instance.contractor_id}'
    return f'documents/{owner}/{filename}'


class Document(models.Model):
    """
    Uploaded file attached to a contract, AVR, payment, contractor
    or amendment.
    """

    file = models.FileField(upload_to=document_upload_path, verbose_name="Файл")
    original_file_name = models.CharField(max_length=255, verbose_name="Исходное имя файла")
    content_type = models.CharField(max_length=100, blank=True, verbose_name="MIME-тип")
    file_size = models.PositiveBigIntegerField(default=0, verbose_name="Размер, байт")
    type = models.CharField(
        max_length=30,
        choices=DocumentTypeChoices.choices,
        default=DocumentTypeChoices.OTHER,
        verbose_name="Тип документа"
    )
    description = models.TextField(blank=True, verbose_name="Описание")
    sort_order = models.PositiveIntegerField(default=0, verbose_name="Порядок")

    contract = models.ForeignKey(
        'persistence.Contract',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='documents',
        verbose_name="Контракт"
    )
    work_progress = models.ForeignKey(
        'persistence.WorkProgress',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='documents',
        verbose_name="АВР"
    )
    payment = models.ForeignKey(
        'persistence.Payment',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='documents',
        verbose_name="Платёж"
    )
    contractor = models.ForeignKey(
        'persistence.Contractor',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='documents',
        verbose_name="Подрядчик"
    )
    amendment = models.ForeignKey(
        'persistence.ContractAmendment',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='documents',
        verbose_name="Доп. соглашение"
    )

    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='uploaded_documents',
        verbose_name="Загрузил"
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Дата загрузки")

    class Meta:
        db_table = 'documents'
        verbose_name = 'Документ'
        verbose_name_plural = 'Документы'
        ordering = ['sort_order', '-created_at']

    def __str__(self):
        return self.original_file_name

    @property
    def extension(self):
        return os.path.splitext(self.original_file_name)[1].lower()
