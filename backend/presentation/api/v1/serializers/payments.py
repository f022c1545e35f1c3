"""
Payment Serializers.
"""

from rest_framework import serializers

from infrastructure.persistence.models import Payment
from .base import BaseModelSerializer


class PaymentSerializer(BaseModelSerializer):
    contract_number = serializers.CharField(source='contract.contract_number', read_only=True)
    contractor_name = serializers.CharField(source='contract.contractor.name', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    type_display = serializers.CharField(source='get_type_display', read_only=True)
    approved_by_name = serializers.CharField(source='approved_by.get_full_name', read_only=True, default=None)
    rejected_by_name = serializers.CharField(source='rejected_by.get_full_name', read_only=True, default=None)

    class Meta:
        model = Payment
        fields = [
            'id', 'contract', 'contract_number', 'contractor_name', 'work_progress',
            'payment_date', 'amount', 'amount_tjs', 'exchange_rate',
            'type', 'type_display', 'status', 'status_display',
            'description', 'invoice_number',
            'approved_at', 'approved_by', 'approved_by_name',
            'rejection_reason', 'rejected_at', 'rejected_by', 'rejected_by_name',
            'paid_at', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'status', 'approved_at', 'approved_by', 'rejection_reason',
            'rejected_at', 'rejected_by', 'paid_at', 'created_at', 'updated_at',
        ]
        extra_kwargs = {'amount': {'required': False}}

    def validate(self, attrs):
        work_progress = attrs.get('work_progress')
        contract = attrs.get('contract', getattr(self.instance, 'contract', None))
        if work_progress is not None and contract is not None and work_progress.contract_id != contract.pk:
            raise serializers.ValidationError({'work_progress': 'АВР относится к другому контракту.'})
        if attrs.get('amount') is None and not (attrs.get('amount_tjs') and attrs.get('exchange_rate')):
            if self.instance is None:
                raise serializers.ValidationError({'amount': 'Укажите сумму в USD или сумму в TJS и курс.'})
        return attrs


class PaymentRejectSerializer(serializers.Serializer):
    reason = serializers.CharField()
