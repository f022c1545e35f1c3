"""
Notification Serializers.
"""

from rest_framework import serializers

from infrastructure.persistence.models import Notification, UserNotificationSettings


class NotificationSerializer(serializers.ModelSerializer):
    type_display = serializers.CharField(source='get_type_display', read_only=True)
    priority_display = serializers.CharField(source='get_priority_display', read_only=True)

    class Meta:
        model = Notification
        fields = [
            'id', 'title', 'message', 'type', 'type_display', 'priority', 'priority_display',
            'channel', 'is_read', 'read_at', 'reference_type', 'reference_id', 'action_url',
            'created_at',
        ]
        read_only_fields = fields


class NotificationSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = UserNotificationSettings
        fields = [
            'in_app_enabled', 'email_enabled', 'telegram_enabled', 'telegram_chat_id',
            'task_notifications', 'deadline_notifications', 'payment_notifications',
            'system_notifications', 'daily_digest', 'digest_time',
            'quiet_hours_enabled', 'quiet_hours_start', 'quiet_hours_end',
            'deadline_warning_days', 'updated_at',
        ]
        read_only_fields = ['updated_at']

    def validate(self, attrs):
        enabled = attrs.get('quiet_hours_enabled', getattr(self.instance, 'quiet_hours_enabled', False))
        start = attrs.get('quiet_hours_start', getattr(self.instance, 'quiet_hours_start', None))
        end = attrs.get('quiet_hours_end', getattr(self.instance, 'quiet_hours_end', None))
        if enabled and (start is None or end is None):
            raise serializers.ValidationError({'quiet_hours_start': 'Укажите начало и конец тихих часов.'})
        telegram = attrs.get('telegram_enabled', getattr(self.instance, 'telegram_enabled', False))
        chat_id = attrs.get('telegram_chat_id', getattr(self.instance, 'telegram_chat_id', ''))
        if telegram and not chat_id:
            raise serializers.ValidationError({'telegram_chat_id': 'Укажите Telegram chat ID.'})
        return attrs
