"""
Base Serializers.

Common serializer mixins and base classes.
"""

from rest_framework import serializers
from django.contrib.auth import get_user_model

User = get_user_model()


class BaseModelSerializer(serializers.ModelSerializer):
    """
    Base serializer with common configuration.
    """

    class Meta:
        abstract = True
        read_only_fields = ['id', 'created_at', 'updated_at']


def request_language(context):
    """Language from ?lang, else the user's preferred one."""
    request = context.get('request')
    if request is None:
        return None
    lang = request.query_params.get('lang')
    if lang is None and request.user.is_authenticated:
        lang = request.user.preferred_language
    return lang


class LocalizedNameMixin(serializers.Serializer):
    """Adds `display_name` in the language of the request."""

    display_name = serializers.SerializerMethodField()

    def get_display_name(self, obj):
        return obj.get_name(request_language(self.context))


class UserMinimalSerializer(serializers.ModelSerializer):
    """Minimal user serializer for nested representations."""

    full_name = serializers.CharField(source='get_full_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'full_name', 'email']
        read_only_fields = fields
