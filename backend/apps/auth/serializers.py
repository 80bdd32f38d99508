"""
Serializers for authentication endpoints.
"""

from rest_framework import serializers


class TokenRequestSerializer(serializers.Serializer):
    """Serializer for token request."""

    username = serializers.CharField(required=True)
    password = serializers.CharField(required=True, write_only=True)
