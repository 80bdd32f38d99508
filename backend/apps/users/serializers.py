"""
Serializers for User model.

No business logic in serializers - validation only.
"""

from rest_framework import serializers
from apps.users.models import User, Role


class UserSerializer(serializers.ModelSerializer):
    """Compact actor representation (processedBy, createdBy, audit actors)."""

    id = serializers.UUIDField(read_only=True)
    role = serializers.ChoiceField(choices=Role.choices, read_only=True)
    displayName = serializers.CharField(source="display_name", read_only=True)
    merchantId = serializers.UUIDField(
        source="merchant_id", read_only=True, allow_null=True
    )

    class Meta:
        model = User
        fields = ["id", "username", "displayName", "role", "merchantId"]
        read_only_fields = fields
