"""
Serializers for AuditLog model.
"""

from rest_framework import serializers
from apps.audit.models import AuditLog


class AuditLogSerializer(serializers.ModelSerializer):
    """Serializer for AuditLog."""

    id = serializers.UUIDField(read_only=True)
    actorId = serializers.UUIDField(source="actor_id", read_only=True, allow_null=True)
    targetType = serializers.CharField(
        source="target_type", read_only=True, allow_null=True
    )
    targetId = serializers.CharField(source="target_id", read_only=True, allow_null=True)
    requestId = serializers.CharField(
        source="request_id", read_only=True, allow_null=True
    )
    occurredAt = serializers.DateTimeField(source="occurred_at", read_only=True)

    class Meta:
        model = AuditLog
        fields = [
            "id",
            "action",
            "actorId",
            "targetType",
            "targetId",
            "requestId",
            "metadata",
            "occurredAt",
        ]
        read_only_fields = fields
