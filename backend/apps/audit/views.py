"""
Audit log views - query audit log entries.

Read-only - audit logs are append-only.
"""

from uuid import UUID

from rest_framework.decorators import api_view, permission_classes
from rest_framework.pagination import LimitOffsetPagination
from django.utils.dateparse import parse_datetime

from core.exceptions import ValidationError
from core.permissions import IsStaff
from apps.audit.models import AuditLog
from apps.audit.serializers import AuditLogSerializer

TARGET_TYPES = ["PaymentRequest", "MerchantAccountEntry", "Merchant"]


def _parse_datetime_param(value, name):
    try:
        parsed = parse_datetime(value)
    except (ValueError, TypeError):
        parsed = None
    if parsed is None:
        raise ValidationError(f"Invalid {name} format (use ISO 8601)")
    return parsed


@api_view(["GET"])
@permission_classes([IsStaff])
def query_audit_log(request):
    """
    GET /api/v1/audit

    Query audit log entries with optional filters:
    targetType, targetId, actorId, action, fromDate, toDate.
    """
    params = request.query_params
    queryset = AuditLog.objects.all()

    target_type = params.get("targetType")
    if target_type:
        if target_type not in TARGET_TYPES:
            raise ValidationError("Invalid targetType")
        queryset = queryset.filter(target_type=target_type)

    if params.get("targetId"):
        queryset = queryset.filter(target_id=params["targetId"])

    if params.get("action"):
        queryset = queryset.filter(action=params["action"])

    actor_id = params.get("actorId")
    if actor_id:
        try:
            queryset = queryset.filter(actor_id=UUID(actor_id))
        except ValueError:
            raise ValidationError("Invalid actorId format")

    if params.get("fromDate"):
        queryset = queryset.filter(
            occurred_at__gte=_parse_datetime_param(params["fromDate"], "fromDate")
        )
    if params.get("toDate"):
        queryset = queryset.filter(
            occurred_at__lte=_parse_datetime_param(params["toDate"], "toDate")
        )

    # Order by occurred_at descending
    queryset = queryset.order_by("-occurred_at")

    # Paginate
    paginator = LimitOffsetPagination()
    paginator.default_limit = 50
    paginator.max_limit = 100

    page = paginator.paginate_queryset(queryset, request)
    serializer = AuditLogSerializer(page, many=True)

    return paginator.get_paginated_response(serializer.data)
