"""
Ledger API views.

Balances and entries are read by staff. Manual account entries are
created by SUPER_ADMIN only; every balance change goes through
apps.ledger.services.
"""

from uuid import UUID

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response

from core.exceptions import NotFoundError, ValidationError
from core.permissions import IsStaff, StaffReadSuperAdminWrite
from apps.ledger import services
from apps.ledger.models import LedgerEntry, Merchant
from apps.ledger.serializers import (
    AccountEntryCreateSerializer,
    LedgerEntrySerializer,
    MerchantAccountEntrySerializer,
    MerchantBalanceSerializer,
)


def _paginate(request, queryset, serializer_class):
    paginator = LimitOffsetPagination()
    paginator.default_limit = 50
    paginator.max_limit = 100

    page = paginator.paginate_queryset(queryset, request)
    serializer = serializer_class(page, many=True)
    return paginator.get_paginated_response(serializer.data)


@api_view(["GET"])
@permission_classes([IsStaff])
def list_merchant_balances(request):
    """GET /api/v1/ledger/merchants - Merchants with current balance"""
    rows = services.list_merchant_balances()
    serializer = MerchantBalanceSerializer(rows, many=True)
    return Response({"data": serializer.data}, status=status.HTTP_200_OK)


@api_view(["GET"])
@permission_classes([IsStaff])
def list_merchant_ledger(request, merchantId):
    """GET /api/v1/ledger/merchants/{merchantId}/entries - Ledger, newest first"""
    if not Merchant.objects.filter(id=merchantId).exists():
        raise NotFoundError(f"Merchant {merchantId} does not exist")

    queryset = LedgerEntry.objects.filter(merchant_id=merchantId).order_by("-created_at")
    return _paginate(request, queryset, LedgerEntrySerializer)


@api_view(["GET", "POST"])
@permission_classes([StaffReadSuperAdminWrite])
def list_or_create_account_entries(request):
    """
    GET /api/v1/ledger/account-entries - List settlements / top-ups (staff)
    POST /api/v1/ledger/account-entries - Record one (SUPER_ADMIN)
    """
    if request.method == "GET":
        merchant_id = request.query_params.get("merchantId")
        if merchant_id:
            try:
                merchant_id = UUID(merchant_id)
            except ValueError:
                raise ValidationError("Invalid merchantId format")
        queryset = services.list_account_entries(
            entry_type=request.query_params.get("type"),
            merchant_id=merchant_id,
        )
        return _paginate(request, queryset, MerchantAccountEntrySerializer)

    serializer = AccountEntryCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    entry = services.create_account_entry(
        merchant_id=data["merchantId"],
        entry_type=data["type"],
        amount_cents=data["amountCents"],
        actor_id=request.user.id,
        method=data.get("method"),
        note=data.get("note"),
        receipt_reference=data.get("receiptReference"),
    )
    return Response(
        {"data": MerchantAccountEntrySerializer(entry).data},
        status=status.HTTP_201_CREATED,
    )
