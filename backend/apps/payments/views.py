"""
Payment API views.

All mutations flow through service layer.
All endpoints define permission_classes per API contract.
"""

import logging
from uuid import UUID

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response

from core.exceptions import NotFoundError, ValidationError
from core.permissions import IsMerchantUser, IsStaff, IsStaffOrMerchantReadOnly, STAFF_ROLES
from core.throttling import IntakeThrottle, MutationUserThrottle
from apps.payments import services
from apps.payments.models import PaymentRequest
from apps.payments.serializers import (
    DepositRequestSerializer,
    EvidenceSerializer,
    PaymentRequestSerializer,
    StatusChangeSerializer,
    TestPaymentSerializer,
    WithdrawalRequestSerializer,
)

logger = logging.getLogger(__name__)


def _merchant_scope(request):
    """None for staff (all merchants), else the caller's own merchant."""
    if request.user.role in STAFF_ROLES:
        return None
    return request.user.merchant_id


@api_view(["POST"])
@permission_classes([IsMerchantUser])
@throttle_classes([IntakeThrottle])
def create_deposit(request):
    """
    POST /api/v1/merchant/deposits

    Create a deposit intent. Honors the Idempotency-Key header.
    """
    serializer = DepositRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    payload = services.create_deposit_request(
        request.user.merchant_id,
        subject=data["subject"],
        amount_cents=data["amountCents"],
        currency=data["currency"],
        method_code=data["methodCode"],
        details=data.get("details"),
        bank_account_id=data.get("bankAccountId"),
        idempotency_key=request.idempotency_key,
    )
    return Response({"data": payload}, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([IsMerchantUser])
@throttle_classes([IntakeThrottle])
def create_withdrawal(request):
    """
    POST /api/v1/merchant/withdrawals

    Create a withdrawal request. Honors the Idempotency-Key header.
    """
    serializer = WithdrawalRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    payload = services.create_withdrawal_request(
        request.user.merchant_id,
        subject=data["subject"],
        amount_cents=data["amountCents"],
        currency=data["currency"],
        details=data["details"],
        method_code=data.get("methodCode"),
        idempotency_key=request.idempotency_key,
    )
    return Response({"data": payload}, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([IsMerchantUser])
@throttle_classes([IntakeThrottle])
def create_test_payment(request):
    """POST /api/v1/merchant/test-payments"""
    serializer = TestPaymentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    payload = services.create_test_payment(
        request.user.merchant_id,
        payment_type=data["type"],
        amount_cents=data["amountCents"],
        currency=data.get("currency") or request.user.merchant.default_currency,
        actor_id=request.user.id,
        idempotency_key=request.idempotency_key,
    )
    return Response({"data": payload}, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([IsMerchantUser])
@throttle_classes([MutationUserThrottle])
def submit_evidence(request, paymentId):
    """
    POST /api/v1/merchant/payments/{paymentId}/evidence

    Attach a receipt to the caller's own deposit (PENDING -> SUBMITTED).
    """
    serializer = EvidenceSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    payment = services.attach_evidence(
        paymentId,
        merchant_id=request.user.merchant_id,
        receipt_reference=serializer.validated_data["receiptReference"],
    )
    return Response({"data": PaymentRequestSerializer(payment).data})


@api_view(["GET"])
@permission_classes([IsStaffOrMerchantReadOnly])
def list_payments(request):
    """
    GET /api/v1/payments

    Staff see every merchant (optionally ?merchantId=); merchant users see
    their own. Filters: type, status.
    """
    params = request.query_params
    merchant_id = _merchant_scope(request)
    if merchant_id is None and params.get("merchantId"):
        try:
            merchant_id = UUID(params["merchantId"])
        except ValueError:
            raise ValidationError("Invalid merchantId format")

    queryset = services.list_payments(
        merchant_id=merchant_id,
        payment_type=params.get("type"),
        status=params.get("status"),
    )

    paginator = LimitOffsetPagination()
    paginator.default_limit = 50
    paginator.max_limit = 100

    page = paginator.paginate_queryset(queryset, request)
    serializer = PaymentRequestSerializer(page, many=True)
    return paginator.get_paginated_response(serializer.data)


@api_view(["GET"])
@permission_classes([IsStaffOrMerchantReadOnly])
def get_payment(request, paymentId):
    """GET /api/v1/payments/{paymentId}"""
    queryset = PaymentRequest.objects.select_related("merchant", "customer")
    merchant_id = _merchant_scope(request)
    if merchant_id is not None:
        queryset = queryset.filter(merchant_id=merchant_id)

    payment = queryset.filter(id=paymentId).first()
    if payment is None:
        raise NotFoundError(f"Payment {paymentId} does not exist")
    return Response({"data": PaymentRequestSerializer(payment).data})


@api_view(["POST"])
@permission_classes([IsStaff])
def change_payment_status(request, paymentId):
    """
    POST /api/v1/payments/{paymentId}/status

    Approve or reject a PENDING / SUBMITTED payment.
    """
    serializer = StatusChangeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    optional = {}
    if "bankAccountId" in data:
        optional["bank_account_id"] = data["bankAccountId"]

    result = services.transition_payment(
        data["type"],
        payment_id=paymentId,
        target_status=data["status"],
        actor_id=request.user.id,
        amount_cents_override=data.get("amountCents"),
        comment=data.get("comment"),
        **optional,
    )
    return Response(
        {
            "data": PaymentRequestSerializer(result.payment).data,
            "balanceDelta": result.balance_delta,
        },
        status=status.HTTP_200_OK,
    )
