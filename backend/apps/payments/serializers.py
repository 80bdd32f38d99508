"""
Serializers for payment models.

No business logic in serializers - validation only.
All mutations flow through service layer.

The per-method details payload is validated here as a tagged variant keyed
by "kind"; the services store it unchanged.
"""

from rest_framework import serializers
from apps.payments.models import PaymentRequest


class BankTransferPayerSerializer(serializers.Serializer):
    holderName = serializers.CharField(max_length=255)
    accountNo = serializers.CharField(max_length=64)
    bankName = serializers.CharField(max_length=255)


class PayIdPayerSerializer(serializers.Serializer):
    holderName = serializers.CharField(max_length=255)
    payId = serializers.CharField(max_length=255)


class VirtualAccountSerializer(serializers.Serializer):
    bankCode = serializers.CharField(max_length=32)


class WithdrawalDestinationSerializer(serializers.Serializer):
    holderName = serializers.CharField(max_length=255)
    accountNo = serializers.CharField(max_length=64)
    bankName = serializers.CharField(max_length=255)
    bsb = serializers.CharField(max_length=16, required=False, allow_blank=True)


# kind -> (payload key, serializer)
DEPOSIT_DETAIL_KINDS = {
    "BANK_TRANSFER": ("payer", BankTransferPayerSerializer),
    "PAYID": ("payer", PayIdPayerSerializer),
    "VIRTUAL_ACCOUNT": ("bank", VirtualAccountSerializer),
}
WITHDRAWAL_DETAIL_KINDS = {
    "WITHDRAWAL": ("destination", WithdrawalDestinationSerializer),
}


def validate_tagged_details(value, kinds):
    """Validate {"kind": ..., <key>: {...}} against the serializer for its kind."""
    if not isinstance(value, dict):
        raise serializers.ValidationError("details must be an object")

    kind = value.get("kind")
    if kind not in kinds:
        raise serializers.ValidationError(
            f"details.kind must be one of {', '.join(sorted(kinds))}"
        )

    key, serializer_class = kinds[kind]
    inner = serializer_class(data=value.get(key))
    if not inner.is_valid():
        raise serializers.ValidationError({key: inner.errors})
    return {"kind": kind, key: dict(inner.validated_data)}


class PaymentRequestSerializer(serializers.ModelSerializer):
    """Serializer for PaymentRequest."""

    id = serializers.UUIDField(read_only=True)
    amountCents = serializers.IntegerField(source="amount_cents", read_only=True)
    referenceCode = serializers.CharField(source="reference_code", read_only=True)
    uniqueReference = serializers.CharField(source="unique_reference", read_only=True)
    merchantId = serializers.UUIDField(source="merchant_id", read_only=True)
    merchantName = serializers.CharField(source="merchant.name", read_only=True)
    customerId = serializers.CharField(
        source="customer.public_id", read_only=True, allow_null=True, default=None
    )
    bankAccountId = serializers.UUIDField(
        source="bank_account_id", read_only=True, allow_null=True
    )
    methodCode = serializers.CharField(
        source="method_code", read_only=True, allow_null=True
    )
    details = serializers.JSONField(source="details_json", read_only=True)
    receiptReference = serializers.CharField(
        source="receipt_reference", read_only=True, allow_null=True
    )
    rejectedReason = serializers.CharField(
        source="rejected_reason", read_only=True, allow_null=True
    )
    processedAt = serializers.DateTimeField(
        source="processed_at", read_only=True, allow_null=True
    )
    processedBy = serializers.UUIDField(
        source="processed_by_id", read_only=True, allow_null=True
    )
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = PaymentRequest
        fields = [
            "id",
            "type",
            "status",
            "amountCents",
            "currency",
            "referenceCode",
            "uniqueReference",
            "merchantId",
            "merchantName",
            "customerId",
            "bankAccountId",
            "methodCode",
            "details",
            "receiptReference",
            "notes",
            "rejectedReason",
            "processedAt",
            "processedBy",
            "version",
            "createdAt",
            "updatedAt",
        ]
        read_only_fields = fields


class DepositRequestSerializer(serializers.Serializer):
    """Body of POST /merchant/deposits."""

    subject = serializers.CharField(max_length=255)
    amountCents = serializers.IntegerField(min_value=1)
    currency = serializers.CharField(min_length=3, max_length=4)
    methodCode = serializers.CharField(max_length=64, default="BANK_TRANSFER")
    details = serializers.JSONField(required=False, allow_null=True)
    bankAccountId = serializers.UUIDField(required=False, allow_null=True)

    def validate_details(self, value):
        if value is None:
            return None
        return validate_tagged_details(value, DEPOSIT_DETAIL_KINDS)


class WithdrawalRequestSerializer(serializers.Serializer):
    """Body of POST /merchant/withdrawals."""

    subject = serializers.CharField(max_length=255)
    amountCents = serializers.IntegerField(min_value=1)
    currency = serializers.CharField(min_length=3, max_length=4)
    methodCode = serializers.CharField(max_length=64, required=False, allow_null=True)
    details = serializers.JSONField()

    def validate_details(self, value):
        return validate_tagged_details(value, WITHDRAWAL_DETAIL_KINDS)


class TestPaymentSerializer(serializers.Serializer):
    """Body of POST /merchant/test-payments."""

    type = serializers.ChoiceField(choices=["DEPOSIT", "WITHDRAWAL"])
    amountCents = serializers.IntegerField(min_value=1)
    currency = serializers.CharField(min_length=3, max_length=4, required=False)


class EvidenceSerializer(serializers.Serializer):
    receiptReference = serializers.CharField(max_length=512)


class StatusChangeSerializer(serializers.Serializer):
    """
    Body of POST /payments/{id}/status.

    amountCents is passed through untouched; the transition engine owns its
    validation and reports AMOUNT_INVALID.
    """

    type = serializers.ChoiceField(choices=["DEPOSIT", "WITHDRAWAL"])
    status = serializers.ChoiceField(choices=["APPROVED", "REJECTED"])
    amountCents = serializers.JSONField(required=False, allow_null=True)
    comment = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, max_length=2000
    )
    bankAccountId = serializers.UUIDField(required=False, allow_null=True)
