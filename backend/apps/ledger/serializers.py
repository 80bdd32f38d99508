"""
Ledger serializers - no business logic, validation only.
"""

from rest_framework import serializers
from apps.ledger.models import LedgerEntry, MerchantAccountEntry


class MerchantBalanceSerializer(serializers.Serializer):
    """Row of list_merchant_balances()."""

    id = serializers.UUIDField()
    name = serializers.CharField()
    balanceCents = serializers.IntegerField()
    currency = serializers.CharField()
    lastActivityAt = serializers.DateTimeField(allow_null=True)


class LedgerEntrySerializer(serializers.ModelSerializer):
    """Serializer for LedgerEntry."""

    id = serializers.UUIDField(read_only=True)
    merchantId = serializers.UUIDField(source="merchant_id", read_only=True)
    amountCents = serializers.IntegerField(source="amount_cents", read_only=True)
    relatedPaymentId = serializers.UUIDField(
        source="related_payment_id", read_only=True, allow_null=True
    )
    accountEntryId = serializers.UUIDField(
        source="account_entry_id", read_only=True, allow_null=True
    )
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = LedgerEntry
        fields = [
            "id",
            "merchantId",
            "amountCents",
            "reason",
            "relatedPaymentId",
            "accountEntryId",
            "createdAt",
        ]
        read_only_fields = fields


class MerchantAccountEntrySerializer(serializers.ModelSerializer):
    """Serializer for MerchantAccountEntry."""

    id = serializers.UUIDField(read_only=True)
    merchantId = serializers.UUIDField(source="merchant_id", read_only=True)
    merchantName = serializers.CharField(source="merchant.name", read_only=True)
    amountCents = serializers.IntegerField(source="amount_cents", read_only=True)
    receiptReference = serializers.CharField(
        source="receipt_reference", read_only=True, allow_null=True
    )
    createdBy = serializers.UUIDField(
        source="created_by_id", read_only=True, allow_null=True
    )
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = MerchantAccountEntry
        fields = [
            "id",
            "merchantId",
            "merchantName",
            "type",
            "amountCents",
            "method",
            "note",
            "receiptReference",
            "createdBy",
            "createdAt",
        ]
        read_only_fields = fields


class AccountEntryCreateSerializer(serializers.Serializer):
    """Body of POST /ledger/account-entries."""

    merchantId = serializers.UUIDField()
    type = serializers.ChoiceField(choices=["SETTLEMENT", "TOPUP"])
    amountCents = serializers.IntegerField(min_value=1)
    method = serializers.CharField(max_length=100, required=False, allow_blank=True)
    note = serializers.CharField(required=False, allow_blank=True)
    receiptReference = serializers.CharField(
        max_length=512, required=False, allow_blank=True
    )
