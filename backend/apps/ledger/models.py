"""
Ledger models: Merchant, LedgerEntry, MerchantAccountEntry.

Hardening rules:
- Merchant.balance_cents is only mutated by apps.ledger.services.apply_balance_delta
- LedgerEntry rows are append-only (no updates, no deletes, not even in bulk)
- PROTECT foreign keys
- Amounts are integers in minor units
"""

import uuid
from django.db import models

from core.querysets import AppendOnlyQuerySet


class Merchant(models.Model):
    """Tenant owning a running balance."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, unique=True)
    balance_cents = models.BigIntegerField(default=0)
    default_currency = models.CharField(max_length=4, default="AUD")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "merchants"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(balance_cents__gte=0),
                name="merchant_balance_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["is_active"], name="idx_merchant_active"),
        ]

    def __str__(self):
        return self.name


class MerchantAccountEntry(models.Model):
    """Manual settlement (payout to merchant) or top-up recorded by staff."""

    TYPE_CHOICES = [
        ("SETTLEMENT", "Settlement"),
        ("TOPUP", "Top-up"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    merchant = models.ForeignKey(
        Merchant, on_delete=models.PROTECT, related_name="account_entries"
    )
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    amount_cents = models.BigIntegerField()
    method = models.CharField(max_length=100, null=True, blank=True)
    note = models.TextField(null=True, blank=True)
    receipt_reference = models.CharField(max_length=512, null=True, blank=True)
    created_by = models.ForeignKey(
        "users.User",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="account_entries",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "merchant_account_entries"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(type__in=["SETTLEMENT", "TOPUP"]),
                name="valid_account_entry_type",
            ),
            models.CheckConstraint(
                condition=models.Q(amount_cents__gt=0),
                name="account_entry_amount_positive",
            ),
        ]
        indexes = [
            models.Index(
                fields=["merchant", "created_at"], name="idx_acct_entry_merchant"
            ),
            models.Index(fields=["type"], name="idx_acct_entry_type"),
        ]

    def __str__(self):
        return f"{self.type} {self.amount_cents} for {self.merchant_id}"


class LedgerEntry(models.Model):
    """Immutable signed balance change. Sum per merchant == Merchant.balance_cents."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    merchant = models.ForeignKey(
        Merchant, on_delete=models.PROTECT, related_name="ledger_entries"
    )
    amount_cents = models.BigIntegerField()
    reason = models.CharField(max_length=255)
    related_payment = models.ForeignKey(
        "payments.PaymentRequest",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="ledger_entries",
    )
    account_entry = models.ForeignKey(
        MerchantAccountEntry,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="ledger_entries",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        db_table = "ledger_entries"
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(amount_cents=0),
                name="ledger_entry_amount_non_zero",
            ),
        ]
        indexes = [
            models.Index(
                fields=["merchant", "created_at"], name="idx_ledger_merchant_created"
            ),
            models.Index(fields=["related_payment"], name="idx_ledger_payment"),
        ]
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.merchant_id} {self.amount_cents:+d} ({self.reason})"

    def save(self, *args, **kwargs):
        """Override save to prevent updates."""
        if not self._state.adding:
            raise ValueError(
                "LedgerEntry rows are append-only. Updates are not allowed."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """Override delete to prevent deletion."""
        raise ValueError("LedgerEntry rows are append-only. Deletions are not allowed.")
