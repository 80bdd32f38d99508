"""
Payment domain models: Customer, PaymentRequest, IdempotencyRecord.

Status values and allowed transitions live in apps.payments.state_machine.
"""

import uuid
from django.db import models


class Customer(models.Model):
    """End user of a merchant, identified by the merchant-supplied subject."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    public_id = models.CharField(max_length=16, unique=True)
    subject = models.CharField(max_length=255, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "customers"

    def __str__(self):
        return self.public_id


class PaymentRequest(models.Model):
    """PaymentRequest model - one attempted deposit or withdrawal."""

    TYPE_CHOICES = [
        ("DEPOSIT", "Deposit"),
        ("WITHDRAWAL", "Withdrawal"),
    ]

    STATUS_CHOICES = [
        ("PENDING", "Pending"),
        ("SUBMITTED", "Submitted"),
        ("APPROVED", "Approved"),
        ("REJECTED", "Rejected"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="PENDING")
    amount_cents = models.BigIntegerField()
    currency = models.CharField(max_length=4)
    reference_code = models.CharField(max_length=16, unique=True)
    unique_reference = models.CharField(max_length=32, unique=True)
    merchant = models.ForeignKey(
        "ledger.Merchant", on_delete=models.PROTECT, related_name="payment_requests"
    )
    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payment_requests",
    )
    bank_account_id = models.UUIDField(null=True, blank=True)
    method_code = models.CharField(max_length=64, null=True, blank=True)
    # Opaque per-method payload; stored and returned unchanged
    details_json = models.JSONField(default=dict, blank=True)
    receipt_reference = models.CharField(max_length=512, null=True, blank=True)
    notes = models.TextField(null=True, blank=True)
    rejected_reason = models.TextField(null=True, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    processed_by = models.ForeignKey(
        "users.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="processed_payments",
    )
    version = models.IntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "payment_requests"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(type__in=["DEPOSIT", "WITHDRAWAL"]),
                name="valid_payment_type",
            ),
            models.CheckConstraint(
                condition=models.Q(
                    status__in=["PENDING", "SUBMITTED", "APPROVED", "REJECTED"]
                ),
                name="valid_payment_status",
            ),
            models.CheckConstraint(
                condition=models.Q(amount_cents__gt=0), name="payment_amount_positive"
            ),
            # processed_at NOT NULL when status is terminal
            models.CheckConstraint(
                condition=models.Q(status__in=["PENDING", "SUBMITTED"])
                | models.Q(processed_at__isnull=False),
                name="processed_at_set_when_terminal",
            ),
        ]
        indexes = [
            models.Index(fields=["merchant", "status"], name="idx_payment_merchant_status"),
            models.Index(fields=["type", "status"], name="idx_payment_type_status"),
            models.Index(fields=["created_at"], name="idx_payment_created"),
        ]

    def __str__(self):
        return f"{self.reference_code} {self.type} {self.amount_cents} {self.currency} ({self.status})"


class IdempotencyRecord(models.Model):
    """At-most-once envelope for one (scope, key) pair."""

    STATE_CHOICES = [
        ("IN_PROGRESS", "In progress"),
        ("COMPLETED", "Completed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    scope = models.CharField(max_length=255)
    key = models.CharField(max_length=255)
    state = models.CharField(max_length=20, choices=STATE_CHOICES, default="IN_PROGRESS")
    result_payload = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField()

    class Meta:
        db_table = "idempotency_records"
        constraints = [
            models.UniqueConstraint(
                fields=["scope", "key"], name="unique_idempotency_scope_key"
            ),
            models.CheckConstraint(
                condition=models.Q(state__in=["IN_PROGRESS", "COMPLETED"]),
                name="valid_idempotency_state",
            ),
        ]
        indexes = [
            models.Index(fields=["expires_at"], name="idx_idempotency_expires"),
        ]

    def __str__(self):
        return f"{self.scope}:{self.key} ({self.state})"
