# Customer, PaymentRequest and IdempotencyRecord.

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("ledger", "0001_initial"),
        ("users", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("public_id", models.CharField(max_length=16, unique=True)),
                ("subject", models.CharField(max_length=255, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "customers",
            },
        ),
        migrations.CreateModel(
            name="IdempotencyRecord",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("scope", models.CharField(max_length=255)),
                ("key", models.CharField(max_length=255)),
                (
                    "state",
                    models.CharField(
                        choices=[
                            ("IN_PROGRESS", "In progress"),
                            ("COMPLETED", "Completed"),
                        ],
                        default="IN_PROGRESS",
                        max_length=20,
                    ),
                ),
                ("result_payload", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("expires_at", models.DateTimeField()),
            ],
            options={
                "db_table": "idempotency_records",
                "indexes": [
                    models.Index(fields=["expires_at"], name="idx_idempotency_expires")
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("scope", "key"), name="unique_idempotency_scope_key"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(state__in=["IN_PROGRESS", "COMPLETED"]),
                        name="valid_idempotency_state",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentRequest",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "type",
                    models.CharField(
                        choices=[("DEPOSIT", "Deposit"), ("WITHDRAWAL", "Withdrawal")],
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("SUBMITTED", "Submitted"),
                            ("APPROVED", "Approved"),
                            ("REJECTED", "Rejected"),
                        ],
                        default="PENDING",
                        max_length=20,
                    ),
                ),
                ("amount_cents", models.BigIntegerField()),
                ("currency", models.CharField(max_length=4)),
                ("reference_code", models.CharField(max_length=16, unique=True)),
                ("unique_reference", models.CharField(max_length=32, unique=True)),
                ("bank_account_id", models.UUIDField(blank=True, null=True)),
                ("method_code", models.CharField(blank=True, max_length=64, null=True)),
                ("details_json", models.JSONField(blank=True, default=dict)),
                (
                    "receipt_reference",
                    models.CharField(blank=True, max_length=512, null=True),
                ),
                ("notes", models.TextField(blank=True, null=True)),
                ("rejected_reason", models.TextField(blank=True, null=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("version", models.IntegerField(default=1)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "merchant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_requests",
                        to="ledger.merchant",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_requests",
                        to="payments.customer",
                    ),
                ),
                (
                    "processed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="processed_payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "payment_requests",
                "indexes": [
                    models.Index(
                        fields=["merchant", "status"], name="idx_payment_merchant_status"
                    ),
                    models.Index(fields=["type", "status"], name="idx_payment_type_status"),
                    models.Index(fields=["created_at"], name="idx_payment_created"),
                ],
                "constraints": [
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
                        condition=models.Q(amount_cents__gt=0),
                        name="payment_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(status__in=["PENDING", "SUBMITTED"])
                        | models.Q(processed_at__isnull=False),
                        name="processed_at_set_when_terminal",
                    ),
                ],
            },
        ),
    ]
