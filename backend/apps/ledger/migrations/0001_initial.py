# Merchant and LedgerEntry. Foreign keys to payments and account entries
# are added in 0002 once those tables exist.

import uuid
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Merchant",
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
                ("name", models.CharField(max_length=255, unique=True)),
                ("balance_cents", models.BigIntegerField(default=0)),
                ("default_currency", models.CharField(default="AUD", max_length=4)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "merchants",
                "indexes": [
                    models.Index(fields=["is_active"], name="idx_merchant_active")
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(balance_cents__gte=0),
                        name="merchant_balance_non_negative",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="LedgerEntry",
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
                ("amount_cents", models.BigIntegerField()),
                ("reason", models.CharField(max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "merchant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ledger_entries",
                        to="ledger.merchant",
                    ),
                ),
            ],
            options={
                "db_table": "ledger_entries",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=~models.Q(amount_cents=0),
                        name="ledger_entry_amount_non_zero",
                    )
                ],
            },
        ),
        migrations.AddIndex(
            model_name="ledgerentry",
            index=models.Index(
                fields=["merchant", "created_at"], name="idx_ledger_merchant_created"
            ),
        ),
    ]
