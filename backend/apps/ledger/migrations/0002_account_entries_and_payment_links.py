# MerchantAccountEntry plus the LedgerEntry links to payments and account
# entries, which need the payments and users tables.

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    dependencies = [
        ("ledger", "0001_initial"),
        ("payments", "0001_initial"),
        ("users", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="MerchantAccountEntry",
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
                        choices=[("SETTLEMENT", "Settlement"), ("TOPUP", "Top-up")],
                        max_length=20,
                    ),
                ),
                ("amount_cents", models.BigIntegerField()),
                ("method", models.CharField(blank=True, max_length=100, null=True)),
                ("note", models.TextField(blank=True, null=True)),
                (
                    "receipt_reference",
                    models.CharField(blank=True, max_length=512, null=True),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "merchant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="account_entries",
                        to="ledger.merchant",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="account_entries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "merchant_account_entries",
                "indexes": [
                    models.Index(
                        fields=["merchant", "created_at"], name="idx_acct_entry_merchant"
                    ),
                    models.Index(fields=["type"], name="idx_acct_entry_type"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(type__in=["SETTLEMENT", "TOPUP"]),
                        name="valid_account_entry_type",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(amount_cents__gt=0),
                        name="account_entry_amount_positive",
                    ),
                ],
            },
        ),
        migrations.AddField(
            model_name="ledgerentry",
            name="related_payment",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="ledger_entries",
                to="payments.paymentrequest",
            ),
        ),
        migrations.AddField(
            model_name="ledgerentry",
            name="account_entry",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="ledger_entries",
                to="ledger.merchantaccountentry",
            ),
        ),
        migrations.AddIndex(
            model_name="ledgerentry",
            index=models.Index(fields=["related_payment"], name="idx_ledger_payment"),
        ),
    ]
