# AuditLog: append-only record of back-office actions.

import uuid
import django.core.serializers.json
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("users", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AuditLog",
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
                ("action", models.CharField(max_length=100)),
                ("target_type", models.CharField(blank=True, max_length=50, null=True)),
                ("target_id", models.CharField(blank=True, max_length=64, null=True)),
                ("request_id", models.CharField(blank=True, max_length=64, null=True)),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        null=True,
                    ),
                ),
                ("occurred_at", models.DateTimeField(auto_now_add=True)),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="audit_actions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "audit_logs",
                "ordering": ["-occurred_at"],
                "indexes": [
                    models.Index(
                        fields=["target_type", "target_id"], name="idx_audit_target"
                    ),
                    models.Index(fields=["occurred_at"], name="idx_audit_occurred"),
                    models.Index(fields=["actor"], name="idx_audit_actor"),
                ],
            },
        ),
    ]
