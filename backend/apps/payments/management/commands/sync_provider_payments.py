"""
Poll providers for the outcome of open deposits.

Run: python manage.py sync_provider_payments [--limit N]
"""

import logging

from django.core.management.base import BaseCommand

from core.exceptions import DomainError
from apps.payments.models import PaymentRequest
from apps.payments.providers import get_adapter
from apps.payments.services import apply_provider_outcome
from apps.payments.state_machine import OPEN_STATUSES

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Apply provider-reported outcomes to open deposits"

    def add_arguments(self, parser):
        parser.add_argument("--limit", type=int, default=100)

    def handle(self, *args, **options):
        open_deposits = PaymentRequest.objects.filter(
            type="DEPOSIT",
            status__in=OPEN_STATUSES,
            details_json__has_key="provider",
        ).order_by("created_at")[: options["limit"]]

        checked = decided = failed = 0
        for payment in open_deposits:
            adapter = get_adapter(payment.method_code)
            if adapter is None:
                continue
            checked += 1
            provider_payment_id = payment.details_json["provider"].get("paymentId")
            provider_status = adapter.get_deposit_status(provider_payment_id)
            try:
                result = apply_provider_outcome(payment.id, provider_status)
            except DomainError as exc:
                failed += 1
                logger.warning(
                    "provider_outcome_failed",
                    extra={
                        "operation": "SYNC_PROVIDER_PAYMENTS",
                        "entity_id": str(payment.id),
                        "code": exc.code,
                    },
                )
                continue
            if result is not None:
                decided += 1

        self.stdout.write(
            self.style.SUCCESS(
                f"Checked {checked} deposits: {decided} decided, {failed} failed"
            )
        )
