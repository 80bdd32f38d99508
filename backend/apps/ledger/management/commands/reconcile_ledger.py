"""
Ledger reconciliation management command.

Verifies balance conservation and payment/ledger consistency.
Run: python manage.py reconcile_ledger
"""

from django.core.management.base import BaseCommand, CommandError
from django.db.models import Count, F, Q

from apps.ledger.models import LedgerEntry, Merchant
from apps.ledger.services import balance_discrepancies
from apps.payments.models import PaymentRequest


class Command(BaseCommand):
    help = "Reconcile merchant balances against the ledger"

    def handle(self, *args, **options):
        self.stdout.write("Starting ledger reconciliation...")

        errors = []

        # Check 1: balance == sum of ledger entries
        self.stdout.write("\n[1] Checking balance conservation...")
        discrepancies = balance_discrepancies()
        if discrepancies:
            errors.append(f"Found {len(discrepancies)} merchants with balance drift")
            for row in discrepancies[:10]:
                self.stdout.write(
                    self.style.ERROR(
                        f"  Merchant {row['name']} ({row['merchant_id']}): "
                        f"balance={row['balance_cents']}, "
                        f"ledger={row['ledger_total_cents']}"
                    )
                )
        else:
            self.stdout.write(self.style.SUCCESS("  OK balances match ledger totals"))

        # Check 2: no negative balances
        self.stdout.write("\n[2] Checking for negative balances...")
        negative = Merchant.objects.filter(balance_cents__lt=0)
        if negative.exists():
            errors.append(f"Found {negative.count()} merchants with negative balance")
        else:
            self.stdout.write(self.style.SUCCESS("  OK no negative balances"))

        # Check 3: approved payments carry exactly one ledger entry, others none
        self.stdout.write("\n[3] Checking payment ledger entries...")
        payments = PaymentRequest.objects.annotate(entries=Count("ledger_entries"))
        missing = payments.filter(status="APPROVED").exclude(entries=1)
        stray = payments.exclude(status="APPROVED").filter(entries__gt=0)
        if missing.exists():
            errors.append(
                f"Found {missing.count()} approved payments without exactly one "
                "ledger entry"
            )
        if stray.exists():
            errors.append(
                f"Found {stray.count()} undecided or rejected payments with ledger "
                "entries"
            )
        if not (missing.exists() or stray.exists()):
            self.stdout.write(self.style.SUCCESS("  OK payment entries consistent"))

        # Check 4: entry amount matches the settled payment amount and direction
        self.stdout.write("\n[4] Checking ledger entry amounts...")
        mismatched = (
            LedgerEntry.objects.filter(related_payment__isnull=False)
            .select_related("related_payment")
            .exclude(
                Q(
                    related_payment__type="DEPOSIT",
                    amount_cents=F("related_payment__amount_cents"),
                )
                | Q(
                    related_payment__type="WITHDRAWAL",
                    amount_cents=-F("related_payment__amount_cents"),
                )
            )
        )
        if mismatched.exists():
            errors.append(
                f"Found {mismatched.count()} ledger entries not matching their payment"
            )
        else:
            self.stdout.write(self.style.SUCCESS("  OK entry amounts match payments"))

        self.stdout.write("\n" + "=" * 50)
        if errors:
            for error in errors:
                self.stdout.write(self.style.ERROR(f"  - {error}"))
            raise CommandError(f"Reconciliation failed with {len(errors)} errors")

        self.stdout.write(self.style.SUCCESS("\nRECONCILIATION PASSED"))
        self.stdout.write("Every balance is explained by its ledger.")
