"""
Ledger services - the only code allowed to move a merchant balance.

Rules:
- Balance changes are a single conditional UPDATE with an F() increment,
  never a read-modify-write in Python
- Every balance change appends exactly one LedgerEntry in the same transaction
- apply_balance_delta runs inside the caller's transaction; it never opens one
- Audit entries and notifications run after commit, best effort
"""

import logging

from django.db import models, transaction
from django.db.models import F, Max, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from core.exceptions import (
    InsufficientFundsError,
    NotFoundError,
    ValidationError,
)
from core.money import MAX_AMOUNT_CENTS, display_amount
from core.notifications import notify_on_commit
from apps.audit.services import record_on_commit
from apps.ledger.models import LedgerEntry, Merchant, MerchantAccountEntry

logger = logging.getLogger(__name__)

ACCOUNT_ENTRY_TYPES = ("SETTLEMENT", "TOPUP")


def _require_int(value, field):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer number of minor units")
    if abs(value) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} is out of range")
    return value


def apply_balance_delta(
    merchant_id, amount_cents_delta, reason, related_payment_id=None, *, account_entry=None
):
    """
    Apply a signed balance change and append the explaining ledger entry.

    Args:
        merchant_id: Merchant identifier
        amount_cents_delta: Signed non-zero integer (positive credits the merchant)
        reason: Free-text / structured reason stored on the entry
        related_payment_id: PaymentRequest that caused the change (optional)
        account_entry: MerchantAccountEntry that caused the change (optional)

    Returns:
        LedgerEntry: The appended entry. The new balance is deliberately not
        returned; re-read the merchant if you need it.

    Raises:
        RuntimeError: If called outside transaction.atomic()
        ValidationError: If the delta is zero or not an integer
        NotFoundError: If the merchant does not exist
        InsufficientFundsError: If a debit would make the balance negative
    """
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("apply_balance_delta must run inside transaction.atomic()")

    delta = _require_int(amount_cents_delta, "amount_cents_delta")
    if delta == 0:
        raise ValidationError("amount_cents_delta must be non-zero")
    if not reason or not str(reason).strip():
        raise ValidationError("reason must be non-empty")

    queryset = Merchant.objects.filter(id=merchant_id)
    if delta < 0:
        queryset = queryset.filter(balance_cents__gte=-delta)

    updated = queryset.update(
        balance_cents=F("balance_cents") + delta, updated_at=timezone.now()
    )
    if updated == 0:
        if not Merchant.objects.filter(id=merchant_id).exists():
            raise NotFoundError(f"Merchant {merchant_id} does not exist")
        raise InsufficientFundsError(
            "Insufficient balance",
            {"merchant_id": str(merchant_id), "amount_cents_delta": delta},
        )

    entry = LedgerEntry.objects.create(
        merchant_id=merchant_id,
        amount_cents=delta,
        reason=str(reason).strip()[:255],
        related_payment_id=related_payment_id,
        account_entry=account_entry,
    )

    logger.info(
        "ledger_entry_appended",
        extra={
            "operation": "APPLY_BALANCE_DELTA",
            "entity_id": str(entry.id),
            "merchant_id": str(merchant_id),
            "amount_cents": delta,
            "related_payment_id": str(related_payment_id) if related_payment_id else None,
        },
    )
    return entry


def create_account_entry(
    merchant_id,
    entry_type,
    amount_cents,
    actor_id,
    method=None,
    note=None,
    receipt_reference=None,
):
    """
    Record a manual SETTLEMENT (debit) or TOPUP (credit) for a merchant.

    Thin wrapper over apply_balance_delta: the MerchantAccountEntry, the
    LedgerEntry and the balance change commit together or not at all.

    Raises:
        ValidationError: Bad type or non-positive amount
        NotFoundError: Unknown merchant
        InsufficientFundsError: Settlement larger than the current balance
    """
    if entry_type not in ACCOUNT_ENTRY_TYPES:
        raise ValidationError("type must be SETTLEMENT or TOPUP")
    amount = _require_int(amount_cents, "amount_cents")
    if amount <= 0:
        raise ValidationError("amount_cents must be a positive integer")

    method = (method or "").strip() or None
    note = (note or "").strip() or None

    with transaction.atomic():
        try:
            merchant = Merchant.objects.get(id=merchant_id)
        except Merchant.DoesNotExist:
            raise NotFoundError(f"Merchant {merchant_id} does not exist")

        entry = MerchantAccountEntry.objects.create(
            merchant=merchant,
            type=entry_type,
            amount_cents=amount,
            method=method,
            note=note,
            receipt_reference=(receipt_reference or "").strip() or None,
            created_by_id=actor_id,
        )

        label = "Topup" if entry_type == "TOPUP" else "Settlement"
        reason = f"{label} via {method}" if method else label
        delta = amount if entry_type == "TOPUP" else -amount
        apply_balance_delta(merchant.id, delta, reason, account_entry=entry)

        record_on_commit(
            actor_id=actor_id,
            action="merchant.account_entry.create",
            target_type="MerchantAccountEntry",
            target_id=entry.id,
            metadata={
                "merchant_id": str(merchant.id),
                "type": entry_type,
                "amount_cents": amount,
                "method": method,
            },
        )
        notify_on_commit(
            f"{label} recorded for {merchant.name}: "
            f"{display_amount(amount, merchant.default_currency)} "
            f"{merchant.default_currency}"
        )

    return entry


def list_merchant_balances():
    """Merchants with current balance, currency and last account activity."""
    merchants = Merchant.objects.annotate(
        last_entry_at=Max("account_entries__created_at")
    ).order_by("name")

    return [
        {
            "id": m.id,
            "name": m.name,
            "balanceCents": m.balance_cents,
            "currency": m.default_currency,
            "lastActivityAt": m.last_entry_at or m.updated_at,
        }
        for m in merchants
    ]


def list_account_entries(entry_type=None, merchant_id=None):
    """Manual account entries, newest first, optionally filtered."""
    queryset = MerchantAccountEntry.objects.select_related(
        "merchant", "created_by"
    ).order_by("-created_at")
    if entry_type:
        if entry_type not in ACCOUNT_ENTRY_TYPES:
            raise ValidationError("type must be SETTLEMENT or TOPUP")
        queryset = queryset.filter(type=entry_type)
    if merchant_id:
        queryset = queryset.filter(merchant_id=merchant_id)
    return queryset


def balance_discrepancies():
    """
    Merchants whose balance differs from the sum of their ledger entries.

    Returns a list of dicts; an empty list means balance conservation holds.
    """
    rows = Merchant.objects.annotate(
        ledger_total=Coalesce(
            Sum("ledger_entries__amount_cents"),
            Value(0),
            output_field=models.BigIntegerField(),
        )
    ).exclude(balance_cents=F("ledger_total"))

    return [
        {
            "merchant_id": m.id,
            "name": m.name,
            "balance_cents": m.balance_cents,
            "ledger_total_cents": m.ledger_total,
        }
        for m in rows
    ]
