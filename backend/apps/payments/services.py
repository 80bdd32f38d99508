"""
Payment services - all mutations flow through this layer.

Rules:
- Status flips are conditional updates on (status, version) inside
  transaction.atomic, with the row locked by select_for_update
- Balance changes only through apps.ledger.services.apply_balance_delta,
  in the same transaction as the status flip
- Intake runs under the idempotency guard
- Audit entries and notifications are scheduled after commit
- No direct model.save() from views
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from core.exceptions import (
    InsufficientFundsError,
    NotFoundError,
    PaymentStatusError,
    PermissionDeniedError,
    ValidationError,
)
from core.money import MAX_AMOUNT_CENTS, display_amount
from core.notifications import notify_on_commit
from apps.audit.services import record_on_commit
from apps.ledger.models import Merchant
from apps.ledger.services import apply_balance_delta
from apps.payments.idempotency import run_idempotent
from apps.payments.models import Customer, PaymentRequest
from apps.payments.providers import DepositIntent, get_adapter, normalize_provider_status
from apps.payments.references import (
    generate_customer_id,
    generate_reference_code,
    generate_unique_reference,
    unused_reference,
)
from apps.payments.state_machine import (
    DECISION_STATUSES,
    OPEN_STATUSES,
    PAYMENT_TYPES,
    is_terminal_state,
    validate_transition,
)
from apps.payments.versioning import version_locked_update

logger = logging.getLogger(__name__)

# Marker for "leave bank_account_id as it is"
UNSET = object()


@dataclass
class StatusChangeResult:
    payment: PaymentRequest
    balance_delta: int


def _normalize_amount(value):
    """
    Validate an amount override; None means no override.

    Fractional values are rounded half up to whole minor units.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise PaymentStatusError(PaymentStatusError.AMOUNT_INVALID, "Invalid amount")
    if isinstance(value, int):
        amount = value
    else:
        try:
            number = Decimal(str(value))
            if not number.is_finite():
                raise InvalidOperation
            amount = int(number.quantize(Decimal(1), rounding=ROUND_HALF_UP))
        except (InvalidOperation, ValueError):
            raise PaymentStatusError(PaymentStatusError.AMOUNT_INVALID, "Invalid amount")
    if amount <= 0:
        raise PaymentStatusError(
            PaymentStatusError.AMOUNT_INVALID,
            "Amount must be greater than zero",
            {"amount_cents": amount},
        )
    if amount > MAX_AMOUNT_CENTS:
        raise PaymentStatusError(
            PaymentStatusError.AMOUNT_INVALID,
            "Amount is out of range",
            {"amount_cents": str(amount)},
        )
    return amount


def _lock_payment(payment_id, **filters):
    try:
        return PaymentRequest.objects.select_for_update().get(id=payment_id, **filters)
    except (PaymentRequest.DoesNotExist, DjangoValidationError):
        raise PaymentStatusError(
            PaymentStatusError.NOT_FOUND,
            "Payment not found",
            {"payment_id": str(payment_id)},
        )


def change_status(
    payment_type,
    *,
    payment_id,
    target_status,
    actor_id=None,
    amount_cents_override=None,
    comment=None,
    bank_account_id=UNSET,
):
    """
    Move a PENDING or SUBMITTED payment to APPROVED or REJECTED.

    The status flip, amount revision, ledger entry and balance change commit
    together or not at all.

    Args:
        payment_type: 'DEPOSIT' or 'WITHDRAWAL'; must match the stored type
        payment_id: PaymentRequest identifier
        target_status: 'APPROVED' or 'REJECTED'
        actor_id: Staff user making the decision (None for provider callbacks)
        amount_cents_override: Settled amount when it differs from the request
        comment: Required for rejections and for amount changes
        bank_account_id: Account a withdrawal is paid from (left as is if UNSET)

    Returns:
        StatusChangeResult: refreshed payment and the applied balance delta

    Raises:
        PaymentStatusError: NOT_FOUND, TYPE_MISMATCH, INVALID_STATE,
            COMMENT_REQUIRED, AMOUNT_INVALID or INSUFFICIENT_FUNDS
    """
    override = _normalize_amount(amount_cents_override)

    if payment_type not in PAYMENT_TYPES:
        raise PaymentStatusError(
            PaymentStatusError.TYPE_MISMATCH,
            f"Unknown payment type: {payment_type}",
            {"payment_type": payment_type},
        )
    if target_status not in DECISION_STATUSES:
        raise PaymentStatusError(
            PaymentStatusError.INVALID_STATE,
            f"Cannot change status to {target_status}",
            {"target_status": target_status},
        )

    comment = (comment or "").strip()

    with transaction.atomic():
        payment = _lock_payment(payment_id)

        if payment.type != payment_type:
            raise PaymentStatusError(
                PaymentStatusError.TYPE_MISMATCH,
                f"Payment is a {payment.type.lower()}, not a {payment_type.lower()}",
                {"payment_id": str(payment.id), "type": payment.type},
            )

        validate_transition(payment.status, target_status)
        previous_status = payment.status

        updates = {
            "status": target_status,
            "processed_at": timezone.now(),
            "processed_by_id": actor_id,
            "notes": comment or payment.notes,
        }
        if bank_account_id is not UNSET:
            updates["bank_account_id"] = bank_account_id

        balance_delta = 0
        if target_status == "REJECTED":
            if not comment:
                raise PaymentStatusError(
                    PaymentStatusError.COMMENT_REQUIRED,
                    "A comment is required when rejecting a payment",
                )
            updates["rejected_reason"] = comment
        else:
            effective_amount = override if override is not None else payment.amount_cents
            if effective_amount != payment.amount_cents and not comment:
                raise PaymentStatusError(
                    PaymentStatusError.COMMENT_REQUIRED,
                    "A comment is required when adjusting the amount",
                    {
                        "original_amount_cents": payment.amount_cents,
                        "amount_cents": effective_amount,
                    },
                )
            updates["amount_cents"] = effective_amount
            updates["rejected_reason"] = None
            balance_delta = (
                effective_amount if payment.type == "DEPOSIT" else -effective_amount
            )

        version_locked_update(
            PaymentRequest.objects.filter(id=payment.id),
            payment.version,
            OPEN_STATUSES,
            **updates,
        )

        if balance_delta:
            label = "Deposit" if payment.type == "DEPOSIT" else "Withdrawal"
            try:
                apply_balance_delta(
                    payment.merchant_id,
                    balance_delta,
                    f"{label} {payment.reference_code}",
                    related_payment_id=payment.id,
                )
            except InsufficientFundsError as exc:
                raise PaymentStatusError(
                    PaymentStatusError.INSUFFICIENT_FUNDS,
                    "Insufficient balance",
                    exc.details,
                )

        payment.refresh_from_db()

    logger.info(
        "payment_status_changed",
        extra={
            "operation": "CHANGE_PAYMENT_STATUS",
            "entity_id": str(payment.id),
            "from_status": previous_status,
            "to_status": payment.status,
            "amount_cents": payment.amount_cents,
            "balance_delta": balance_delta,
            "actor_id": str(actor_id) if actor_id else None,
        },
    )
    return StatusChangeResult(payment=payment, balance_delta=balance_delta)


def transition_payment(
    payment_type,
    *,
    payment_id,
    target_status,
    actor_id=None,
    amount_cents_override=None,
    comment=None,
    bank_account_id=UNSET,
):
    """
    change_status plus the post-commit audit entry and staff notification.

    Used by the staff endpoint and by provider callbacks. Audit and
    notification failures never undo the status change.
    """
    result = change_status(
        payment_type,
        payment_id=payment_id,
        target_status=target_status,
        actor_id=actor_id,
        amount_cents_override=amount_cents_override,
        comment=comment,
        bank_account_id=bank_account_id,
    )
    payment = result.payment

    record_on_commit(
        actor_id=actor_id,
        action="payment.status.change",
        target_type="PaymentRequest",
        target_id=payment.id,
        metadata={
            "status": payment.status,
            "type": payment.type,
            "amount_cents": payment.amount_cents,
            "balance_delta": result.balance_delta,
            "comment": payment.notes,
        },
    )
    notify_on_commit(
        f"{payment.type.title()} {payment.reference_code} {payment.status.lower()}: "
        f"{display_amount(payment.amount_cents, payment.currency)} {payment.currency}"
    )
    return result


def apply_provider_outcome(payment_id, provider_status, *, amount_cents=None):
    """
    Feed a provider-reported status into the transition engine.

    Returns the StatusChangeResult, or None when the status is not final yet
    or the payment was already decided.
    """
    target_status = normalize_provider_status(provider_status)
    if target_status is None:
        return None

    payment = PaymentRequest.objects.filter(id=payment_id).first()
    if payment is None:
        raise PaymentStatusError(
            PaymentStatusError.NOT_FOUND,
            "Payment not found",
            {"payment_id": str(payment_id)},
        )

    comment = None
    if target_status == "REJECTED":
        comment = f"Provider reported {provider_status}"
    elif amount_cents is not None and amount_cents != payment.amount_cents:
        comment = f"Provider settled {amount_cents} instead of {payment.amount_cents}"

    try:
        return transition_payment(
            payment.type,
            payment_id=payment.id,
            target_status=target_status,
            amount_cents_override=amount_cents,
            comment=comment,
        )
    except PaymentStatusError as exc:
        if exc.code != PaymentStatusError.INVALID_STATE:
            raise
        payment.refresh_from_db()
        if not is_terminal_state(payment.status):
            raise
        logger.info(
            "provider_outcome_already_processed",
            extra={
                "operation": "APPLY_PROVIDER_OUTCOME",
                "entity_id": str(payment.id),
                "status": payment.status,
                "provider_status": provider_status,
            },
        )
        return None


# Intake


def _validate_intake(amount_cents, currency):
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise ValidationError("amount_cents must be an integer number of minor units")
    if amount_cents <= 0:
        raise ValidationError("amount_cents must be a positive integer")
    if amount_cents > MAX_AMOUNT_CENTS:
        raise ValidationError("amount_cents is out of range")
    currency = (currency or "").strip().upper()
    if not (3 <= len(currency) <= 4 and currency.isalpha()):
        raise ValidationError("currency must be a 3 or 4 letter code")
    return currency


def _active_merchant(merchant_id):
    try:
        merchant = Merchant.objects.get(id=merchant_id)
    except (Merchant.DoesNotExist, DjangoValidationError):
        raise NotFoundError(f"Merchant {merchant_id} does not exist")
    if not merchant.is_active:
        raise PermissionDeniedError("Merchant is not active")
    return merchant


def _customer_for(subject):
    customer, _ = Customer.objects.get_or_create(
        subject=subject,
        defaults={
            "public_id": lambda: unused_reference(
                generate_customer_id,
                lambda value: Customer.objects.filter(public_id=value).exists(),
            )
        },
    )
    return customer


def _iso_text(value):
    # Adapters may hand back a datetime; details_json only stores JSON types
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def _new_reference_code():
    return unused_reference(
        generate_reference_code,
        lambda value: PaymentRequest.objects.filter(reference_code=value).exists(),
    )


def _payment_payload(payment, instructions=None):
    return {
        "id": payment.id,
        "type": payment.type,
        "status": payment.status,
        "referenceCode": payment.reference_code,
        "uniqueReference": payment.unique_reference,
        "amountCents": payment.amount_cents,
        "currency": payment.currency,
        "customerId": payment.customer.public_id if payment.customer_id else None,
        "instructions": instructions,
        "createdAt": payment.created_at,
    }


def create_deposit_request(
    merchant_id,
    *,
    subject,
    amount_cents,
    currency,
    method_code,
    details=None,
    bank_account_id=None,
    idempotency_key=None,
):
    """
    Create a PENDING deposit for a merchant's end user.

    Retries with the same idempotency key return the first result, including
    the same referenceCode, without creating another row.

    Returns:
        dict: id, referenceCode, uniqueReference, status, amountCents,
        currency, customerId, instructions
    """
    currency = _validate_intake(amount_cents, currency)
    subject = (subject or "").strip()
    if not subject:
        raise ValidationError("subject must be non-empty")
    method_code = (method_code or "").strip().upper() or None

    def work():
        with transaction.atomic():
            merchant = _active_merchant(merchant_id)
            customer = _customer_for(subject)
            reference_code = _new_reference_code()
            stored_details = dict(details or {})

            instructions = None
            adapter = get_adapter(method_code)
            if adapter is not None:
                intent = adapter.create_deposit_intent(
                    DepositIntent(
                        reference_code=reference_code,
                        customer_public_id=customer.public_id,
                        merchant_id=str(merchant.id),
                        method_code=method_code,
                        amount_cents=amount_cents,
                        currency=currency,
                        details=stored_details,
                    )
                )
                instructions = intent.instructions
                stored_details["provider"] = {
                    "name": adapter.name,
                    "paymentId": intent.provider_payment_id,
                    "status": intent.status,
                    "expiresAt": _iso_text(intent.expires_at),
                }

            payment = PaymentRequest.objects.create(
                type="DEPOSIT",
                amount_cents=amount_cents,
                currency=currency,
                reference_code=reference_code,
                unique_reference=generate_unique_reference(),
                merchant=merchant,
                customer=customer,
                bank_account_id=bank_account_id,
                method_code=method_code,
                details_json=stored_details,
            )

            logger.info(
                "deposit_request_created",
                extra={
                    "operation": "CREATE_DEPOSIT_REQUEST",
                    "entity_id": str(payment.id),
                    "merchant_id": str(merchant.id),
                    "amount_cents": amount_cents,
                },
            )
            notify_on_commit(
                f"New deposit {payment.reference_code} for {merchant.name}: "
                f"{display_amount(amount_cents, currency)} {currency}"
            )
            return _payment_payload(payment, instructions)

    return run_idempotent(f"deposit:{merchant_id}:{subject}", idempotency_key, work)


def create_withdrawal_request(
    merchant_id,
    *,
    subject,
    amount_cents,
    currency,
    details,
    method_code=None,
    idempotency_key=None,
):
    """
    Create a PENDING withdrawal to the destination given in details.

    The balance is checked when the withdrawal is approved, not here.
    """
    currency = _validate_intake(amount_cents, currency)
    subject = (subject or "").strip()
    if not subject:
        raise ValidationError("subject must be non-empty")
    if not details:
        raise ValidationError("Destination details are required for a withdrawal")
    method_code = (method_code or "").strip().upper() or None

    def work():
        with transaction.atomic():
            merchant = _active_merchant(merchant_id)
            customer = _customer_for(subject)
            payment = PaymentRequest.objects.create(
                type="WITHDRAWAL",
                amount_cents=amount_cents,
                currency=currency,
                reference_code=_new_reference_code(),
                unique_reference=generate_unique_reference(),
                merchant=merchant,
                customer=customer,
                method_code=method_code,
                details_json=dict(details),
            )

            logger.info(
                "withdrawal_request_created",
                extra={
                    "operation": "CREATE_WITHDRAWAL_REQUEST",
                    "entity_id": str(payment.id),
                    "merchant_id": str(merchant.id),
                    "amount_cents": amount_cents,
                },
            )
            notify_on_commit(
                f"New withdrawal {payment.reference_code} for {merchant.name}: "
                f"{display_amount(amount_cents, currency)} {currency}"
            )
            return _payment_payload(payment)

    return run_idempotent(f"withdrawal:{merchant_id}:{subject}", idempotency_key, work)


TEST_PAYER = {
    "kind": "BANK_TRANSFER",
    "payer": {"holderName": "Test Payer", "accountNo": "000000000", "bankName": "Test Bank"},
}
TEST_DESTINATION = {
    "kind": "WITHDRAWAL",
    "destination": {
        "holderName": "Test Recipient",
        "accountNo": "000000000",
        "bankName": "Test Bank",
    },
}


def create_test_payment(
    merchant_id, *, payment_type, amount_cents, currency, actor_id, idempotency_key=None
):
    """PENDING payment with canned details, for merchants trying the flow end to end."""
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError("type must be DEPOSIT or WITHDRAWAL")
    currency = _validate_intake(amount_cents, currency)

    def work():
        with transaction.atomic():
            merchant = _active_merchant(merchant_id)
            customer = _customer_for(f"test:{merchant.id}")
            details = TEST_PAYER if payment_type == "DEPOSIT" else TEST_DESTINATION
            payment = PaymentRequest.objects.create(
                type=payment_type,
                amount_cents=amount_cents,
                currency=currency,
                reference_code=_new_reference_code(),
                unique_reference=generate_unique_reference(),
                merchant=merchant,
                customer=customer,
                details_json=dict(details),
                notes="Test payment",
            )
            record_on_commit(
                actor_id=actor_id,
                action="payment.test.create",
                target_type="PaymentRequest",
                target_id=payment.id,
                metadata={"type": payment_type, "amount_cents": amount_cents},
            )
            return _payment_payload(payment)

    return run_idempotent(
        f"test-payment:{merchant_id}:{payment_type}", idempotency_key, work
    )


def attach_evidence(payment_id, *, merchant_id, receipt_reference):
    """
    Attach a deposit receipt; PENDING moves to SUBMITTED.

    Further receipts on a SUBMITTED deposit replace the reference and keep
    the status.
    """
    receipt_reference = (receipt_reference or "").strip()
    if not receipt_reference:
        raise ValidationError("receipt_reference must be non-empty")

    with transaction.atomic():
        payment = _lock_payment(payment_id, merchant_id=merchant_id)
        if payment.type != "DEPOSIT":
            raise PaymentStatusError(
                PaymentStatusError.TYPE_MISMATCH,
                "Evidence can only be attached to deposits",
                {"payment_id": str(payment.id), "type": payment.type},
            )
        validate_transition(payment.status, "SUBMITTED")

        version_locked_update(
            PaymentRequest.objects.filter(id=payment.id),
            payment.version,
            OPEN_STATUSES,
            status="SUBMITTED",
            receipt_reference=receipt_reference,
        )
        payment.refresh_from_db()

        notify_on_commit(
            f"Deposit {payment.reference_code} submitted with evidence: "
            f"{display_amount(payment.amount_cents, payment.currency)} {payment.currency}"
        )

    logger.info(
        "payment_evidence_attached",
        extra={"operation": "ATTACH_EVIDENCE", "entity_id": str(payment.id)},
    )
    return payment


def list_payments(merchant_id=None, payment_type=None, status=None):
    """Payments newest first, optionally filtered."""
    queryset = PaymentRequest.objects.select_related(
        "merchant", "customer", "processed_by"
    ).order_by("-created_at")
    if merchant_id:
        queryset = queryset.filter(merchant_id=merchant_id)
    if payment_type:
        if payment_type not in PAYMENT_TYPES:
            raise ValidationError("type must be DEPOSIT or WITHDRAWAL")
        queryset = queryset.filter(type=payment_type)
    if status:
        queryset = queryset.filter(status=status)
    return queryset
