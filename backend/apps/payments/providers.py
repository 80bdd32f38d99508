"""
Payment provider adapters.

A provider is asked for deposit instructions before the PaymentRequest row
is written, and later polled for the outcome. Concrete bank or PSP wire
formats live outside this repository; only the contract, the registry and a
manual bank transfer adapter ship here.
"""

import abc
from dataclasses import dataclass, field
from typing import Optional

from django.conf import settings


@dataclass(frozen=True)
class DepositIntent:
    reference_code: str
    customer_public_id: str
    merchant_id: str
    method_code: str
    amount_cents: int
    currency: str
    details: dict = field(default_factory=dict)


@dataclass(frozen=True)
class DepositIntentResult:
    provider_payment_id: str
    instructions: dict
    status: str = "pending"
    expires_at: Optional[str] = None


class ProviderAdapter(abc.ABC):
    """Contract every provider integration implements."""

    name = "abstract"

    @abc.abstractmethod
    def create_deposit_intent(self, intent):
        """Return a DepositIntentResult for a DepositIntent."""

    @abc.abstractmethod
    def get_deposit_status(self, provider_payment_id):
        """Return the provider's raw status string for a deposit."""


class ManualBankTransferAdapter(ProviderAdapter):
    """
    Customer pays by ordinary bank transfer quoting the reference code.

    Nothing is sent anywhere: instructions come from settings and the outcome
    is decided by staff, so polling always reports 'pending'.
    """

    name = "manual"

    def create_deposit_intent(self, intent):
        instructions = {
            "text": getattr(settings, "MANUAL_TRANSFER_INSTRUCTIONS", ""),
            "reference": intent.reference_code,
            "amountCents": intent.amount_cents,
            "currency": intent.currency,
        }
        return DepositIntentResult(
            provider_payment_id=f"manual-{intent.reference_code}",
            instructions=instructions,
        )

    def get_deposit_status(self, provider_payment_id):
        return "pending"


_registry = {}


def register_adapter(method_code, adapter):
    """Route deposits with this method code through adapter."""
    if not isinstance(adapter, ProviderAdapter):
        raise TypeError("adapter must be a ProviderAdapter")
    _registry[method_code.strip().upper()] = adapter


def unregister_adapter(method_code):
    _registry.pop(method_code.strip().upper(), None)


def get_adapter(method_code):
    """Adapter registered for method_code, or None for methods without one."""
    if not method_code:
        return None
    return _registry.get(method_code.strip().upper())


# Provider status vocabulary -> decision status; anything else is still open
PROVIDER_OUTCOMES = {
    "paid": "APPROVED",
    "completed": "APPROVED",
    "success": "APPROVED",
    "failed": "REJECTED",
    "expired": "REJECTED",
    "cancelled": "REJECTED",
}


def normalize_provider_status(provider_status):
    """Map a provider status to APPROVED / REJECTED, or None if still open."""
    return PROVIDER_OUTCOMES.get(str(provider_status or "").strip().lower())


register_adapter("BANK_TRANSFER", ManualBankTransferAdapter())
