"""
Minor-unit helpers for human-facing amounts (notifications, audit metadata).

Amounts are stored as integers in minor units. Zero-decimal currencies
store whole units.
"""

ZERO_DECIMAL_CURRENCIES = frozenset({"IDR", "JPY", "KRW"})

# Largest value a BigIntegerField column holds
MAX_AMOUNT_CENTS = 2**63 - 1


def is_zero_decimal(currency):
    return (currency or "").upper() in ZERO_DECIMAL_CURRENCIES


def display_amount(amount_cents, currency):
    """Render minor units as a grouped decimal string, e.g. 123456 AUD -> '1,234.56'."""
    amount_cents = int(amount_cents or 0)
    if is_zero_decimal(currency):
        return f"{amount_cents:,}"
    sign = "-" if amount_cents < 0 else ""
    whole, cents = divmod(abs(amount_cents), 100)
    return f"{sign}{whole:,}.{cents:02d}"
