"""
Reference generation for payment requests and customers.

Pure functions, no I/O: values can be computed before a row exists, so an
idempotent intake computes them exactly once. Short codes are for humans
(receipts, support calls); the unique reference is the reconciliation key
matched against bank statement lines.
"""

import secrets

DIGITS = "0123456789"
# Crockford base32: no I, L, O, U
CROCKFORD_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"

SHORT_BODY_LENGTH = 5
LONG_BODY_LENGTH = 6
# ~10% of short codes use the longer body, growing the space gradually
LONG_BODY_ODDS = 10

UNIQUE_REFERENCE_PREFIX = "UB"
UNIQUE_REFERENCE_LENGTH = 16  # 80 random bits

MAX_REFERENCE_ATTEMPTS = 8


def _random_string(alphabet, length):
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _prefixed_digits(prefix):
    length = LONG_BODY_LENGTH if secrets.randbelow(LONG_BODY_ODDS) == 0 else SHORT_BODY_LENGTH
    return f"{prefix}{_random_string(DIGITS, length)}"


def generate_reference_code(prefix="T"):
    """Short caller-facing transaction id, e.g. 'T04817' or 'T904117'."""
    return _prefixed_digits(prefix)


def generate_customer_id():
    """Public id for an end customer, e.g. 'U55012'."""
    return _prefixed_digits("U")


def generate_unique_reference():
    """Globally unique reconciliation reference, e.g. 'UB8F3K0Q2M7XZ5R1A9'."""
    return UNIQUE_REFERENCE_PREFIX + _random_string(
        CROCKFORD_ALPHABET, UNIQUE_REFERENCE_LENGTH
    )


def unused_reference(generator, is_taken, attempts=MAX_REFERENCE_ATTEMPTS):
    """
    Draw from generator until is_taken(value) is False.

    The unique constraint on the column stays the final arbiter; this only
    makes a collision at insert time vanishingly rare.
    """
    for _ in range(attempts):
        value = generator()
        if not is_taken(value):
            return value
    raise RuntimeError(f"No unused reference after {attempts} attempts")
