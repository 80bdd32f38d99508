"""
State machine enforcement for PaymentRequest.

PENDING -> SUBMITTED            evidence attached (deposit intake)
SUBMITTED -> SUBMITTED          additional evidence, no status change
PENDING/SUBMITTED -> APPROVED   via the status transition engine
PENDING/SUBMITTED -> REJECTED   via the status transition engine
APPROVED, REJECTED              terminal

Raises PaymentStatusError(INVALID_STATE) for disallowed transitions.
"""

from core.exceptions import PaymentStatusError

PAYMENT_TYPES = ("DEPOSIT", "WITHDRAWAL")
STATUSES = ("PENDING", "SUBMITTED", "APPROVED", "REJECTED")

# Statuses the transition engine may leave
OPEN_STATUSES = ("PENDING", "SUBMITTED")
# Statuses the transition engine may enter
DECISION_STATUSES = ("APPROVED", "REJECTED")

PAYMENT_REQUEST_TRANSITIONS = {
    "PENDING": ["SUBMITTED", "APPROVED", "REJECTED"],
    "SUBMITTED": ["SUBMITTED", "APPROVED", "REJECTED"],
    "APPROVED": [],  # Terminal
    "REJECTED": [],  # Terminal
}


def validate_transition(current_status, target_status):
    """
    Validate a PaymentRequest state transition.

    Returns:
        bool: True if transition is allowed

    Raises:
        PaymentStatusError: INVALID_STATE if the transition is disallowed
    """
    if target_status not in PAYMENT_REQUEST_TRANSITIONS:
        raise PaymentStatusError(
            PaymentStatusError.INVALID_STATE,
            f"Unknown target status: {target_status}",
            {"target_status": target_status},
        )

    allowed_targets = PAYMENT_REQUEST_TRANSITIONS.get(current_status)
    if allowed_targets is None:
        raise PaymentStatusError(
            PaymentStatusError.INVALID_STATE,
            f"Invalid current status: {current_status}",
            {"current_status": current_status},
        )

    if not allowed_targets:
        raise PaymentStatusError(
            PaymentStatusError.INVALID_STATE,
            f"Payment already {current_status.lower()}",
            {"current_status": current_status, "target_status": target_status},
        )

    if target_status not in allowed_targets:
        raise PaymentStatusError(
            PaymentStatusError.INVALID_STATE,
            f"Cannot transition from {current_status} to {target_status}",
            {
                "current_status": current_status,
                "target_status": target_status,
                "allowed_transitions": allowed_targets,
            },
        )

    return True


def is_terminal_state(status):
    """Check if a state is terminal (no transitions allowed)."""
    return status in PAYMENT_REQUEST_TRANSITIONS and not PAYMENT_REQUEST_TRANSITIONS[status]
