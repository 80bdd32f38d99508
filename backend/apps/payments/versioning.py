"""
Version locking helper for PaymentRequest state transitions.
Prevents concurrent modification corruption.
"""
from django.db.models import F
from django.utils import timezone

from core.exceptions import PaymentStatusError


def version_locked_update(queryset, current_version, allowed_statuses, **updates):
    """
    Perform a guarded update on queryset.

    The WHERE clause carries both the expected version and the statuses the
    row may be in, so a concurrent writer that got there first makes this
    update match zero rows.

    Args:
        queryset: Django QuerySet narrowed to one PaymentRequest
        current_version: Expected current version number
        allowed_statuses: Statuses the row must still be in
        **updates: Fields to update

    Returns:
        int: Number of rows updated (always 1)

    Raises:
        PaymentStatusError: INVALID_STATE on version or status mismatch
    """
    updated_count = queryset.filter(
        version=current_version, status__in=allowed_statuses
    ).update(
        **updates,
        version=F("version") + 1,
        updated_at=timezone.now(),
    )

    if updated_count == 0:
        raise PaymentStatusError(
            PaymentStatusError.INVALID_STATE,
            "Payment was modified concurrently",
            {"expected_version": current_version},
        )

    return updated_count
