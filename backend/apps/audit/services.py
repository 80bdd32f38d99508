"""
Audit service - best-effort sink for back-office actions.

All audit entries are append-only. Writing one never fails the caller:
errors are logged and swallowed, and writes are scheduled after the
financial transaction commits.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction

from core.middleware import get_current_request_id
from apps.audit.models import AuditLog

logger = logging.getLogger(__name__)


def record(actor_id, action, target_type=None, target_id=None, metadata=None):
    """
    Create an audit log entry.

    Args:
        actor_id: User identifier (None for system / provider actions)
        action: Short action key (e.g. 'payment.status.change')
        target_type: Type of affected entity (e.g. 'PaymentRequest')
        target_id: Identifier of affected entity
        metadata: JSON-serializable details (optional)

    Returns:
        AuditLog | None: Created entry, or None if the write failed
    """
    from apps.users.models import User

    try:
        actor = User.objects.filter(id=actor_id).first() if actor_id else None
        return AuditLog.objects.create(
            action=action,
            actor=actor,
            target_type=target_type,
            target_id=str(target_id) if target_id is not None else None,
            request_id=get_current_request_id(),
            metadata=metadata,
        )
    except (DatabaseError, DjangoValidationError, TypeError, ValueError):
        logger.warning(
            "audit_write_failed",
            exc_info=True,
            extra={"action": action, "target_id": str(target_id)},
        )
        return None


def record_on_commit(actor_id, action, target_type=None, target_id=None, metadata=None):
    """Schedule record(...) for after the surrounding transaction commits."""
    transaction.on_commit(
        lambda: record(actor_id, action, target_type, target_id, metadata),
        robust=True,
    )
