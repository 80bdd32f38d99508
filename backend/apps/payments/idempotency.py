"""
Idempotency guard - run a unit of work at most once per (scope, key).

The IN_PROGRESS claim is inserted inside the same transaction as the work,
so the (scope, key) unique constraint decides the single winner and a failed
execution rolls its claim back with everything else. Results are stored as
JSON text and every caller, the winner included, gets the decoded payload.
"""

import json
import logging
import time
from datetime import timedelta

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import IntegrityError, OperationalError, connection, transaction
from django.utils import timezone

from core.exceptions import IdempotencyInProgressError
from apps.payments.models import IdempotencyRecord

logger = logging.getLogger(__name__)

_LOST = object()


def _settings_value(name, override, default):
    if override is not None:
        return override
    return getattr(settings, name, default)


def _decode(record):
    if record.result_payload is None:
        return None
    return json.loads(record.result_payload)


def _bound_lock_wait(wait_timeout):
    """Make a blocked claim insert give up after wait_timeout (PostgreSQL only)."""
    if connection.vendor == "postgresql":
        with connection.cursor() as cursor:
            cursor.execute("SET LOCAL lock_timeout = %s", [f"{int(wait_timeout * 1000)}ms"])


def _reset_lock_wait():
    if connection.vendor == "postgresql":
        with connection.cursor() as cursor:
            cursor.execute("SET LOCAL lock_timeout TO DEFAULT")


def _in_progress_error(scope, key):
    return IdempotencyInProgressError(
        "A request with this idempotency key is still being processed",
        {"scope": scope, "key": key},
    )


def _claim_and_run(scope, key, work, ttl_seconds, wait_timeout):
    with transaction.atomic():
        try:
            with transaction.atomic():
                _bound_lock_wait(wait_timeout)
                record = IdempotencyRecord.objects.create(
                    scope=scope,
                    key=key,
                    state="IN_PROGRESS",
                    expires_at=timezone.now() + timedelta(seconds=ttl_seconds),
                )
                _reset_lock_wait()
        except IntegrityError:
            return _LOST
        except OperationalError:
            # lock_timeout: the winner has not committed yet
            raise _in_progress_error(scope, key)

        result = work()
        payload = json.dumps(result, cls=DjangoJSONEncoder)

        IdempotencyRecord.objects.filter(id=record.id).update(
            state="COMPLETED",
            result_payload=payload,
            expires_at=timezone.now() + timedelta(seconds=ttl_seconds),
        )

    logger.info(
        "idempotent_work_completed",
        extra={"operation": "RUN_IDEMPOTENT", "scope": scope, "entity_id": str(record.id)},
    )
    return json.loads(payload)


def run_idempotent(scope, key, work, *, ttl_seconds=None, wait_timeout=None, poll_interval=None):
    """
    Execute work() at most once per (scope, key) and return its result.

    Args:
        scope: Namespace of the key, e.g. 'deposit:<merchant_id>:<subject>'
        key: Caller-supplied idempotency key; empty means no deduplication
        work: Zero-argument callable returning a JSON-serializable value
        ttl_seconds: How long a completed result is replayed
        wait_timeout: How long a concurrent caller waits for the winner
        poll_interval: Sleep between re-reads while waiting

    Returns:
        The result of work(), JSON-decoded; replays return the stored result
        without calling work().

    Raises:
        IdempotencyInProgressError: The winner did not finish within wait_timeout
        Whatever work() raises; failures are never stored
    """
    if not key:
        return work()

    ttl_seconds = _settings_value("IDEMPOTENCY_TTL_SECONDS", ttl_seconds, 86400)
    wait_timeout = _settings_value("IDEMPOTENCY_WAIT_TIMEOUT_SECONDS", wait_timeout, 5)
    poll_interval = _settings_value("IDEMPOTENCY_POLL_INTERVAL_SECONDS", poll_interval, 0.1)

    deadline = time.monotonic() + wait_timeout

    while True:
        record = IdempotencyRecord.objects.filter(scope=scope, key=key).first()

        if record is not None and record.expires_at <= timezone.now():
            # Conditional so a concurrent fresh claim is never removed
            IdempotencyRecord.objects.filter(
                id=record.id, expires_at__lte=timezone.now()
            ).delete()
            logger.info(
                "idempotency_record_expired",
                extra={"operation": "RUN_IDEMPOTENT", "scope": scope, "entity_id": str(record.id)},
            )
            continue

        if record is not None and record.state == "COMPLETED":
            logger.info(
                "idempotent_replay",
                extra={"operation": "RUN_IDEMPOTENT", "scope": scope, "entity_id": str(record.id)},
            )
            return _decode(record)

        if record is None:
            outcome = _claim_and_run(scope, key, work, ttl_seconds, wait_timeout)
            if outcome is not _LOST:
                return outcome
            # Lost the insert race; the re-read finds the winner's result or
            # falls through to the bounded wait below
            continue

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.warning(
                "idempotency_wait_timed_out",
                extra={"operation": "RUN_IDEMPOTENT", "scope": scope, "entity_id": str(record.id)},
            )
            raise _in_progress_error(scope, key)
        time.sleep(min(poll_interval, remaining))


def purge_expired_idempotency_records():
    """Delete expired completed records. Returns the number removed."""
    deleted, _ = IdempotencyRecord.objects.filter(
        state="COMPLETED", expires_at__lte=timezone.now()
    ).delete()
    if deleted:
        logger.info(
            "idempotency_records_purged",
            extra={"operation": "PURGE_IDEMPOTENCY_RECORDS", "count": deleted},
        )
    return deleted
