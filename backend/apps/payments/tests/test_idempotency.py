"""
Idempotency guard: replay, failure handling, expiry, bounded waiting and
concurrent callers sharing one key.
"""

import threading
import time
import uuid
from datetime import timedelta
from unittest.mock import patch

from django.db import connection
from django.test import TestCase, TransactionTestCase
from django.utils import timezone

from core.exceptions import IdempotencyInProgressError
from apps.ledger.models import Merchant
from apps.payments import idempotency
from apps.payments.idempotency import purge_expired_idempotency_records, run_idempotent
from apps.payments.models import IdempotencyRecord


class Counter:
    def __init__(self, result=None):
        self.calls = 0
        self.result = result

    def __call__(self):
        self.calls += 1
        return self.result if self.result is not None else {"call": self.calls}


class RunIdempotentTests(TestCase):
    def test_without_key_work_runs_every_time(self):
        work = Counter()
        run_idempotent("scope", None, work)
        run_idempotent("scope", "", work)
        self.assertEqual(work.calls, 2)
        self.assertFalse(IdempotencyRecord.objects.exists())

    def test_replay_returns_stored_result_without_rerunning(self):
        work = Counter()

        first = run_idempotent("deposit:m1:alice", "abc", work)
        second = run_idempotent("deposit:m1:alice", "abc", work)

        self.assertEqual(work.calls, 1)
        self.assertEqual(first, {"call": 1})
        self.assertEqual(second, first)
        record = IdempotencyRecord.objects.get(scope="deposit:m1:alice", key="abc")
        self.assertEqual(record.state, "COMPLETED")
        self.assertGreater(record.expires_at, timezone.now())

    def test_winner_and_replay_see_identical_json(self):
        payment_id = uuid.uuid4()
        work = Counter({"id": payment_id, "at": timezone.now()})

        first = run_idempotent("s", "k", work)
        second = run_idempotent("s", "k", work)

        self.assertEqual(first["id"], str(payment_id))
        self.assertEqual(first, second)

    def test_same_key_in_other_scope_runs_again(self):
        work = Counter()
        run_idempotent("deposit:m1:alice", "abc", work)
        run_idempotent("deposit:m1:bob", "abc", work)
        self.assertEqual(work.calls, 2)

    def test_failure_is_not_cached(self):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise ValueError("provider down")
            return {"ok": True}

        with self.assertRaises(ValueError):
            run_idempotent("s", "retry-me", flaky)
        self.assertFalse(IdempotencyRecord.objects.filter(key="retry-me").exists())

        self.assertEqual(run_idempotent("s", "retry-me", flaky), {"ok": True})
        self.assertEqual(len(attempts), 2)

    def test_failed_work_rolls_back_its_writes(self):
        def work():
            Merchant.objects.create(name="Half Done")
            raise RuntimeError("boom")

        with self.assertRaises(RuntimeError):
            run_idempotent("s", "rollback", work)
        self.assertFalse(Merchant.objects.filter(name="Half Done").exists())

    def test_expired_record_is_executed_again(self):
        IdempotencyRecord.objects.create(
            scope="s",
            key="old",
            state="COMPLETED",
            result_payload='{"call": 0}',
            expires_at=timezone.now() - timedelta(seconds=1),
        )
        work = Counter()

        result = run_idempotent("s", "old", work)

        self.assertEqual(result, {"call": 1})
        self.assertEqual(work.calls, 1)
        self.assertEqual(IdempotencyRecord.objects.filter(scope="s", key="old").count(), 1)

    def test_in_progress_record_times_out(self):
        IdempotencyRecord.objects.create(
            scope="s",
            key="busy",
            state="IN_PROGRESS",
            expires_at=timezone.now() + timedelta(minutes=5),
        )
        work = Counter()

        started = time.monotonic()
        with self.assertRaises(IdempotencyInProgressError) as ctx:
            run_idempotent("s", "busy", work, wait_timeout=0.2, poll_interval=0.05)

        self.assertGreaterEqual(time.monotonic() - started, 0.2)
        self.assertEqual(ctx.exception.code, "IDEMPOTENCY_IN_PROGRESS")
        self.assertEqual(work.calls, 0)

    def test_lost_race_after_deadline_still_replays_committed_winner(self):
        work = Counter()

        def winner_commits_first(scope, key, *args):
            IdempotencyRecord.objects.create(
                scope=scope,
                key=key,
                state="COMPLETED",
                result_payload='{"winner": true}',
                expires_at=timezone.now() + timedelta(minutes=5),
            )
            return idempotency._LOST

        with patch.object(idempotency, "_claim_and_run", side_effect=winner_commits_first):
            result = run_idempotent("s", "late", work, wait_timeout=0)

        self.assertEqual(result, {"winner": True})
        self.assertEqual(work.calls, 0)

    def test_ttl_override(self):
        run_idempotent("s", "short", Counter(), ttl_seconds=60)
        record = IdempotencyRecord.objects.get(key="short")
        self.assertLessEqual(record.expires_at, timezone.now() + timedelta(seconds=60))

    def test_purge_removes_only_expired_completed_records(self):
        now = timezone.now()
        IdempotencyRecord.objects.create(
            scope="s", key="expired", state="COMPLETED", expires_at=now - timedelta(hours=1)
        )
        IdempotencyRecord.objects.create(
            scope="s", key="fresh", state="COMPLETED", expires_at=now + timedelta(hours=1)
        )

        self.assertEqual(purge_expired_idempotency_records(), 1)
        self.assertEqual(
            list(IdempotencyRecord.objects.values_list("key", flat=True)), ["fresh"]
        )


class ConcurrentIdempotencyTests(TransactionTestCase):
    """Real concurrent callers, each on its own database connection."""

    def test_parallel_callers_share_one_execution(self):
        callers = 5
        barrier = threading.Barrier(callers)
        executions = []
        results = []
        errors = []

        def work():
            executions.append(1)
            Merchant.objects.create(name=f"Created {uuid.uuid4().hex[:6]}")
            time.sleep(0.3)
            return {"merchantCount": Merchant.objects.count()}

        def call():
            try:
                barrier.wait()
                results.append(run_idempotent("deposit:m:alice", "abc", work))
            except Exception as exc:  # collected and asserted below
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=call) for _ in range(callers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(executions), 1)
        self.assertEqual(Merchant.objects.count(), 1)
        self.assertEqual(len(results), callers)
        self.assertTrue(all(result == results[0] for result in results))
