"""
Audit log: append-only storage, best-effort writes and the query endpoint.
"""

import uuid
from unittest.mock import patch

from django.db import DatabaseError
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.audit import services as audit_services
from apps.audit.models import AuditLog
from apps.ledger.models import Merchant
from apps.users.models import User


class AuditLogImmutabilityTests(APITestCase):
    def setUp(self):
        self.log = AuditLog.objects.create(
            action="payment.status.change",
            target_type="PaymentRequest",
            target_id=str(uuid.uuid4()),
            request_id="test-request-id",
        )

    def test_update_is_blocked(self):
        self.log.action = "modified"
        with self.assertRaises(ValueError):
            self.log.save()

    def test_delete_is_blocked(self):
        with self.assertRaises(ValueError):
            self.log.delete()

    def test_bulk_update_is_blocked(self):
        with self.assertRaises(ValueError):
            AuditLog.objects.filter(pk=self.log.pk).update(action="modified")

    def test_bulk_delete_is_blocked(self):
        with self.assertRaises(ValueError):
            AuditLog.objects.filter(pk=self.log.pk).delete()


class AuditRecordTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            username="audit_actor",
            password="testpass123",
            display_name="Audit Actor",
            role="ADMIN",
        )

    def test_record_links_actor_and_metadata(self):
        target = uuid.uuid4()
        log = audit_services.record(
            self.user.id,
            "merchant.account_entry.create",
            "MerchantAccountEntry",
            target,
            {"amount_cents": 100},
        )
        self.assertEqual(log.actor, self.user)
        self.assertEqual(log.target_id, str(target))
        self.assertEqual(log.metadata, {"amount_cents": 100})

    def test_record_failure_returns_none(self):
        with patch.object(
            AuditLog.objects, "create", side_effect=DatabaseError("audit store down")
        ):
            with self.assertLogs("apps.audit.services", level="WARNING") as cm:
                result = audit_services.record(self.user.id, "payment.status.change")
        self.assertIsNone(result)
        self.assertIn("audit_write_failed", cm.output[0])

    def test_record_on_commit_waits_for_commit(self):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            audit_services.record_on_commit(self.user.id, "payment.status.change")
        self.assertEqual(len(callbacks), 1)
        self.assertFalse(AuditLog.objects.exists())

        callbacks[0]()
        self.assertTrue(AuditLog.objects.filter(action="payment.status.change").exists())


class AuditViewTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            username="audit_user",
            password="testpass123",
            display_name="Audit User",
            role="ADMIN",
        )
        self.client.force_authenticate(self.user)
        self.payment_id = str(uuid.uuid4())
        AuditLog.objects.create(
            action="payment.status.change",
            actor=self.user,
            target_type="PaymentRequest",
            target_id=self.payment_id,
        )
        AuditLog.objects.create(
            action="merchant.account_entry.create",
            target_type="MerchantAccountEntry",
            target_id=str(uuid.uuid4()),
        )

    def test_audit_list(self):
        response = self.client.get(reverse("audit:query-audit-log"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["count"], 2)

    def test_filter_by_target(self):
        response = self.client.get(
            reverse("audit:query-audit-log"),
            {"targetType": "PaymentRequest", "targetId": self.payment_id},
        )
        results = response.json()["results"]
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0]["actorId"], str(self.user.id))

    def test_filter_by_actor_and_action(self):
        url = reverse("audit:query-audit-log")
        response = self.client.get(url, {"actorId": str(self.user.id)})
        self.assertEqual(response.json()["count"], 1)
        response = self.client.get(url, {"action": "merchant.account_entry.create"})
        self.assertEqual(response.json()["count"], 1)

    def test_invalid_filters_400(self):
        url = reverse("audit:query-audit-log")
        for params in (
            {"targetType": "InvalidType"},
            {"actorId": "not-a-uuid"},
            {"fromDate": "yesterday"},
        ):
            with self.subTest(params=params):
                response = self.client.get(url, params)
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_date_range(self):
        response = self.client.get(
            reverse("audit:query-audit-log"),
            {"fromDate": "2000-01-01T00:00:00Z", "toDate": "2000-01-02T00:00:00Z"},
        )
        self.assertEqual(response.json()["count"], 0)

    def test_merchant_user_forbidden(self):
        merchant = Merchant.objects.create(name="Audit Merchant")
        merchant_user = User.objects.create_user(
            username="audit_merchant",
            password="testpass123",
            display_name="Merchant",
            role="MERCHANT",
            merchant=merchant,
        )
        self.client.force_authenticate(merchant_user)
        response = self.client.get(reverse("audit:query-audit-log"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_audit_unauthorized(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(reverse("audit:query-audit-log"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
