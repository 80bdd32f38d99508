"""
Payments API: intake endpoints, back-office reads, status changes and the
error envelope.
"""

import uuid

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from apps.ledger.models import LedgerEntry, Merchant
from apps.ledger.services import create_account_entry
from apps.payments.models import PaymentRequest
from apps.users.models import User

PAYER = {
    "kind": "BANK_TRANSFER",
    "payer": {"holderName": "Alice", "accountNo": "12345678", "bankName": "ANZ"},
}
DESTINATION = {
    "kind": "WITHDRAWAL",
    "destination": {"holderName": "Alice", "accountNo": "12345678", "bankName": "ANZ"},
}


def _idem(key):
    return {"HTTP_IDEMPOTENCY_KEY": key}


class PaymentsViewsTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.merchant = Merchant.objects.create(name="Acme")
        self.other_merchant = Merchant.objects.create(name="Globex")
        self.merchant_user = User.objects.create_user(
            username="acme_api",
            password="testpass123",
            display_name="Acme API",
            role="MERCHANT",
            merchant=self.merchant,
        )
        self.other_user = User.objects.create_user(
            username="globex_api",
            password="testpass123",
            display_name="Globex API",
            role="MERCHANT",
            merchant=self.other_merchant,
        )
        self.admin = User.objects.create_user(
            username="views_admin",
            password="testpass123",
            display_name="Admin",
            role="ADMIN",
        )
        self.super_admin = User.objects.create_user(
            username="views_super",
            password="testpass123",
            display_name="Super",
            role="SUPER_ADMIN",
        )

    def create_deposit(self, amount=10000, key=None, user=None):
        self.client.force_authenticate(user=user or self.merchant_user)
        extra = _idem(key) if key else {}
        return self.client.post(
            "/api/v1/merchant/deposits",
            {"subject": "alice", "amountCents": amount, "currency": "AUD", "details": PAYER},
            format="json",
            **extra,
        )

    def change_status(self, payment_id, body, user=None):
        self.client.force_authenticate(user=user or self.admin)
        return self.client.post(
            f"/api/v1/payments/{payment_id}/status", body, format="json"
        )


class IntakeViewsTests(PaymentsViewsTests):
    def test_unauthenticated_401(self):
        r = self.client.post("/api/v1/merchant/deposits", {}, format="json")
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn("error", r.json())

    def test_staff_cannot_create_deposits(self):
        r = self.create_deposit(user=self.admin)
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_deposit_201(self):
        r = self.create_deposit()
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        data = r.json()["data"]
        self.assertEqual(data["status"], "PENDING")
        self.assertEqual(data["amountCents"], 10000)
        self.assertRegex(data["referenceCode"], r"^T\d{5,6}$")
        self.assertEqual(data["instructions"]["reference"], data["referenceCode"])

        payment = PaymentRequest.objects.get(id=data["id"])
        self.assertEqual(payment.merchant_id, self.merchant.id)
        self.assertEqual(payment.method_code, "BANK_TRANSFER")

    def test_idempotency_key_replays_response(self):
        first = self.create_deposit(key="dep-1")
        second = self.create_deposit(key="dep-1")

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(second.status_code, status.HTTP_201_CREATED)
        self.assertEqual(first.json(), second.json())
        self.assertEqual(PaymentRequest.objects.count(), 1)

    def test_oversized_idempotency_key_400(self):
        r = self.create_deposit(key="k" * 256)
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.json()["error"]["code"], "VALIDATION_ERROR")
        self.assertFalse(PaymentRequest.objects.exists())

    def test_invalid_details_400(self):
        self.client.force_authenticate(user=self.merchant_user)
        r = self.client.post(
            "/api/v1/merchant/deposits",
            {
                "subject": "alice",
                "amountCents": 100,
                "currency": "AUD",
                "details": {"kind": "CASH"},
            },
            format="json",
        )
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.json()["error"]["code"], "VALIDATION_ERROR")

    def test_non_positive_amount_400(self):
        r = self.create_deposit(amount=0)
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_inactive_merchant_403(self):
        Merchant.objects.filter(id=self.merchant.id).update(is_active=False)
        r = self.create_deposit()
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(r.json()["error"]["code"], "FORBIDDEN")

    def test_create_withdrawal_201(self):
        self.client.force_authenticate(user=self.merchant_user)
        r = self.client.post(
            "/api/v1/merchant/withdrawals",
            {"subject": "alice", "amountCents": 2500, "currency": "AUD", "details": DESTINATION},
            format="json",
        )
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual(r.json()["data"]["type"], "WITHDRAWAL")

    def test_withdrawal_without_destination_400(self):
        self.client.force_authenticate(user=self.merchant_user)
        r = self.client.post(
            "/api/v1/merchant/withdrawals",
            {"subject": "alice", "amountCents": 2500, "currency": "AUD"},
            format="json",
        )
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_test_payment_uses_merchant_currency(self):
        self.client.force_authenticate(user=self.merchant_user)
        r = self.client.post(
            "/api/v1/merchant/test-payments",
            {"type": "DEPOSIT", "amountCents": 100},
            format="json",
        )
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual(r.json()["data"]["currency"], "AUD")

    def test_submit_evidence(self):
        payment_id = self.create_deposit().json()["data"]["id"]
        r = self.client.post(
            f"/api/v1/merchant/payments/{payment_id}/evidence",
            {"receiptReference": "s3://receipts/1.png"},
            format="json",
        )
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.json()["data"]["status"], "SUBMITTED")
        self.assertEqual(r.json()["data"]["receiptReference"], "s3://receipts/1.png")

    def test_submit_evidence_for_other_merchant_404(self):
        payment_id = self.create_deposit().json()["data"]["id"]
        self.client.force_authenticate(user=self.other_user)
        r = self.client.post(
            f"/api/v1/merchant/payments/{payment_id}/evidence",
            {"receiptReference": "r"},
            format="json",
        )
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(r.json()["error"]["code"], "NOT_FOUND")


class ReadViewsTests(PaymentsViewsTests):
    def setUp(self):
        super().setUp()
        self.own_id = self.create_deposit().json()["data"]["id"]
        self.foreign_id = self.create_deposit(user=self.other_user).json()["data"]["id"]

    def test_staff_list_all_paginated(self):
        self.client.force_authenticate(user=self.admin)
        r = self.client.get("/api/v1/payments")
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        body = r.json()
        self.assertEqual(body["count"], 2)
        self.assertEqual(len(body["results"]), 2)

    def test_staff_filter_by_merchant(self):
        self.client.force_authenticate(user=self.admin)
        r = self.client.get("/api/v1/payments", {"merchantId": str(self.merchant.id)})
        ids = [row["id"] for row in r.json()["results"]]
        self.assertEqual(ids, [self.own_id])

    def test_bad_merchant_filter_400(self):
        self.client.force_authenticate(user=self.admin)
        r = self.client.get("/api/v1/payments", {"merchantId": "nope"})
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bad_type_filter_400(self):
        self.client.force_authenticate(user=self.admin)
        r = self.client.get("/api/v1/payments", {"type": "REFUND"})
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_merchant_sees_only_own_payments(self):
        self.client.force_authenticate(user=self.merchant_user)
        r = self.client.get(
            "/api/v1/payments", {"merchantId": str(self.other_merchant.id)}
        )
        ids = [row["id"] for row in r.json()["results"]]
        self.assertEqual(ids, [self.own_id])

    def test_get_payment(self):
        self.client.force_authenticate(user=self.merchant_user)
        r = self.client.get(f"/api/v1/payments/{self.own_id}")
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.json()["data"]["merchantName"], "Acme")

    def test_get_foreign_payment_404(self):
        self.client.force_authenticate(user=self.merchant_user)
        r = self.client.get(f"/api/v1/payments/{self.foreign_id}")
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)

    def test_get_unknown_payment_404(self):
        self.client.force_authenticate(user=self.admin)
        r = self.client.get(f"/api/v1/payments/{uuid.uuid4()}")
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)


class StatusChangeViewsTests(PaymentsViewsTests):
    def setUp(self):
        super().setUp()
        self.deposit_id = self.create_deposit().json()["data"]["id"]

    def test_approve_deposit_200(self):
        r = self.change_status(self.deposit_id, {"type": "DEPOSIT", "status": "APPROVED"})
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        body = r.json()
        self.assertEqual(body["data"]["status"], "APPROVED")
        self.assertEqual(body["data"]["processedBy"], str(self.admin.id))
        self.assertEqual(body["balanceDelta"], 10000)

        self.merchant.refresh_from_db()
        self.assertEqual(self.merchant.balance_cents, 10000)

    def test_second_approval_409(self):
        self.change_status(self.deposit_id, {"type": "DEPOSIT", "status": "APPROVED"})
        r = self.change_status(self.deposit_id, {"type": "DEPOSIT", "status": "APPROVED"})
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(r.json()["error"]["code"], "INVALID_STATE")
        self.assertEqual(LedgerEntry.objects.count(), 1)

    def test_merchant_cannot_change_status_403(self):
        r = self.change_status(
            self.deposit_id,
            {"type": "DEPOSIT", "status": "APPROVED"},
            user=self.merchant_user,
        )
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(PaymentRequest.objects.get(id=self.deposit_id).status, "PENDING")

    def test_reject_without_comment_400(self):
        r = self.change_status(self.deposit_id, {"type": "DEPOSIT", "status": "REJECTED"})
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.json()["error"]["code"], "COMMENT_REQUIRED")

    def test_type_mismatch_400(self):
        r = self.change_status(
            self.deposit_id, {"type": "WITHDRAWAL", "status": "APPROVED"}
        )
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.json()["error"]["code"], "TYPE_MISMATCH")

    def test_invalid_amount_400(self):
        r = self.change_status(
            self.deposit_id,
            {"type": "DEPOSIT", "status": "APPROVED", "amountCents": "abc", "comment": "x"},
        )
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.json()["error"]["code"], "AMOUNT_INVALID")

    def test_oversized_amount_400(self):
        for amount in (1e30, 2**63):
            with self.subTest(amount=amount):
                r = self.change_status(
                    self.deposit_id,
                    {"type": "DEPOSIT", "status": "APPROVED", "amountCents": amount, "comment": "x"},
                )
                self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertEqual(r.json()["error"]["code"], "AMOUNT_INVALID")

    def test_amount_override_with_comment(self):
        r = self.change_status(
            self.deposit_id,
            {
                "type": "DEPOSIT",
                "status": "APPROVED",
                "amountCents": 12000,
                "comment": "received more",
            },
        )
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.json()["data"]["amountCents"], 12000)
        self.assertEqual(r.json()["balanceDelta"], 12000)

    def test_unknown_payment_404(self):
        r = self.change_status(uuid.uuid4(), {"type": "DEPOSIT", "status": "APPROVED"})
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)

    def test_withdrawal_insufficient_funds_422(self):
        self.client.force_authenticate(user=self.merchant_user)
        withdrawal_id = self.client.post(
            "/api/v1/merchant/withdrawals",
            {"subject": "alice", "amountCents": 5000, "currency": "AUD", "details": DESTINATION},
            format="json",
        ).json()["data"]["id"]
        create_account_entry(self.merchant.id, "TOPUP", 3000, self.super_admin.id)

        r = self.change_status(withdrawal_id, {"type": "WITHDRAWAL", "status": "APPROVED"})

        self.assertEqual(r.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(r.json()["error"]["code"], "INSUFFICIENT_FUNDS")
        self.merchant.refresh_from_db()
        self.assertEqual(self.merchant.balance_cents, 3000)
        self.assertEqual(PaymentRequest.objects.get(id=withdrawal_id).status, "PENDING")

    def test_withdrawal_approval_records_bank_account(self):
        create_account_entry(self.merchant.id, "TOPUP", 9000, self.super_admin.id)
        self.client.force_authenticate(user=self.merchant_user)
        withdrawal_id = self.client.post(
            "/api/v1/merchant/withdrawals",
            {"subject": "alice", "amountCents": 5000, "currency": "AUD", "details": DESTINATION},
            format="json",
        ).json()["data"]["id"]
        account_id = str(uuid.uuid4())

        r = self.change_status(
            withdrawal_id,
            {"type": "WITHDRAWAL", "status": "APPROVED", "bankAccountId": account_id},
            user=self.super_admin,
        )

        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.json()["data"]["bankAccountId"], account_id)
        self.assertEqual(r.json()["balanceDelta"], -5000)

    def test_response_carries_request_id(self):
        self.client.force_authenticate(user=self.admin)
        r = self.client.post(
            f"/api/v1/payments/{self.deposit_id}/status",
            {"type": "DEPOSIT", "status": "APPROVED"},
            format="json",
            HTTP_X_REQUEST_ID="corr-123",
        )
        self.assertEqual(r["X-Request-ID"], "corr-123")
