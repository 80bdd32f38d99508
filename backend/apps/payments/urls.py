"""
URL routing for payment endpoints.
"""

from django.urls import path
from apps.payments import views

app_name = "payments"

urlpatterns = [
    # Merchant intake
    path("merchant/deposits", views.create_deposit, name="create-deposit"),
    path("merchant/withdrawals", views.create_withdrawal, name="create-withdrawal"),
    path(
        "merchant/test-payments", views.create_test_payment, name="create-test-payment"
    ),
    path(
        "merchant/payments/<uuid:paymentId>/evidence",
        views.submit_evidence,
        name="submit-evidence",
    ),
    # Back office
    path("payments", views.list_payments, name="list-payments"),
    path("payments/<uuid:paymentId>", views.get_payment, name="get-payment"),
    path(
        "payments/<uuid:paymentId>/status",
        views.change_payment_status,
        name="change-payment-status",
    ),
]
