"""
URL routing for ledger endpoints.
"""

from django.urls import path
from apps.ledger import views

app_name = "ledger"

urlpatterns = [
    path("merchants", views.list_merchant_balances, name="list-merchant-balances"),
    path(
        "merchants/<uuid:merchantId>/entries",
        views.list_merchant_ledger,
        name="list-merchant-ledger",
    ),
    path(
        "account-entries",
        views.list_or_create_account_entries,
        name="list-or-create-account-entries",
    ),
]
