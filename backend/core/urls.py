from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    # API v1 base path: /api/v1
    path("api/v1/health/", include("health.urls")),
    path("api/v1/auth/", include("apps.auth.urls")),
    path("api/v1/audit", include("apps.audit.urls")),
    path("api/v1/ledger/", include("apps.ledger.urls")),
    # Payment and merchant intake endpoints sit directly under /api/v1
    # so this include must come after the more specific prefixes above.
    path("api/v1/", include("apps.payments.urls")),
]
