"""
URL routing for authentication endpoints.
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from apps.auth import views

app_name = "auth"

urlpatterns = [
    path("token", views.obtain_token, name="obtain-token"),
    path("token/refresh", TokenRefreshView.as_view(), name="refresh-token"),
]
