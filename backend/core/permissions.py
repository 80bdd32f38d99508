"""
Permission classes for role-based access control.

Role is read from request.user (authenticated via JWT).
Role is NEVER read from request body, query parameters, or headers.
"""

from rest_framework import permissions

STAFF_ROLES = ("ADMIN", "SUPER_ADMIN")


def _role(request):
    if not request.user or not request.user.is_authenticated:
        return None
    return getattr(request.user, "role", None)


class IsStaff(permissions.BasePermission):
    """Allow ADMIN or SUPER_ADMIN roles (payment approval, back-office reads)."""

    def has_permission(self, request, view):
        return _role(request) in STAFF_ROLES


class IsSuperAdmin(permissions.BasePermission):
    """Allow SUPER_ADMIN role only."""

    def has_permission(self, request, view):
        return _role(request) == "SUPER_ADMIN"


class IsMerchantUser(permissions.BasePermission):
    """Allow MERCHANT users bound to a merchant."""

    def has_permission(self, request, view):
        if _role(request) != "MERCHANT":
            return False

        return getattr(request.user, "merchant_id", None) is not None


class IsStaffOrMerchantReadOnly(permissions.BasePermission):
    """Staff may read everything; merchant users may read (their own data) via GET."""

    def has_permission(self, request, view):
        role = _role(request)
        if role in STAFF_ROLES:
            return True

        if request.method == "GET" and role == "MERCHANT":
            return getattr(request.user, "merchant_id", None) is not None

        return False


class StaffReadSuperAdminWrite(permissions.BasePermission):
    """GET for staff; mutations for SUPER_ADMIN only (manual ledger entries)."""

    def has_permission(self, request, view):
        role = _role(request)
        if request.method in permissions.SAFE_METHODS:
            return role in STAFF_ROLES

        return role == "SUPER_ADMIN"
