"""
User persistence and role predicates.

Models stay passive: UserManager and the Django admin hooks on User call
into this module.
"""

from __future__ import annotations

from typing import Any, Optional, Type

from core.permissions import STAFF_ROLES

ROLES = ("SUPER_ADMIN", "ADMIN", "MERCHANT")


def _check_merchant_binding(role: str, extra_fields: dict) -> None:
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    bound = (
        extra_fields.get("merchant") is not None
        or extra_fields.get("merchant_id") is not None
    )
    if role == "MERCHANT" and not bound:
        raise ValueError("MERCHANT users must be bound to a merchant")
    if role != "MERCHANT" and bound:
        raise ValueError(f"{role} users cannot be bound to a merchant")


def create_user(
    *,
    user_model: Type[Any],
    username: str,
    password: Optional[str] = None,
    display_name: Optional[str] = None,
    role: str = "MERCHANT",
    using: Optional[str] = None,
    **extra_fields: Any,
):
    """
    Create and persist a user.

    MERCHANT users need merchant=... (or merchant_id=...); staff users must
    not carry one. A missing password leaves the account unusable for login.
    """
    username = (username or "").strip()
    if not username:
        raise ValueError("The username field must be set")
    _check_merchant_binding(role, extra_fields)

    user = user_model(
        username=user_model.normalize_username(username),
        display_name=display_name or username,
        role=role,
        **extra_fields,
    )
    user.set_password(password)
    user.save(using=using)
    return user


def create_superuser(
    *,
    user_model: Type[Any],
    username: str,
    password: Optional[str] = None,
    using: Optional[str] = None,
    **extra_fields: Any,
):
    """SUPER_ADMIN account, used by manage.py createsuperuser."""
    extra_fields["role"] = "SUPER_ADMIN"
    return create_user(
        user_model=user_model,
        username=username,
        password=password,
        using=using,
        **extra_fields,
    )


def user_is_staff(*, user: Any) -> bool:
    return user.role in STAFF_ROLES


def user_is_superuser(*, user: Any) -> bool:
    # Django admin permissions collapse onto this single role check
    return user.role == "SUPER_ADMIN"
