"""
Back-office accounts.

Staff (SUPER_ADMIN, ADMIN) decide payments and read every merchant;
MERCHANT accounts act for exactly one merchant and see only its data.
"""

import uuid

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager
from django.contrib.auth.validators import UnicodeUsernameValidator
from django.db import models

from . import services


class Role(models.TextChoices):
    SUPER_ADMIN = "SUPER_ADMIN", "Super admin"
    ADMIN = "ADMIN", "Admin"
    MERCHANT = "MERCHANT", "Merchant"


class UserManager(BaseUserManager):
    def create_user(
        self, username, password=None, display_name=None, role=Role.MERCHANT, **extra_fields
    ):
        return services.create_user(
            user_model=self.model,
            username=username,
            password=password,
            display_name=display_name,
            role=role,
            using=self._db,
            **extra_fields,
        )

    def create_superuser(self, username, password=None, **extra_fields):
        return services.create_superuser(
            user_model=self.model,
            username=username,
            password=password,
            using=self._db,
            **extra_fields,
        )


class User(AbstractBaseUser):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    username = models.CharField(
        max_length=150, unique=True, validators=[UnicodeUsernameValidator()]
    )
    display_name = models.CharField(max_length=255)
    role = models.CharField(max_length=20, choices=Role.choices)
    merchant = models.ForeignKey(
        "ledger.Merchant",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="users",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "username"
    REQUIRED_FIELDS = ["display_name"]

    objects = UserManager()

    class Meta:
        db_table = "users"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(role__in=Role.values),
                name="valid_role",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(role=Role.MERCHANT, merchant__isnull=False)
                    | (~models.Q(role=Role.MERCHANT) & models.Q(merchant__isnull=True))
                ),
                name="merchant_binding_matches_role",
            ),
        ]

    def __str__(self):
        return f"{self.username} ({self.role})"

    # Django admin hooks
    @property
    def is_staff(self):
        return services.user_is_staff(user=self)

    @property
    def is_superuser(self):
        return services.user_is_superuser(user=self)

    def has_perm(self, perm, obj=None):
        return self.is_superuser

    def has_module_perms(self, app_label):
        return self.is_superuser
