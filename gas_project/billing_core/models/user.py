from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import UserManager


# ---------- Principal ----------
class User(AbstractUser):
    """
    Every authenticated principal.

    SUPER_ADMIN  → system operator, no tenant, sees everything.
    ADMIN        → tenant owner, the tenant id is the user's own pk.
    other roles  → tenant members, scoped to the owner stored in `admin`.

    Add 'AUTH_USER_MODEL = "billing_core.User"' to settings.py before the
    first migrate.
    """
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    STAFF = "STAFF"
    VIEWER = "VIEWER"
    BRANCH_MANAGER = "BRANCH_MANAGER"

    ROLE_CHOICES = [
        (SUPER_ADMIN, "Super admin"),
        (ADMIN, "Admin"),
        (STAFF, "Staff"),
        (VIEWER, "Viewer"),
        (BRANCH_MANAGER, "Branch manager"),
    ]

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=STAFF)

    # Owning tenant for members; empty for owners and super admins
    admin = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        # a member whose owner is gone keeps the account but loses all access
        on_delete=models.SET_NULL,
        related_name="members",
    )

    phone = models.CharField(max_length=32, blank=True)

    objects = UserManager()

    class Meta:
        indexes = [
            models.Index(fields=["role", "date_joined"], name="user_role_joined_idx"),
            models.Index(fields=["admin"], name="user_admin_idx"),
        ]

    def __str__(self):
        return self.get_full_name() or self.username

    @property
    def is_super_admin(self):
        return self.role == self.SUPER_ADMIN

    @property
    def is_tenant_owner(self):
        return self.role == self.ADMIN

    def clean(self):
        if self.role in (self.SUPER_ADMIN, self.ADMIN) and self.admin_id:
            raise ValidationError(f"A {self.get_role_display()} cannot belong to another tenant.")
        if self.admin_id and self.admin_id == self.pk:
            raise ValidationError("A user cannot be its own tenant owner.")
        if self.admin is not None and self.admin.role != self.ADMIN:
            raise ValidationError("Members must belong to a user with the Admin role.")
        return super().clean()
