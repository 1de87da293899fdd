from django.contrib.auth.base_user import BaseUserManager
from django.db import models


# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a tenant (admin)
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_tenant(self, admin_id):
        # an unknown tenant matches nothing, never everything
        if admin_id is None:
            return self.none()
        return self.filter(admin_id=admin_id)

    def for_principal(self, principal):
        # Super admin sees all rows, everyone else only their tenant's
        from .services.tenant import tenant_filter

        return self.filter(tenant_filter(principal))
    # Enables query:
    # Bill.objects.for_principal(request.user)


class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    """Default manager of every tenant-owned model."""
    pass


class UserManager(BaseUserManager):
    """ Enforce rules around how users are created """

    use_in_migrations = True

    # Shared logic for both create_user() & create_superuser()
    def _create_user(self, username, email, password, **extra_fields):
        if not username:
            raise ValueError("The given username must be set")
        email = self.normalize_email(email)
        user = self.model(username=username, email=email, **extra_fields)
        user.set_password(password)  # Password is hashed
        user.save(using=self._db)
        return user

    def create_user(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(username, email, password, **extra_fields)

    # `createsuperuser` makes a system-wide super admin (no tenant)
    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", "SUPER_ADMIN")
        if extra_fields.get("is_staff") is not True or extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_staff=True and is_superuser=True")
        return self._create_user(username, email, password, **extra_fields)

    def tenant_owners(self):
        return self.filter(role="ADMIN")

    def for_tenant(self, admin_id):
        # owner plus every member attached to it
        return self.filter(models.Q(pk=admin_id, role="ADMIN") | models.Q(admin_id=admin_id))
