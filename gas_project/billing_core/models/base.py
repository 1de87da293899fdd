from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager


class TenantModel(models.Model):
    """Abstract base of every record that belongs to one tenant.

    ``admin`` points at the tenant owner (role ADMIN); its id is the tenant id
    every read and write is filtered by.
    """
    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        # deleting a tenant owner removes the tenant's data
        on_delete=models.CASCADE,
        related_name="+",
    )

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        abstract = True

    def clean(self):
        # A record never moves to another tenant
        if self.pk and self.admin_id is not None:
            orig_admin_id = (
                type(self).objects.filter(pk=self.pk)
                .values_list("admin_id", flat=True).first()
            )
            if orig_admin_id is not None and orig_admin_id != self.admin_id:
                raise ValidationError("Tenant of an existing record cannot change.")
        return super().clean()
