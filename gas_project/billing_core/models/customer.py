from django.db import models

from .base import TenantModel

# Separator of the legacy "<code> · <name>" customer reference
CUSTOMER_REFERENCE_SEPARATOR = " · "


def split_customer_reference(value):
    """
    Split a legacy "<code> · <name>" reference.

    Returns (code, name); code is None when absent or not a number.
    """
    value = (value or "").strip()
    if CUSTOMER_REFERENCE_SEPARATOR not in value:
        return None, value
    code_part, name_part = value.split(CUSTOMER_REFERENCE_SEPARATOR, 1)
    try:
        code = int(code_part.strip())
    except ValueError:
        code = None
    return code, name_part.strip()


# ---------- Customer ----------
# Receives cylinders and bills; belongs to exactly one tenant
class Customer(TenantModel):
    # Sequential number shown to operators, unique per tenant
    customer_code = models.PositiveIntegerField()
    name = models.CharField(max_length=200)
    address = models.CharField(max_length=255, blank=True)
    contact_number = models.CharField(max_length=32, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["admin", "name"], name="customer_admin_name_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["admin", "customer_code"], name="uq_tenant_customer_code"
            ),
        ]

    def __str__(self):
        return self.display_reference

    @property
    def display_reference(self):
        # e.g. "4 · Arham"
        return f"{self.customer_code}{CUSTOMER_REFERENCE_SEPARATOR}{self.name}"

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
