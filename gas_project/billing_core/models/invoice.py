from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from .base import TenantModel
from .bill import Bill
from .customer import Customer


class Invoice(TenantModel):
    """
    Issued invoice for a bill.

    While it exists the bill and its payments are frozen; deleting the
    invoice is the only way to unlock them.
    """
    bill = models.OneToOneField(
        Bill,
        # an invoiced bill must be unlocked before it can go
        on_delete=models.RESTRICT,
        related_name="invoice",
    )
    customer = models.ForeignKey(
        Customer,
        on_delete=models.RESTRICT,
        related_name="invoices",
    )
    # human-readable, e.g. "INV-20251019-00001"
    invoice_number = models.CharField(max_length=64, unique=True)
    generated_at = models.DateTimeField(default=timezone.now)
    generated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )

    class Meta:
        indexes = [
            models.Index(fields=["admin", "customer"], name="invoice_admin_customer_idx"),
            models.Index(fields=["admin", "generated_at"], name="invoice_admin_generated_idx"),
        ]

    def __str__(self):
        return f"Inv {self.invoice_number}"

    def clean(self):
        # Tenant safety check
        if self.bill_id and self.bill.admin_id != self.admin_id:
            raise ValidationError("Invoice.admin must match Bill.admin")
        if self.bill_id and self.customer_id and self.bill.customer_id != self.customer_id:
            raise ValidationError("Invoice.customer must match Bill.customer")
        return super().clean()

    def save(self, *args, **kwargs):
        # uniqueness is left to the database so racing numbers raise IntegrityError
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)
