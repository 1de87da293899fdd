from django.core.exceptions import ValidationError
from django.db import models

from .base import TenantModel
from .bill import Bill


# ---------- Payments ----------
# Rows are written only by billing_core.services.payments
class Payment(TenantModel):
    bill = models.ForeignKey(
        Bill,
        # bill deletion removes payments explicitly, after the invoice check
        on_delete=models.RESTRICT,
        related_name="payments",
    )
    amount = models.PositiveIntegerField()
    paid_on = models.DateTimeField()
    method = models.CharField(max_length=50)
    notes = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["admin", "bill"], name="payment_admin_bill_idx"),
            models.Index(fields=["admin", "paid_on"], name="payment_admin_paid_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_amount_positive",
            ),
        ]

    def __str__(self):
        return f"Payment {self.amount} on bill {self.bill_id}"

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError("Payment amount must be greater than 0.")
        # Tenant safety check
        if self.bill_id and self.admin_id:
            bill_admin_id = Bill.objects.only("admin_id").get(pk=self.bill_id).admin_id
            if bill_admin_id != self.admin_id:
                raise ValidationError("Payment.admin must match Bill.admin")
        return super().clean()

    def save(self, *args, **kwargs):
        self.full_clean(validate_constraints=False)
        return super().save(*args, **kwargs)
