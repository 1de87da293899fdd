from django.core.exceptions import ValidationError
from django.db import models

from .base import TenantModel
from .bill import Bill


# ---------- Billing audit trail ----------
class PaymentLog(TenantModel):
    """Append-only record of billing events; rows are never edited or removed."""

    class EventType(models.TextChoices):
        BILL_GENERATED = "BILL_GENERATED", "Bill generated"
        BILL_UPDATED = "BILL_UPDATED", "Bill updated"
        BILL_DELETED = "BILL_DELETED", "Bill deleted"
        PAYMENT_RECEIVED = "PAYMENT_RECEIVED", "Payment received"
        PARTIAL_PAYMENT = "PARTIAL_PAYMENT", "Partial payment"
        PAYMENT_DELETED = "PAYMENT_DELETED", "Payment deleted"
        INVOICE_GENERATED = "INVOICE_GENERATED", "Invoice generated"
        INVOICE_DELETED = "INVOICE_DELETED", "Invoice deleted"

    event_type = models.CharField(max_length=32, choices=EventType.choices)

    # Cleared when the bill is deleted; bill_ref keeps the id for the record
    bill = models.ForeignKey(
        Bill,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="logs",
    )
    bill_ref = models.PositiveBigIntegerField(null=True, blank=True)
    payment_ref = models.PositiveBigIntegerField(null=True, blank=True)

    # Copied, not referenced, so the entry survives the customer
    customer_name = models.CharField(max_length=200)
    customer_code = models.PositiveIntegerField(null=True, blank=True)
    bill_start_date = models.DateField(null=True, blank=True)
    bill_end_date = models.DateField(null=True, blank=True)
    amount = models.IntegerField(null=True, blank=True)
    details = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-pk"]
        indexes = [
            models.Index(fields=["admin", "created_at"], name="paymentlog_admin_created_idx"),
            models.Index(fields=["admin", "event_type"], name="paymentlog_admin_event_idx"),
            models.Index(fields=["admin", "bill_ref"], name="paymentlog_admin_billref_idx"),
        ]

    def __str__(self):
        return f"[{self.created_at:%Y-%m-%d %H:%M}] {self.event_type} {self.customer_name} ({self.amount})"

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValidationError("Payment log entries are append-only.")
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Payment log entries cannot be deleted.")
