from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import models

from ..services.status import derive_status
from .base import TenantModel
from .customer import Customer


# ---------- Bills ----------
# One customer's obligation for a fixed period, plus whatever the
# previous bill left unpaid
class Bill(TenantModel):
    customer = models.ForeignKey(
        Customer,
        # customers with bills cannot be deleted on their own
        on_delete=models.RESTRICT,
        related_name="bills",
    )
    bill_start_date = models.DateField()
    bill_end_date = models.DateField()

    # Unpaid balance carried over from the most recent prior bill
    last_month_remaining = models.PositiveIntegerField(default=0)
    # Sum of DELIVERED amounts inside the period
    current_month_bill = models.PositiveIntegerField(default=0)
    # Sum of DELIVERED quantities inside the period
    cylinders = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["admin", "customer"], name="bill_admin_customer_idx"),
            models.Index(fields=["admin", "bill_end_date"], name="bill_admin_end_idx"),
        ]
        constraints = [
            # At most one bill per customer and period
            models.UniqueConstraint(
                fields=["customer", "bill_start_date", "bill_end_date"],
                name="uq_bill_customer_period",
            ),
            models.CheckConstraint(
                condition=models.Q(bill_start_date__lt=models.F("bill_end_date")),
                name="bill_period_ordered",
            ),
        ]

    def __str__(self):
        return f"Bill {self.pk}: {self.customer_id} {self.bill_start_date}..{self.bill_end_date}"

    """ Totals and status are derived on every read, never stored """

    def totals(self):
        # uses prefetched payments when the caller loaded them
        amounts = [p.amount for p in self.payments.all()]
        return derive_status(self.last_month_remaining, self.current_month_bill, amounts)

    @property
    def total_amount(self):
        return self.last_month_remaining + self.current_month_bill

    @property
    def paid_amount(self):
        return self.totals().paid

    @property
    def remaining_amount(self):
        return self.totals().remaining

    @property
    def status(self):
        return self.totals().status

    @property
    def is_invoiced(self):
        try:
            return self.invoice is not None
        except ObjectDoesNotExist:
            return False

    def clean(self):
        # Tenant safety check
        if self.customer_id and self.customer.admin_id != self.admin_id:
            raise ValidationError("Bill.admin must match Customer.admin")

        # An invoiced bill is frozen in every code path
        if self.pk and self.is_invoiced:
            orig = Bill.objects.get(pk=self.pk)
            changed_fields = [
                field
                for field in ["customer_id", "bill_start_date", "bill_end_date",
                              "last_month_remaining", "current_month_bill", "cylinders"]
                if getattr(orig, field) != getattr(self, field)
            ]
            if changed_fields:
                raise ValidationError(
                    f"Cannot modify {changed_fields} on an invoiced bill. Delete the invoice first."
                )
        return super().clean()

    def save(self, *args, **kwargs):
        # the database enforces the period constraints (IntegrityError on races)
        self.full_clean(validate_constraints=False)
        return super().save(*args, **kwargs)
