from django.core.exceptions import ValidationError
from django.db import models

from .base import TenantModel
from .customer import Customer, split_customer_reference


# ---------- Delivery ledger ----------
class DeliveryEntry(TenantModel):
    """One cylinder movement: sent to a customer or empties taken back."""

    DELIVERED = "DELIVERED"
    RECEIVED = "RECEIVED"
    KIND_CHOICES = [
        (DELIVERED, "Delivered"),
        (RECEIVED, "Received"),
    ]

    # Nullable: legacy string references that could not be resolved stay unlinked
    customer = models.ForeignKey(
        Customer,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="delivery_entries",
    )
    # As typed by the operator, "<code> · <name>" or just "<name>"
    customer_name = models.CharField(max_length=255, blank=True)

    kind = models.CharField(max_length=10, choices=KIND_CHOICES)
    cylinder_label = models.CharField(max_length=64)
    quantity = models.PositiveIntegerField()
    unit_price = models.PositiveIntegerField(default=0)
    # quantity × unit_price for DELIVERED entries
    amount = models.PositiveIntegerField(default=0)
    delivery_date = models.DateTimeField()
    verified = models.BooleanField(default=False)

    # RECEIVED entries only
    empty_cylinder_received = models.PositiveIntegerField(null=True, blank=True)
    payment_type = models.CharField(max_length=32, null=True, blank=True)
    payment_amount = models.PositiveIntegerField(null=True, blank=True)
    payment_received_by = models.CharField(max_length=120, null=True, blank=True)

    delivered_by = models.CharField(max_length=120, null=True, blank=True)
    bill_created_by = models.CharField(max_length=120, blank=True)
    description = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "delivery entries"
        indexes = [
            models.Index(fields=["admin", "kind", "delivery_date"], name="entry_admin_kind_date_idx"),
            models.Index(fields=["admin", "customer"], name="entry_admin_customer_idx"),
            models.Index(fields=["admin", "customer_name"], name="entry_admin_custname_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(kind__in=["DELIVERED", "RECEIVED"]),
                name="delivery_entry_kind_valid",
            ),
        ]

    def __str__(self):
        return f"{self.get_kind_display()} {self.quantity} × {self.cylinder_label} ({self.customer_name})"

    @property
    def is_delivered(self):
        return self.kind == self.DELIVERED

    @staticmethod
    def customer_q(customer=None, customer_name=""):
        """
        Entries that belong to a customer: linked by id, or unlinked but
        carrying one of the customer's names.
        """
        _, name_only = split_customer_reference(customer_name)
        names = {n for n in (customer_name, name_only) if n}
        if customer is None:
            return models.Q(customer__isnull=True, customer_name__in=names)
        names |= {customer.name, customer.display_reference}
        return models.Q(customer=customer) | models.Q(customer__isnull=True, customer_name__in=names)

    def clean(self):
        if self.quantity is not None and self.quantity <= 0:
            raise ValidationError("Quantity must be greater than 0.")
        # Tenant safety check
        if self.customer_id and self.customer.admin_id != self.admin_id:
            raise ValidationError("Customer must belong to the same tenant.")
        return super().clean()

    def save(self, *args, **kwargs):
        # amount is derived for deliveries, whatever the caller passed
        if self.kind == self.DELIVERED:
            self.amount = (self.quantity or 0) * (self.unit_price or 0)
        self.full_clean(validate_constraints=False)
        return super().save(*args, **kwargs)
