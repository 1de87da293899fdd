from django.db.models.signals import pre_delete, pre_save
from django.dispatch import receiver

from .exceptions import FinanciallyLocked
from .models import Invoice, Payment

""" The invoice lock holds for every code path, not only the services.
    Bills need no receiver: Invoice.bill is RESTRICT."""


# pre_delete fires just before Django deletes a Payment,
# also when it is deleted through a queryset
@receiver(pre_delete, sender=Payment)
def prevent_delete_payment_on_invoiced_bill(sender, instance, **kwargs):
    if Invoice.objects.filter(bill_id=instance.bill_id).exists():
        raise FinanciallyLocked(
            "Cannot delete payment. This bill has an invoice generated. "
            "Please delete the invoice first.",
            bill_id=instance.bill_id,
            payment_id=instance.pk,
        )


"""Block payment writes on an invoiced bill."""


@receiver(pre_save, sender=Payment)
def prevent_payment_write_on_invoiced_bill(sender, instance, raw=False, **kwargs):
    if raw:  # fixtures load as-is
        return
    if instance.bill_id and Invoice.objects.filter(bill_id=instance.bill_id).exists():
        raise FinanciallyLocked(
            "Cannot add payment. This bill has an invoice generated. "
            "Please delete the invoice first to modify payments.",
            bill_id=instance.bill_id,
        )

