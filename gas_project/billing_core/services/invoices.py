import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from ..exceptions import AlreadyInvoiced, BillingError, ConcurrencyConflict, NotFoundError
from ..models import Bill, Invoice
from .payment_logs import EventType, log_invoice_event
from .tenant import get_scoped

logger = logging.getLogger(__name__)


def next_invoice_number(day=None) -> str:
    """
    Next number of the day, e.g. "INV-20251019-00001".
    Sequences are global so numbers stay unique across tenants.
    """
    # Local calendar day of issue
    day = day or timezone.localdate()
    prefix = getattr(settings, "BILLING", {}).get("INVOICE_PREFIX", "INV")
    day_prefix = f"{prefix}-{day:%Y%m%d}-"
    last = (
        Invoice.objects.filter(invoice_number__startswith=day_prefix)
        .order_by("-invoice_number")
        .values_list("invoice_number", flat=True)
        .first()
    )
    # Highest number of the day plus one
    sequence = int(last.rsplit("-", 1)[-1]) + 1 if last else 1
    return f"{day_prefix}{sequence:05d}"


def _generated_by(principal):
    return principal if getattr(principal, "is_authenticated", False) and principal.pk else None


def generate_invoice(principal, bill_id) -> Invoice:
    """Issue the invoice of a bill; from here on the bill is frozen."""
    with transaction.atomic():
        # Lock the bill: payments on it wait for the invoice
        bill = get_scoped(
            Bill.objects.select_for_update().select_related("customer"), principal, bill_id, "Bill"
        )
        # One invoice per bill
        if bill.is_invoiced:
            raise AlreadyInvoiced(
                "Invoice already exists for this bill.",
                bill_id=bill.pk,
                invoice_number=bill.invoice.invoice_number,
            )

        # unique constraints reject a duplicate number or a second invoice
        try:
            invoice = Invoice.objects.create(
                admin_id=bill.admin_id,
                bill=bill,
                customer=bill.customer,
                invoice_number=next_invoice_number(),
                generated_by=_generated_by(principal),
            )
        except IntegrityError as exc:
            raise ConcurrencyConflict(
                "Invoice could not be generated because another request issued the same "
                "number or invoiced this bill. Please try again.",
                bill_id=bill.pk,
            ) from exc

        log_invoice_event(
            EventType.INVOICE_GENERATED,
            invoice,
            details=f"Invoice {invoice.invoice_number} generated for Rs {bill.total_amount:,}",
        )

    logger.info("Generated invoice %s for bill %s", invoice.invoice_number, bill.pk)
    return invoice


def generate_invoices(principal, bill_ids):
    """Invoice several bills; each bill succeeds or fails on its own."""
    results = []
    for bill_id in bill_ids:
        try:
            invoice = generate_invoice(principal, bill_id)
        except BillingError as exc:
            results.append({"bill_id": bill_id, "ok": False, "code": exc.code, "error": exc.message})
        else:
            results.append({"bill_id": bill_id, "ok": True, "invoice_number": invoice.invoice_number})
    return results


def get_invoice(principal, invoice_id_or_number) -> Invoice:
    """Look an invoice up by pk or by its number."""
    invoices = Invoice.objects.select_related("bill", "bill__customer")
    key = str(invoice_id_or_number or "").strip()
    # Digits are a primary key, anything else an invoice number
    if key and not key.isdigit():
        invoice = invoices.for_principal(principal).filter(invoice_number=key).first()
        if invoice is None:
            raise NotFoundError(
                "Invoice not found or you do not have permission to access it.", id=key
            )
        return invoice
    return get_scoped(invoices, principal, key, "Invoice")


def delete_invoice(principal, invoice_id_or_number):
    """Withdraw an invoice, unlocking its bill."""
    with transaction.atomic():
        invoice = get_invoice(principal, invoice_id_or_number)
        # serialize with payments on the same bill
        Bill.objects.select_for_update().filter(pk=invoice.bill_id).first()
        number = invoice.invoice_number
        log_invoice_event(EventType.INVOICE_DELETED, invoice, details=f"Invoice {number} deleted")
        invoice.delete()

    logger.info("Deleted invoice %s; bill %s unlocked", number, invoice.bill_id)
    return {"invoice_number": number, "bill_id": invoice.bill_id}
