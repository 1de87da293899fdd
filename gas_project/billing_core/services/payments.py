import datetime
import logging

from django.db import transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce

from ..exceptions import FinanciallyLocked, InputValidationError, PaymentExceedsRemaining
from ..models import Bill, Payment
from .payment_logs import EventType, log_payment_event
from .periods import to_datetime
from .reconciliation import get_bill_sync_notifier
from .status import PAID, derive_status
from .tenant import get_scoped

logger = logging.getLogger(__name__)


# ----------------------------
# Payment workflows
# Only this module writes Payment rows.
# ----------------------------
def _clean_amount(amount) -> int:
    if isinstance(amount, bool) or amount in (None, ""):
        raise InputValidationError("Payment amount is required.", field="amount")
    try:
        value = int(amount)
    except (TypeError, ValueError):
        raise InputValidationError("Payment amount must be a whole number.", field="amount", value=amount)
    if value != amount and str(value) != str(amount).strip():
        raise InputValidationError("Payment amount must be a whole number.", field="amount", value=amount)
    if value <= 0:
        raise InputValidationError("Payment amount must be greater than 0.", field="amount", value=value)
    return value


def _notify_next_period(notifier, bill):
    # the following bill carries this bill's remaining balance
    notifier.customer_changed(
        bill.admin_id, bill.customer_id, bill.bill_end_date + datetime.timedelta(days=1)
    )


def record_payment(principal, bill_id, amount, paid_on, method, notes=None, *, notifier=None) -> Payment:
    """
    Apply a payment to a bill.
    Locks the bill row so concurrent payments cannot jointly exceed the
    remaining amount.
    """
    # Validate input before touching the database
    if bill_id in (None, ""):
        raise InputValidationError("Bill is required.", field="bill_id")
    amount = _clean_amount(amount)
    paid_on = to_datetime(paid_on, "paid_on")
    method = (method or "").strip()
    if not method:
        raise InputValidationError("Payment method is required.", field="method")
    notes = (notes or "").strip() or None
    notifier = notifier or get_bill_sync_notifier()

    with transaction.atomic():
        # Lock the bill row inside the tenant scope
        bill = get_scoped(
            Bill.objects.select_for_update().select_related("customer"), principal, bill_id, "Bill"
        )
        # An invoiced bill is frozen
        if bill.is_invoiced:
            raise FinanciallyLocked(
                "Cannot add payment. This bill has an invoice generated. "
                "Please delete the invoice first to modify payments.",
                bill_id=bill.pk,
            )

        # Re-read the payment sum under the lock
        paid = Payment.objects.filter(bill=bill).aggregate(total=Coalesce(Sum("amount"), 0))["total"]
        before = derive_status(bill.last_month_remaining, bill.current_month_bill, [paid])
        if amount > before.remaining:
            raise PaymentExceedsRemaining(
                f"Payment amount (Rs {amount:,}) cannot exceed remaining amount (Rs {before.remaining:,}).",
                amount=amount,
                remaining=before.remaining,
            )

        # Payments belong to the bill's tenant
        payment = Payment.objects.create(
            admin_id=bill.admin_id,
            bill=bill,
            amount=amount,
            paid_on=paid_on,
            method=method,
            notes=notes,
        )

        # Full or partial, judged after this payment
        after = derive_status(bill.last_month_remaining, bill.current_month_bill, [paid, amount])
        note_suffix = f" Notes: {notes}" if notes else ""
        if after.status == PAID:
            event_type = EventType.PAYMENT_RECEIVED
            details = f"Full payment received via {method}.{note_suffix}"
        else:
            event_type = EventType.PARTIAL_PAYMENT
            details = (
                f"Partial payment of Rs {amount:,} received via {method}. "
                f"Remaining: Rs {after.remaining:,}.{note_suffix}"
            )
        log_payment_event(
            event_type,
            admin_id=bill.admin_id,
            customer=bill.customer,
            bill=bill,
            payment_ref=payment.pk,
            amount=amount,
            details=details,
        )
        _notify_next_period(notifier, bill)

    logger.info("Recorded payment %s of %s on bill %s (%s)", payment.pk, amount, bill.pk, after.status)
    return payment


def delete_payment(principal, payment_id, *, notifier=None):
    """Remove a payment from an uninvoiced bill."""
    notifier = notifier or get_bill_sync_notifier()

    with transaction.atomic():
        payment = get_scoped(Payment.objects.all(), principal, payment_id, "Payment")
        # lock the bill, not just the payment: the balance belongs to the bill
        bill = Bill.objects.select_for_update().select_related("customer").get(pk=payment.bill_id)
        if bill.is_invoiced:
            raise FinanciallyLocked(
                "Cannot delete payment. This bill has an invoice generated. "
                "Please delete the invoice first.",
                bill_id=bill.pk,
                payment_id=payment.pk,
            )

        # Audit entry first, it outlives the payment row
        payment_pk, amount = payment.pk, payment.amount
        log_payment_event(
            EventType.PAYMENT_DELETED,
            admin_id=bill.admin_id,
            customer=bill.customer,
            bill=bill,
            payment_ref=payment_pk,
            amount=amount,
            details=f"Payment of Rs {amount:,} deleted",
        )
        payment.delete()
        _notify_next_period(notifier, bill)

    logger.info("Deleted payment %s of %s from bill %s", payment_pk, amount, bill.pk)
    return {"payment_id": payment_pk, "bill_id": bill.pk, "amount": amount}


def list_payments(principal, bill_id=None):
    payments = Payment.objects.for_principal(principal).select_related("bill", "bill__customer")
    if bill_id not in (None, ""):
        bill = get_scoped(Bill.objects.all(), principal, bill_id, "Bill")
        payments = payments.filter(bill=bill)
    return payments.order_by("-paid_on", "-pk")
