from typing import Optional

from ..models import Bill, PaymentLog

EventType = PaymentLog.EventType


def log_payment_event(
    event_type: str,
    *,
    admin_id: int,
    customer,
    bill: Optional[Bill] = None,
    bill_ref: Optional[int] = None,
    payment_ref: Optional[int] = None,
    bill_start_date=None,
    bill_end_date=None,
    amount: Optional[int] = None,
    details: Optional[str] = None,
) -> PaymentLog:
    """
    Central billing audit logger.

    Call it inside the same transaction as the write it describes, so the
    entry and the change commit or roll back together.
    """
    if bill is not None:
        bill_ref = bill_ref or bill.pk
        bill_start_date = bill_start_date or bill.bill_start_date
        bill_end_date = bill_end_date or bill.bill_end_date

    return PaymentLog.objects.create(
        admin_id=admin_id,
        event_type=event_type,
        bill=bill,
        bill_ref=bill_ref,
        payment_ref=payment_ref,
        customer_name=customer.name,
        customer_code=customer.customer_code,
        bill_start_date=bill_start_date,
        bill_end_date=bill_end_date,
        amount=amount,
        details=details,
    )


def log_bill_generated(bill, *, details=None):
    return log_payment_event(
        EventType.BILL_GENERATED,
        admin_id=bill.admin_id,
        customer=bill.customer,
        bill=bill,
        amount=bill.total_amount,
        details=details,
    )


def log_bill_updated(bill, *, details=None):
    return log_payment_event(
        EventType.BILL_UPDATED,
        admin_id=bill.admin_id,
        customer=bill.customer,
        bill=bill,
        amount=bill.total_amount,
        details=details,
    )


def log_invoice_event(event_type, invoice, *, details=None):
    bill = invoice.bill
    return log_payment_event(
        event_type,
        admin_id=invoice.admin_id,
        customer=bill.customer,
        bill=bill,
        amount=bill.total_amount,
        details=details,
    )
