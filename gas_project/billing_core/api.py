"""
Public operations of the billing engine.

Every call takes the acting principal explicitly and returns a ``Result``;
services raise, this layer never does for expected failures.
"""
from .results import as_result
from .services import bills, deliveries, invoices, payments
from .services.tenant import can_access, resolve_tenant, tenant_filter, tenant_id_for_create  # noqa: F401


# ----------------------------
# Serialization
# ----------------------------
def _iso(value):
    return value.isoformat() if value is not None else None


def entry_to_dict(entry):
    return {
        "id": entry.pk,
        "admin_id": entry.admin_id,
        "customer_id": entry.customer_id,
        "customer_name": entry.customer_name,
        "kind": entry.kind,
        "cylinder_label": entry.cylinder_label,
        "quantity": entry.quantity,
        "unit_price": entry.unit_price,
        "amount": entry.amount,
        "delivery_date": _iso(entry.delivery_date),
        "verified": entry.verified,
        "empty_cylinder_received": entry.empty_cylinder_received,
        "payment_type": entry.payment_type,
        "payment_amount": entry.payment_amount,
        "payment_received_by": entry.payment_received_by,
        "delivered_by": entry.delivered_by,
        "bill_created_by": entry.bill_created_by,
        "description": entry.description,
    }


def bill_to_dict(bill):
    totals = bill.totals()
    return {
        "id": bill.pk,
        "admin_id": bill.admin_id,
        "customer_id": bill.customer_id,
        "customer_name": bill.customer.name,
        "customer_code": bill.customer.customer_code,
        "bill_start_date": _iso(bill.bill_start_date),
        "bill_end_date": _iso(bill.bill_end_date),
        "last_month_remaining": bill.last_month_remaining,
        "current_month_bill": bill.current_month_bill,
        "cylinders": bill.cylinders,
        "total_amount": totals.total,
        "paid_amount": totals.paid,
        "remaining_amount": totals.remaining,
        "status": totals.status,
        "invoice_number": bill.invoice.invoice_number if bill.is_invoiced else None,
    }


def payment_to_dict(payment):
    return {
        "id": payment.pk,
        "bill_id": payment.bill_id,
        "amount": payment.amount,
        "paid_on": _iso(payment.paid_on),
        "method": payment.method,
        "notes": payment.notes,
    }


def invoice_to_dict(invoice):
    return {
        "id": invoice.pk,
        "invoice_number": invoice.invoice_number,
        "bill_id": invoice.bill_id,
        "customer_id": invoice.customer_id,
        "generated_at": _iso(invoice.generated_at),
    }


# ----------------------------
# Delivery ledger
# ----------------------------
@as_result
def record_delivery(principal, values):
    return entry_to_dict(deliveries.record_delivery(principal, values))


@as_result
def update_delivery(principal, entry_id, values):
    return entry_to_dict(deliveries.update_delivery(principal, entry_id, values))


@as_result
def delete_delivery(principal, entry_id):
    return deliveries.delete_delivery(principal, entry_id)


@as_result
def get_delivery(principal, entry_id):
    return entry_to_dict(deliveries.get_delivery(principal, entry_id))


@as_result
def list_deliveries(principal, **filters):
    return [entry_to_dict(e) for e in deliveries.list_deliveries(principal, **filters)]


# ----------------------------
# Bills
# ----------------------------
@as_result
def generate_bills(principal, period_start, period_end):
    return bills.generate_bills(principal, period_start, period_end).as_dict()


@as_result
def get_bill(principal, bill_id):
    return bill_to_dict(bills.get_bill(principal, bill_id))


@as_result
def delete_bill(principal, bill_id):
    return bills.delete_bill(principal, bill_id)


# ----------------------------
# Payments
# ----------------------------
@as_result
def record_payment(principal, bill_id, amount, paid_on, method, notes=None):
    return payment_to_dict(payments.record_payment(principal, bill_id, amount, paid_on, method, notes))


@as_result
def delete_payment(principal, payment_id):
    return payments.delete_payment(principal, payment_id)


@as_result
def list_payments(principal, bill_id=None):
    return [payment_to_dict(p) for p in payments.list_payments(principal, bill_id)]


# ----------------------------
# Invoices
# ----------------------------
@as_result
def generate_invoice(principal, bill_id):
    return invoice_to_dict(invoices.generate_invoice(principal, bill_id))


@as_result
def generate_invoices(principal, bill_ids):
    return invoices.generate_invoices(principal, bill_ids)


@as_result
def get_invoice(principal, invoice_id_or_number):
    return invoice_to_dict(invoices.get_invoice(principal, invoice_id_or_number))


@as_result
def delete_invoice(principal, invoice_id_or_number):
    return invoices.delete_invoice(principal, invoice_id_or_number)
