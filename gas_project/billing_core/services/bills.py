import logging
from dataclasses import dataclass, field
from typing import Dict, List

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Count, Sum
from django.db.models.functions import Coalesce

from ..exceptions import (BillingError, ConcurrencyConflict, FinanciallyLocked,
                          InputValidationError, NotFoundError)
from ..models import Bill, Customer, DeliveryEntry
from .payment_logs import EventType, log_bill_generated, log_payment_event
from .periods import period_window, to_date
from .tenant import get_scoped

logger = logging.getLogger(__name__)

CREATED = "created"
EXISTS = "exists"
NO_DELIVERIES = "no_deliveries"


@dataclass
class BillGenerationReport:
    """Per-customer outcome of one bulk generation run."""
    period_start: object
    period_end: object
    created: List[Bill] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)

    @property
    def ok(self):
        return not self.failed

    def as_dict(self):
        return {
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "created": [bill.pk for bill in self.created],
            "skipped": self.skipped,
            "failed": {str(k): v for k, v in self.failed.items()},
        }


# ----------------------------
# Aggregation helpers
# ----------------------------
def delivered_totals(admin_id, customer, start, end):
    """(quantity, amount, entry count) of DELIVERED entries from start through end."""
    window_start, window_end = period_window(start, end)
    return (
        DeliveryEntry.objects.for_tenant(admin_id)
        .filter(
            DeliveryEntry.customer_q(customer),
            kind=DeliveryEntry.DELIVERED,
            delivery_date__gte=window_start,
            delivery_date__lt=window_end,
        )
        .aggregate(
            quantity=Coalesce(Sum("quantity"), 0),
            amount=Coalesce(Sum("amount"), 0),
            entries=Count("pk"),
        )
    )


def carried_balance(customer, before) -> int:
    """Unpaid balance of the customer's most recent bill ending before ``before``."""
    previous = (
        Bill.objects.for_tenant(customer.admin_id)
        .filter(customer=customer, bill_end_date__lt=before)
        .order_by("-bill_end_date", "-pk")
        .prefetch_related("payments")
        .first()
    )
    if previous is None:
        return 0
    return previous.remaining_amount


# ----------------------------
# Generation
# ----------------------------
def generate_bill_for_customer(admin_id, customer_id, period_start, period_end):
    """
    Create the bill of one customer for one period.

    Returns (bill, outcome); outcome is CREATED, EXISTS or NO_DELIVERIES.
    The existence check and the insert share one transaction holding the
    customer row lock.
    """
    with transaction.atomic():
        # 1. Lock the customer row
        customer = (
            Customer.objects.for_tenant(admin_id)
            .select_for_update()
            .filter(pk=customer_id)
            .first()
        )
        if customer is None:
            raise NotFoundError("Customer not found.", customer_id=customer_id)

        # 2. One bill per customer and period
        existing = Bill.objects.filter(
            customer=customer, bill_start_date=period_start, bill_end_date=period_end
        ).first()
        if existing is not None:
            return existing, EXISTS

        # 3. Sum the DELIVERED entries of the period
        totals = delivered_totals(admin_id, customer, period_start, period_end)
        # inactive customers get no bill
        if totals["quantity"] == 0 and totals["amount"] == 0:
            return None, NO_DELIVERIES

        # 4. Create the bill, carrying the previous unpaid balance
        try:
            bill = Bill.objects.create(
                admin_id=customer.admin_id,
                customer=customer,
                bill_start_date=period_start,
                bill_end_date=period_end,
                last_month_remaining=carried_balance(customer, period_start),
                current_month_bill=totals["amount"],
                cylinders=totals["quantity"],
            )
        except IntegrityError as exc:
            raise ConcurrencyConflict(
                f"A bill for {customer.name} and this period was created by another request.",
                customer_id=customer.pk,
            ) from exc

        # 5. Audit entry, same transaction as the bill
        log_bill_generated(
            bill,
            details=(
                f"Bill generated from {totals['entries']} cylinder delivery(ies) "
                f"totaling {totals['quantity']} cylinder(s)."
            ),
        )

    logger.info(
        "Generated bill %s for customer %s (%s..%s): total %s",
        bill.pk, customer.pk, period_start, period_end, bill.total_amount,
    )
    return bill, CREATED


def generate_bills(principal, period_start, period_end) -> BillGenerationReport:
    """
    Generate one bill per customer in scope with deliveries in the period.

    Each customer runs in its own transaction; a failure is recorded in the
    report and never stops the remaining customers.
    """
    start = to_date(period_start, "period_start")
    end = to_date(period_end, "period_end")
    if start >= end:
        raise InputValidationError(
            "Invalid billing range. End date must be after start date.",
            period_start=start.isoformat(),
            period_end=end.isoformat(),
        )

    # Customers in scope, grouped per tenant
    customers = list(
        Customer.objects.for_principal(principal)
        .order_by("admin_id", "customer_code")
        .values_list("pk", "admin_id")
    )
    if not customers:
        raise InputValidationError(
            "No customers found. Please add customers before generating bills."
        )

    report = BillGenerationReport(period_start=start, period_end=end)
    for customer_id, admin_id in customers:
        # each customer commits or fails on its own
        try:
            bill, outcome = generate_bill_for_customer(admin_id, customer_id, start, end)
        except BillingError as exc:
            logger.warning("Bill generation failed for customer %s: %s", customer_id, exc)
            report.failed[customer_id] = exc.message
            continue
        except DatabaseError:
            logger.exception("Bill generation failed for customer %s", customer_id)
            report.failed[customer_id] = "Database error while generating the bill."
            continue

        if outcome == CREATED:
            report.created.append(bill)
        else:
            report.skipped.append(customer_id)

    logger.info(
        "Bill generation %s..%s: %d created, %d skipped, %d failed",
        start, end, len(report.created), len(report.skipped), len(report.failed),
    )
    return report


# ----------------------------
# Lookup / deletion
# ----------------------------
def get_bill(principal, bill_id) -> Bill:
    queryset = Bill.objects.select_related("customer").prefetch_related("payments")
    return get_scoped(queryset, principal, bill_id, "Bill")


def delete_bill(principal, bill_id):
    """Delete an uninvoiced bill together with its payments."""
    with transaction.atomic():
        bill = get_scoped(Bill.objects.select_for_update(), principal, bill_id, "Bill")
        if bill.is_invoiced:
            raise FinanciallyLocked(
                "Cannot delete bill. This bill has an invoice generated. "
                "Please delete the invoice first to modify or delete the bill.",
                bill_id=bill.pk,
                invoice_number=bill.invoice.invoice_number,
            )

        # keep what the audit entry needs before the row goes
        customer = bill.customer
        total = bill.total_amount
        bill_pk = bill.pk

        # The log entry outlives the bill (its FK is cleared, bill_ref stays)
        log_payment_event(
            EventType.BILL_DELETED,
            admin_id=bill.admin_id,
            customer=customer,
            bill=bill,
            amount=total,
            details=f"Bill deleted for {customer.name}",
        )
        # payments first: Payment.bill is RESTRICT
        deleted_payments, _ = bill.payments.all().delete()
        bill.delete()

    logger.info("Deleted bill %s with %d payment(s)", bill_pk, deleted_payments)
    return {"bill_id": bill_pk, "deleted_payments": deleted_payments}
