"""
Keeps bills in step with the delivery ledger after deliveries or payments change.

Deliveries and payments never write bills themselves; they hand the affected
customer and date to a ``BillSyncNotifier`` which re-aggregates once the
surrounding transaction has committed.
"""
import logging
from functools import partial

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils.module_loading import import_string

from ..exceptions import BillingError, ConcurrencyConflict
from ..models import Bill, Customer
from .bills import carried_balance, delivered_totals
from .payment_logs import log_bill_generated, log_bill_updated
from .periods import month_bounds, to_date

logger = logging.getLogger(__name__)

DEFAULT_NOTIFIER = "billing_core.services.reconciliation.InlineBillSyncNotifier"


def resync_bill(bill):
    """
    Re-aggregate an existing bill from the ledger.

    Invoiced bills are left as issued. Returns True when figures changed.
    """
    if bill.is_invoiced:
        logger.warning("Bill %s is invoiced; skipping resync", bill.pk)
        return False

    # Recompute the figures from the ledger
    customer = bill.customer
    totals = delivered_totals(bill.admin_id, customer, bill.bill_start_date, bill.bill_end_date)
    carried = carried_balance(customer, bill.bill_start_date)

    # Nothing to write when nothing changed
    before = (bill.last_month_remaining, bill.current_month_bill, bill.cylinders)
    after = (carried, totals["amount"], totals["quantity"])
    if before == after:
        return False

    bill.last_month_remaining, bill.current_month_bill, bill.cylinders = after
    bill.save(update_fields=["last_month_remaining", "current_month_bill", "cylinders", "updated_at"])
    log_bill_updated(
        bill,
        details=(
            f"Bill re-synced from deliveries: {before[2]} → {after[2]} cylinder(s), "
            f"total {before[0] + before[1]} → {after[0] + after[1]}."
        ),
    )
    logger.info("Resynced bill %s: %s -> %s", bill.pk, before, after)
    return True


def resync_bills_for_customer(admin_id, customer_id, period_hint):
    """
    Bring the customer's bill around ``period_hint`` up to date.

    The bill whose period contains the hint is re-aggregated; without one,
    a bill for the calendar month of the hint is created when that month has
    deliveries. Returns the affected bill or None.
    """
    hint = to_date(period_hint, "period_hint")
    with transaction.atomic():
        customer = (
            Customer.objects.for_tenant(admin_id)
            .select_for_update()
            .filter(pk=customer_id)
            .first()
        )
        if customer is None:
            logger.warning("Cannot resync bills: customer %s not in tenant %s", customer_id, admin_id)
            return None

        bill = (
            Bill.objects.select_for_update()
            .filter(customer=customer, bill_start_date__lte=hint, bill_end_date__gte=hint)
            .order_by("-bill_start_date", "-pk")
            .first()
        )
        # Existing bill around the hint: refresh it
        if bill is not None:
            resync_bill(bill)
            return bill

        # No bill yet: the calendar month of the hint
        start, end = month_bounds(hint)
        # custom-period bills already cover part of the month
        if Bill.objects.filter(customer=customer, bill_start_date__lte=end, bill_end_date__gte=start).exists():
            return None
        # Months without deliveries get no bill
        totals = delivered_totals(admin_id, customer, start, end)
        if totals["quantity"] == 0 and totals["amount"] == 0:
            return None

        try:
            bill = Bill.objects.create(
                admin_id=customer.admin_id,
                customer=customer,
                bill_start_date=start,
                bill_end_date=end,
                last_month_remaining=carried_balance(customer, start),
                current_month_bill=totals["amount"],
                cylinders=totals["quantity"],
            )
        except IntegrityError as exc:
            raise ConcurrencyConflict(
                f"A bill for {customer.name} and this period was created by another request.",
                customer_id=customer.pk,
            ) from exc

        log_bill_generated(
            bill,
            details=(
                f"Bill auto-generated from {totals['entries']} cylinder delivery(ies) "
                f"totaling {totals['quantity']} cylinder(s)."
            ),
        )
    logger.info("Auto-generated bill %s for customer %s (%s..%s)", bill.pk, customer_id, start, end)
    return bill


def resync_bills_for_month(admin_id, month):
    """Resync every customer of the tenant for the month containing ``month``."""
    hint = to_date(month, "month")
    customer_ids = list(
        Customer.objects.for_tenant(admin_id).order_by("customer_code").values_list("pk", flat=True)
    )
    failed = {}
    for customer_id in customer_ids:
        try:
            resync_bills_for_customer(admin_id, customer_id, hint)
        except BillingError as exc:
            logger.warning("Resync failed for customer %s: %s", customer_id, exc)
            failed[customer_id] = exc.message
    return {"customers": len(customer_ids), "failed": failed}


# ----------------------------
# Notifiers
# ----------------------------
class BillSyncNotifier:
    """Receives ledger changes that may leave bills stale."""

    def customer_changed(self, admin_id, customer_id, period_hint):
        raise NotImplementedError

    def month_changed(self, admin_id, month):
        raise NotImplementedError


class InlineBillSyncNotifier(BillSyncNotifier):
    """Resyncs in-process once the triggering transaction commits."""

    def customer_changed(self, admin_id, customer_id, period_hint):
        if customer_id is None:
            return
        transaction.on_commit(
            partial(self._run, resync_bills_for_customer, admin_id, customer_id, period_hint),
            robust=True,
        )

    def month_changed(self, admin_id, month):
        transaction.on_commit(
            partial(self._run, resync_bills_for_month, admin_id, month),
            robust=True,
        )

    @staticmethod
    def _run(func, *args):
        # runs after commit; failures are logged, never raised
        try:
            func(*args)
        except BillingError as exc:
            logger.warning("Bill resync %s%r failed: %s", func.__name__, args, exc)


class CeleryBillSyncNotifier(BillSyncNotifier):
    """Enqueues resync tasks once the triggering transaction commits."""

    def customer_changed(self, admin_id, customer_id, period_hint):
        if customer_id is None:
            return
        from ..tasks import resync_customer_bills_task  # avoid cyclic import

        hint = to_date(period_hint, "period_hint").isoformat()
        transaction.on_commit(
            lambda: resync_customer_bills_task.delay(admin_id, customer_id, hint)
        )

    def month_changed(self, admin_id, month):
        from ..tasks import resync_month_bills_task

        month = to_date(month, "month").isoformat()
        transaction.on_commit(lambda: resync_month_bills_task.delay(admin_id, month))


def get_bill_sync_notifier() -> BillSyncNotifier:
    path = getattr(settings, "BILLING", {}).get("SYNC_NOTIFIER", DEFAULT_NOTIFIER)
    return import_string(path)()
