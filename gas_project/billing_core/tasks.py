import logging

from celery import group, shared_task

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def generate_bill_for_customer_task(admin_id, customer_id, period_start, period_end):
    # import services lazily to avoid circular imports at module import time
    from .services.bills import generate_bill_for_customer
    from .services.periods import to_date

    bill, outcome = generate_bill_for_customer(
        admin_id, customer_id, to_date(period_start, "period_start"), to_date(period_end, "period_end")
    )
    return {"customer_id": customer_id, "outcome": outcome, "bill_id": bill.pk if bill else None}


@shared_task
def generate_bills_for_tenant_task(admin_id, period_start, period_end):
    """Fan out one generation task per customer of the tenant."""
    from .models import Customer

    customer_ids = list(
        Customer.objects.for_tenant(admin_id).order_by("customer_code").values_list("pk", flat=True)
    )
    logger.info("Queueing bill generation for %d customer(s) of tenant %s", len(customer_ids), admin_id)
    group(
        generate_bill_for_customer_task.s(admin_id, customer_id, period_start, period_end)
        for customer_id in customer_ids
    ).apply_async()
    return len(customer_ids)


@shared_task
def resync_customer_bills_task(admin_id, customer_id, period_hint):
    from .services.reconciliation import resync_bills_for_customer

    bill = resync_bills_for_customer(admin_id, customer_id, period_hint)
    return bill.pk if bill else None


@shared_task
def resync_month_bills_task(admin_id, month):
    from .services.reconciliation import resync_bills_for_month

    return resync_bills_for_month(admin_id, month)
