import logging
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce

from ..exceptions import InputValidationError, ReceivedExceedsDelivered
from ..models import Customer, DeliveryEntry, split_customer_reference
from .periods import day_window, local_midnight, period_window, to_date, to_datetime
from .reconciliation import get_bill_sync_notifier
from .tenant import get_scoped, tenant_id_for_create

logger = logging.getLogger(__name__)

# Operator-editable fields, in addition to the customer reference
ENTRY_FIELDS = [
    "kind", "cylinder_label", "quantity", "unit_price", "amount", "delivery_date",
    "verified", "empty_cylinder_received", "payment_type", "payment_amount",
    "payment_received_by", "delivered_by", "bill_created_by", "description",
]


# ----------------------------
# Input cleaning
# ----------------------------
def _whole_number(value, field, *, positive=False, required=True) -> Optional[int]:
    if value in (None, ""):
        if required:
            raise InputValidationError(f"{field} is required.", field=field)
        return None
    if isinstance(value, bool):
        raise InputValidationError(f"{field} must be a whole number.", field=field, value=value)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InputValidationError(f"{field} must be a whole number.", field=field, value=value)
    if number != value and str(number) != str(value).strip():
        raise InputValidationError(f"{field} must be a whole number.", field=field, value=value)
    if number < 0 or (positive and number == 0):
        limit = "greater than 0" if positive else "0 or more"
        raise InputValidationError(f"{field} must be {limit}.", field=field, value=number)
    return number


def _optional_text(value):
    # empty strings are stored as NULL
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def clean_entry_values(values) -> dict:
    """Validate operator input and return model field values."""
    kind = values.get("kind")
    if kind not in (DeliveryEntry.DELIVERED, DeliveryEntry.RECEIVED):
        raise InputValidationError(
            "Entry kind must be DELIVERED or RECEIVED.", field="kind", value=kind
        )

    label = (values.get("cylinder_label") or "").strip()
    if not label:
        raise InputValidationError("Cylinder label is required.", field="cylinder_label")

    unit_price = _whole_number(values.get("unit_price") or 0, "unit_price")
    empty_received = _whole_number(
        values.get("empty_cylinder_received"), "empty_cylinder_received", required=False
    )

    if kind == DeliveryEntry.RECEIVED:
        # empties received count as the entry's quantity
        requested = _whole_number(values.get("quantity"), "quantity", required=False)
        if empty_received and requested and requested != empty_received:
            raise InputValidationError(
                f"Quantity ({requested}) must match empty cylinders received ({empty_received}).",
                field="quantity", quantity=requested, empty_cylinder_received=empty_received,
            )
        quantity = _whole_number(
            empty_received or requested, "empty_cylinder_received", positive=True,
        )
        amount = _whole_number(values.get("amount") or 0, "amount")
        payment_amount = _whole_number(values.get("payment_amount"), "payment_amount", required=False)
    else:
        quantity = _whole_number(values.get("quantity"), "quantity", positive=True)
        amount = quantity * unit_price
        payment_amount = None
        empty_received = None

    return {
        "kind": kind,
        "cylinder_label": label,
        "quantity": quantity,
        "unit_price": unit_price,
        "amount": amount,
        "delivery_date": to_datetime(values.get("delivery_date"), "delivery_date"),
        "verified": bool(values.get("verified", False)),
        "empty_cylinder_received": empty_received or None,
        "payment_type": _optional_text(values.get("payment_type")) if kind == DeliveryEntry.RECEIVED else None,
        "payment_amount": payment_amount or None,
        "payment_received_by": (
            _optional_text(values.get("payment_received_by")) if kind == DeliveryEntry.RECEIVED else None
        ),
        "delivered_by": _optional_text(values.get("delivered_by")),
        "bill_created_by": (values.get("bill_created_by") or "").strip(),
        "description": _optional_text(values.get("description")),
    }


# ----------------------------
# Customer resolution
# ----------------------------
def resolve_customer(admin_id, customer_name) -> Optional[Customer]:
    """
    Look up a customer from a legacy "<code> · <name>" or bare name string.

    Unresolved references return None; the entry is kept unlinked and matched
    by name afterwards.
    """
    code, name = split_customer_reference(customer_name)
    if not name:
        return None
    customers = Customer.objects.for_tenant(admin_id)
    customer = None
    if code is not None:
        customer = customers.filter(customer_code=code, name=name).first()
    if customer is None:
        customer = customers.filter(name=name).order_by("customer_code").first()
    if customer is None:
        logger.warning("Customer reference %r not found in tenant %s; entry left unlinked",
                       customer_name, admin_id)
    return customer


def _customer_for_write(principal, values, admin_id=None):
    """
    (admin_id, customer, customer_name) for an entry written by ``principal``.

    ``admin_id`` pins the tenant of an existing entry.
    """
    customer_id = values.get("customer_id")
    customer_name = (values.get("customer_name") or "").strip()
    if customer_id not in (None, ""):
        # an explicit id must resolve, inside the principal's scope
        customer = get_scoped(Customer.objects.all(), principal, customer_id, "Customer")
        return customer.admin_id, customer, customer_name or customer.display_reference

    if not customer_name:
        raise InputValidationError("Customer is required.", field="customer_id")
    if admin_id is None:
        admin_id = tenant_id_for_create(principal)
    return admin_id, resolve_customer(admin_id, customer_name), customer_name


def _lock_scope(admin_id, *customers):
    # serialize balance checks per customer, per tenant for unlinked names
    customer_ids = sorted({customer.pk for customer in customers if customer is not None})
    if customer_ids:
        # always locked in pk order
        list(Customer.objects.select_for_update().filter(pk__in=customer_ids).order_by("pk"))
    if any(customer is None for customer in customers):
        get_user_model().objects.select_for_update().filter(pk=admin_id).first()


def ledger_totals(admin_id, customer, customer_name, *, exclude_pk=None):
    """(delivered, received) cylinder totals of a customer, leaving out ``exclude_pk``."""
    entries = (
        DeliveryEntry.objects.for_tenant(admin_id)
        .filter(DeliveryEntry.customer_q(customer, customer_name))
        .exclude(pk=exclude_pk)
    )
    delivered = entries.filter(kind=DeliveryEntry.DELIVERED).aggregate(
        total=Coalesce(Sum("quantity"), 0)
    )["total"]
    received = entries.filter(kind=DeliveryEntry.RECEIVED).aggregate(
        total=Coalesce(Sum("quantity"), 0)
    )["total"]
    return delivered, received


def check_received(admin_id, customer, customer_name, requested, *, exclude_pk=None):
    """Reject a RECEIVED quantity that would exceed what the customer was delivered."""
    # the entry being edited counts neither as delivered nor as received
    delivered, received = ledger_totals(admin_id, customer, customer_name, exclude_pk=exclude_pk)
    if received + requested > delivered:
        raise ReceivedExceedsDelivered(
            f"Cannot receive {requested} cylinders. Total received ({received + requested}) "
            f"would exceed total delivered ({delivered}).",
            requested=requested,
            received=received,
            delivered=delivered,
        )


def check_delivered_cover(admin_id, customer, customer_name, kept, *, exclude_pk):
    """
    Reject an edit of a DELIVERED entry that would leave the customer with more
    cylinders received than delivered. ``kept`` is what the edited entry still
    adds to the customer's delivered total (0 once it is moved or converted).
    """
    delivered, received = ledger_totals(admin_id, customer, customer_name, exclude_pk=exclude_pk)
    delivered += kept
    if received > delivered:
        raise ReceivedExceedsDelivered(
            f"Cannot change this delivery. Total received ({received}) "
            f"would exceed total delivered ({delivered}).",
            received=received,
            delivered=delivered,
        )


# ----------------------------
# Ledger operations
# ----------------------------
def record_delivery(principal, values, *, notifier=None) -> DeliveryEntry:
    """Create a DELIVERED or RECEIVED entry."""
    fields = clean_entry_values(values)
    notifier = notifier or get_bill_sync_notifier()

    with transaction.atomic():
        # Resolve tenant and customer
        admin_id, customer, customer_name = _customer_for_write(principal, values)
        # Pickups are checked against deliveries under the customer lock
        if fields["kind"] == DeliveryEntry.RECEIVED:
            _lock_scope(admin_id, customer)
            check_received(admin_id, customer, customer_name, fields["quantity"])

        entry = DeliveryEntry.objects.create(
            admin_id=admin_id, customer=customer, customer_name=customer_name, **fields
        )
        if entry.is_delivered:
            notifier.customer_changed(admin_id, entry.customer_id, entry.delivery_date)

    logger.info("Recorded %s entry %s: %s × %s for %r",
                entry.kind, entry.pk, entry.quantity, entry.cylinder_label, customer_name)
    return entry


def update_delivery(principal, entry_id, values, *, notifier=None) -> DeliveryEntry:
    """
    Edit an entry. Fields missing from ``values`` keep their stored value;
    passing a ``customer_name`` without ``customer_id`` re-resolves the customer.

    Every edit keeps received ≤ delivered for both the customer the entry
    leaves and the customer it ends up with.
    """
    notifier = notifier or get_bill_sync_notifier()

    with transaction.atomic():
        entry = get_scoped(DeliveryEntry.objects.select_for_update(), principal, entry_id, "Cylinder entry")
        old_kind, old_date = entry.kind, entry.delivery_date
        old_customer, old_customer_name = entry.customer, entry.customer_name

        # start from the stored values, then apply the edit
        merged = {name: getattr(entry, name) for name in ENTRY_FIELDS}
        merged.update(customer_id=entry.customer_id, customer_name=entry.customer_name)
        if "customer_name" in values and "customer_id" not in values:
            merged["customer_id"] = None
        elif "customer_id" in values and "customer_name" not in values:
            merged["customer_name"] = ""
        # quantity and empties received are one count; the field sent wins
        if "quantity" in values and "empty_cylinder_received" not in values:
            merged["empty_cylinder_received"] = values["quantity"]
        elif "empty_cylinder_received" in values and "quantity" not in values:
            merged["quantity"] = values["empty_cylinder_received"]
        merged.update(values)
        fields = clean_entry_values(merged)

        admin_id, customer, customer_name = _customer_for_write(principal, merged, entry.admin_id)
        if admin_id != entry.admin_id:
            raise InputValidationError(
                "Customer belongs to another tenant.", field="customer_id"
            )

        was_delivered = old_kind == DeliveryEntry.DELIVERED
        moved = _scope_key(old_customer, old_customer_name) != _scope_key(customer, customer_name)
        _lock_scope(admin_id, customer, *([old_customer] if moved else []))

        # the customer the entry ends up with
        if fields["kind"] == DeliveryEntry.RECEIVED:
            check_received(admin_id, customer, customer_name, fields["quantity"], exclude_pk=entry.pk)
        elif was_delivered:
            check_delivered_cover(admin_id, customer, customer_name, fields["quantity"], exclude_pk=entry.pk)
        # the customer the delivery was taken from
        if was_delivered and moved:
            check_delivered_cover(admin_id, old_customer, old_customer_name, 0, exclude_pk=entry.pk)

        entry.customer = customer
        entry.customer_name = customer_name
        for name, value in fields.items():
            setattr(entry, name, value)
        entry.save()

        # bills follow DELIVERED entries only
        old_customer_id = old_customer.pk if old_customer is not None else None
        if was_delivered and (
            old_customer_id != entry.customer_id or to_date(old_date) != to_date(entry.delivery_date)
            or not entry.is_delivered
        ):
            notifier.customer_changed(admin_id, old_customer_id, old_date)
        if entry.is_delivered:
            notifier.customer_changed(admin_id, entry.customer_id, entry.delivery_date)

    logger.info("Updated entry %s", entry.pk)
    return entry


def _scope_key(customer, customer_name):
    # linked entries balance per customer row, unlinked ones per name
    if customer is not None:
        return ("customer", customer.pk)
    return ("name", customer_name)


def delete_delivery(principal, entry_id, *, notifier=None):
    """
    Delete an entry. Deleting a DELIVERED entry also removes the RECEIVED
    entries logged against it: same tenant and local day, same label and
    unit price, same customer name (raw or without the code prefix).
    """
    notifier = notifier or get_bill_sync_notifier()

    with transaction.atomic():
        entry = get_scoped(DeliveryEntry.objects.select_for_update(), principal, entry_id, "Cylinder entry")
        admin_id = entry.admin_id
        delivered = entry.is_delivered
        delivery_date = entry.delivery_date
        entry.delete()

        # Pickups logged against the delivery go with it
        cascaded = 0
        if delivered:
            _, name_only = split_customer_reference(entry.customer_name)
            day_start, day_end = day_window(to_date(delivery_date))
            cascaded, _ = (
                DeliveryEntry.objects.for_tenant(admin_id)
                .filter(
                    kind=DeliveryEntry.RECEIVED,
                    delivery_date__gte=day_start,
                    delivery_date__lt=day_end,
                    cylinder_label=entry.cylinder_label,
                    unit_price=entry.unit_price,
                    customer_name__in={n for n in (entry.customer_name, name_only) if n},
                )
                .delete()
            )
            # resync every customer of that month
            notifier.month_changed(admin_id, delivery_date)

    logger.info("Deleted entry %s (%d matching received entries)", entry_id, cascaded)
    return {"entry_id": entry_id, "deleted_received": cascaded}


def get_delivery(principal, entry_id) -> DeliveryEntry:
    return get_scoped(DeliveryEntry.objects.select_related("customer"), principal, entry_id, "Cylinder entry")


def list_deliveries(principal, kind=None, customer_id=None, start=None, end=None, verified=None):
    """Tenant-scoped entries, newest first."""
    entries = DeliveryEntry.objects.for_principal(principal).select_related("customer")
    if kind:
        if kind not in (DeliveryEntry.DELIVERED, DeliveryEntry.RECEIVED):
            raise InputValidationError("Entry kind must be DELIVERED or RECEIVED.", field="kind", value=kind)
        entries = entries.filter(kind=kind)
    if customer_id not in (None, ""):
        customer = get_scoped(Customer.objects.all(), principal, customer_id, "Customer")
        entries = entries.filter(DeliveryEntry.customer_q(customer), admin_id=customer.admin_id)
    if start:
        entries = entries.filter(delivery_date__gte=local_midnight(to_date(start, "start")))
    if end:
        end_day = to_date(end, "end")
        entries = entries.filter(delivery_date__lt=period_window(end_day, end_day)[1])
    if verified is not None:
        entries = entries.filter(verified=verified)
    return entries.order_by("-delivery_date", "-pk")
