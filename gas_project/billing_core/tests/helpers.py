import datetime

from billing_core.models import Customer, DeliveryEntry, User
from billing_core.services.periods import local_midnight
from billing_core.services.reconciliation import BillSyncNotifier

LABEL = "45.4 KG"


class RecordingNotifier(BillSyncNotifier):
    """Collects resync requests instead of acting on them."""

    def __init__(self):
        self.customer_calls = []
        self.month_calls = []

    def customer_changed(self, admin_id, customer_id, period_hint):
        self.customer_calls.append((admin_id, customer_id, period_hint))

    def month_changed(self, admin_id, month):
        self.month_calls.append((admin_id, month))


def make_owner(username):
    return User.objects.create_user(username=username, password="pw", role=User.ADMIN)


def make_member(owner, username, role=User.STAFF):
    return User.objects.create_user(username=username, password="pw", role=role, admin=owner)


def make_super_admin(username="root"):
    return User.objects.create_superuser(username=username, password="pw")


def make_customer(owner, code, name):
    return Customer.objects.create(admin=owner, customer_code=code, name=name)


def at(day, hour=10):
    """Aware datetime at ``hour`` local time on ``day``."""
    return local_midnight(day) + datetime.timedelta(hours=hour)


def deliver(customer, day, quantity, unit_price, hour=10, label=LABEL):
    return DeliveryEntry.objects.create(
        admin_id=customer.admin_id,
        customer=customer,
        customer_name=customer.display_reference,
        kind=DeliveryEntry.DELIVERED,
        cylinder_label=label,
        quantity=quantity,
        unit_price=unit_price,
        delivery_date=at(day, hour),
    )


def receive(customer, day, quantity, unit_price=0, hour=16, label=LABEL, customer_name=None):
    return DeliveryEntry.objects.create(
        admin_id=customer.admin_id,
        customer=customer,
        customer_name=customer_name or customer.display_reference,
        kind=DeliveryEntry.RECEIVED,
        cylinder_label=label,
        quantity=quantity,
        unit_price=unit_price,
        empty_cylinder_received=quantity,
        delivery_date=at(day, hour),
    )
