import datetime
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from billing_core import tasks
from billing_core.models import Bill, Customer, DeliveryEntry, User
from billing_core.services.bills import generate_bills

from .helpers import deliver, make_customer, make_owner

JAN_START = datetime.date(2025, 1, 1)
JAN_END = datetime.date(2025, 1, 31)


class CreateDemoTenantTests(TestCase):

    def run_command(self, *args):
        out = StringIO()
        call_command("create_demo_tenant", *args, stdout=out)
        return out.getvalue()

    def test_demo_month_is_billable(self):
        output = self.run_command("--month", "2025-01-15")

        owner = User.objects.get(username="demo")
        self.assertEqual(owner.role, User.ADMIN)
        self.assertEqual(User.objects.get(username="demo-staff").admin, owner)
        self.assertEqual(Customer.objects.for_tenant(owner.pk).count(), 3)
        # five weekly rounds, each a delivery and a pickup
        self.assertEqual(DeliveryEntry.objects.count(), 30)
        self.assertIn("Created 30 delivery entries for January 2025", output)

        report = generate_bills(owner, JAN_START, JAN_END)
        self.assertEqual(len(report.created), 3)
        arham = Bill.objects.get(customer__name="Arham Traders")
        self.assertEqual((arham.cylinders, arham.current_month_bill), (50, 25000))

    def test_rerun_reuses_customers(self):
        self.run_command("--month", "2025-01-15")
        self.run_command("--month", "2025-02-15")
        self.assertEqual(Customer.objects.count(), 3)
        self.assertEqual(list(Customer.objects.order_by("customer_code").values_list("customer_code", flat=True)),
                         [1, 2, 3])

    def test_invalid_month(self):
        with self.assertRaises(CommandError):
            self.run_command("--month", "January")

    def test_existing_non_owner_is_refused(self):
        owner = make_owner("boss")
        User.objects.create_user(username="clerk", password="pw", role=User.STAFF, admin=owner)
        with self.assertRaises(CommandError):
            self.run_command("--username", "clerk", "--month", "2025-01-15")
        self.assertFalse(DeliveryEntry.objects.exists())


class TaskTests(TestCase):
    def setUp(self):
        self.owner = make_owner("owner")
        self.customer = make_customer(self.owner, 1, "Arham")
        deliver(self.customer, datetime.date(2025, 1, 10), 4, 500)

    def test_single_customer_task(self):
        result = tasks.generate_bill_for_customer_task(self.owner.pk, self.customer.pk, "2025-01-01", "2025-01-31")
        bill = Bill.objects.get()
        self.assertEqual(result, {"customer_id": self.customer.pk, "outcome": "created", "bill_id": bill.pk})

    def test_tenant_task_fans_out_per_customer(self):
        idle = make_customer(self.owner, 2, "Idle")
        with mock.patch.object(tasks, "group") as fan_out:
            queued = tasks.generate_bills_for_tenant_task(self.owner.pk, "2025-01-01", "2025-01-31")

        self.assertEqual(queued, 2)
        signatures = list(fan_out.call_args.args[0])
        self.assertEqual([s.args[1] for s in signatures], [self.customer.pk, idle.pk])
        fan_out.return_value.apply_async.assert_called_once_with()

    def test_resync_tasks(self):
        bill_pk = tasks.resync_customer_bills_task(self.owner.pk, self.customer.pk, "2025-01-10")
        self.assertEqual(Bill.objects.get().pk, bill_pk)
        self.assertEqual(tasks.resync_month_bills_task(self.owner.pk, "2025-01-10"),
                         {"customers": 1, "failed": {}})
