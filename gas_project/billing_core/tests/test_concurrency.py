import datetime
import threading

from django.db import connection
from django.test import TransactionTestCase, skipUnlessDBFeature

from billing_core.exceptions import BillingError, ConcurrencyConflict, PaymentExceedsRemaining
from billing_core.models import Bill, Payment
from billing_core.services.bills import CREATED, EXISTS, generate_bill_for_customer
from billing_core.services.payments import record_payment

from .helpers import RecordingNotifier, deliver, make_customer, make_owner

JAN_START = datetime.date(2025, 1, 1)
JAN_END = datetime.date(2025, 1, 31)


def run_together(func, *calls):
    """Run ``func`` once per argument tuple, each in its own thread and connection."""
    barrier = threading.Barrier(len(calls))
    outcomes = []

    def worker(args):
        try:
            # start every call at the same moment
            barrier.wait()
            outcomes.append(func(*args))
        except BillingError as exc:
            outcomes.append(exc)
        finally:
            connection.close()

    threads = [threading.Thread(target=worker, args=(args,)) for args in calls]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return outcomes


# Row locks (select_for_update) only serialize on backends that support them
@skipUnlessDBFeature("has_select_for_update")
class ConcurrentWriteTests(TransactionTestCase):

    def setUp(self):
        self.owner = make_owner("owner")
        self.customer = make_customer(self.owner, 1, "Arham")
        deliver(self.customer, datetime.date(2025, 1, 10), 10, 500)

    def test_concurrent_payments_never_exceed_the_bill(self):
        bill = Bill.objects.create(admin=self.owner, customer=self.customer, bill_start_date=JAN_START,
                                   bill_end_date=JAN_END, current_month_bill=5000, cylinders=10)
        notifier = RecordingNotifier()

        def pay(amount):
            return record_payment(self.owner, bill.pk, amount, "2025-02-01", "Cash", notifier=notifier)

        outcomes = run_together(pay, (3000,), (3000,))

        payments = [o for o in outcomes if isinstance(o, Payment)]
        errors = [o for o in outcomes if isinstance(o, BillingError)]
        self.assertEqual(len(payments), 1)
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], (PaymentExceedsRemaining, ConcurrencyConflict))
        self.assertEqual(Payment.objects.filter(bill=bill).count(), 1)
        bill.refresh_from_db()
        self.assertEqual(bill.remaining_amount, 2000)

    def test_concurrent_generation_creates_one_bill(self):
        args = (self.owner.pk, self.customer.pk, JAN_START, JAN_END)

        outcomes = run_together(generate_bill_for_customer, args, args)

        created = [o for o in outcomes if isinstance(o, tuple) and o[1] == CREATED]
        self.assertEqual(len(created), 1)
        other = next(o for o in outcomes if o is not created[0])
        if isinstance(other, tuple):
            self.assertEqual(other, (created[0][0], EXISTS))
        else:
            self.assertIsInstance(other, ConcurrencyConflict)
        self.assertEqual(Bill.objects.filter(customer=self.customer).count(), 1)
