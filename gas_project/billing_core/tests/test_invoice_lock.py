import datetime
import re

from django.core.exceptions import ValidationError
from django.db.models import RestrictedError
from django.test import TestCase, override_settings
from django.utils import timezone

from billing_core.exceptions import AlreadyInvoiced, FinanciallyLocked, NotFoundError
from billing_core.models import Bill, Invoice, Payment, PaymentLog
from billing_core.services.bills import delete_bill
from billing_core.services.invoices import (delete_invoice, generate_invoice,
                                            generate_invoices, next_invoice_number)
from billing_core.services.payments import delete_payment, record_payment

from .helpers import RecordingNotifier, make_customer, make_owner

JAN_START = datetime.date(2025, 1, 1)
JAN_END = datetime.date(2025, 1, 31)


class InvoiceLockTests(TestCase):
    def setUp(self):
        self.owner = make_owner("owner")
        self.customer = make_customer(self.owner, 1, "Arham")
        self.bill = Bill.objects.create(admin=self.owner, customer=self.customer, bill_start_date=JAN_START,
                                        bill_end_date=JAN_END, current_month_bill=5000, cylinders=10)
        self.notifier = RecordingNotifier()
        # fully paid before any invoice
        self.payment = record_payment(self.owner, self.bill.pk, 5000, "2025-02-01", "Cash",
                                      notifier=self.notifier)

    def test_invoice_freezes_payments_until_withdrawn(self):
        invoice = generate_invoice(self.owner, self.bill.pk)
        self.assertRegex(invoice.invoice_number, r"^INV-\d{8}-00001$")
        self.assertEqual(invoice.generated_by, self.owner)

        with self.assertRaises(FinanciallyLocked):
            delete_payment(self.owner, self.payment.pk, notifier=self.notifier)
        self.assertTrue(Payment.objects.filter(pk=self.payment.pk).exists())

        delete_invoice(self.owner, invoice.invoice_number)
        delete_payment(self.owner, self.payment.pk, notifier=self.notifier)
        self.assertFalse(Payment.objects.exists())

        events = list(PaymentLog.objects.order_by("pk").values_list("event_type", flat=True))
        self.assertEqual(events, [
            PaymentLog.EventType.PAYMENT_RECEIVED,
            PaymentLog.EventType.INVOICE_GENERATED,
            PaymentLog.EventType.INVOICE_DELETED,
            PaymentLog.EventType.PAYMENT_DELETED,
        ])

    def test_every_mutation_is_rejected_while_invoiced(self):
        generate_invoice(self.owner, self.bill.pk)

        with self.assertRaises(FinanciallyLocked):
            record_payment(self.owner, self.bill.pk, 1, "2025-02-02", "Cash", notifier=self.notifier)
        with self.assertRaises(FinanciallyLocked):
            delete_payment(self.owner, self.payment.pk, notifier=self.notifier)
        with self.assertRaises(FinanciallyLocked):
            delete_bill(self.owner, self.bill.pk)
        self.assertEqual(self.notifier.customer_calls, [(self.owner.pk, self.customer.pk, datetime.date(2025, 2, 1))])

    def test_lock_holds_outside_the_services(self):
        generate_invoice(self.owner, self.bill.pk)

        with self.assertRaises(FinanciallyLocked):
            Payment.objects.filter(bill=self.bill).delete()
        with self.assertRaises(FinanciallyLocked):
            Payment.objects.create(admin=self.owner, bill=self.bill, amount=1,
                                   paid_on=timezone.now(), method="Cash")
        with self.assertRaises(RestrictedError):
            Bill.objects.get(pk=self.bill.pk).delete()

        bill = Bill.objects.get(pk=self.bill.pk)
        bill.current_month_bill = 1
        with self.assertRaises(ValidationError):
            bill.save()

    def test_second_invoice_is_rejected(self):
        invoice = generate_invoice(self.owner, self.bill.pk)
        with self.assertRaises(AlreadyInvoiced) as ctx:
            generate_invoice(self.owner, self.bill.pk)
        self.assertEqual(ctx.exception.context["invoice_number"], invoice.invoice_number)
        self.assertEqual(Invoice.objects.count(), 1)

    def test_delete_invoice_by_pk_and_foreign_lookup(self):
        invoice = generate_invoice(self.owner, self.bill.pk)
        other = make_owner("other")
        with self.assertRaises(NotFoundError):
            delete_invoice(other, invoice.pk)
        with self.assertRaises(NotFoundError):
            delete_invoice(other, invoice.invoice_number)

        result = delete_invoice(self.owner, str(invoice.pk))
        self.assertEqual(result["bill_id"], self.bill.pk)
        self.assertFalse(Invoice.objects.exists())


class InvoiceNumberTests(TestCase):
    def setUp(self):
        self.owner = make_owner("owner")
        self.customer = make_customer(self.owner, 1, "Arham")

    def make_bill(self, month):
        start = datetime.date(2025, month, 1)
        return Bill.objects.create(admin=self.owner, customer=self.customer, bill_start_date=start,
                                   bill_end_date=start + datetime.timedelta(days=20), current_month_bill=100)

    def test_numbers_are_sequenced_per_day(self):
        first = generate_invoice(self.owner, self.make_bill(1).pk)
        second = generate_invoice(self.owner, self.make_bill(2).pk)
        day = timezone.localdate().strftime("%Y%m%d")
        self.assertEqual(first.invoice_number, f"INV-{day}-00001")
        self.assertEqual(second.invoice_number, f"INV-{day}-00002")

    def test_sequence_restarts_on_a_new_day(self):
        Invoice.objects.create(admin=self.owner, bill=self.make_bill(1), customer=self.customer,
                               invoice_number="INV-20250101-00041")
        self.assertEqual(next_invoice_number(datetime.date(2025, 1, 1)), "INV-20250101-00042")
        self.assertEqual(next_invoice_number(datetime.date(2025, 1, 2)), "INV-20250102-00001")

    @override_settings(BILLING={"INVOICE_PREFIX": "GAS"})
    def test_prefix_comes_from_settings(self):
        self.assertTrue(re.match(r"^GAS-\d{8}-00001$", next_invoice_number()))

    def test_bulk_generation_reports_each_bill(self):
        mine = self.make_bill(1)
        other = make_owner("other")
        foreign_bill = Bill.objects.create(
            admin=other, customer=make_customer(other, 1, "Bilal"),
            bill_start_date=JAN_START, bill_end_date=JAN_END, current_month_bill=100,
        )
        results = generate_invoices(self.owner, [mine.pk, foreign_bill.pk, mine.pk])

        self.assertEqual([r["ok"] for r in results], [True, False, False])
        self.assertEqual(results[1]["code"], "not_found")
        self.assertEqual(results[2]["code"], "business_rule")
        self.assertFalse(Invoice.objects.filter(bill=foreign_bill).exists())
