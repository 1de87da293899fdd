import datetime
import json

import pytest
from django.contrib.auth.models import AnonymousUser
from django.db import DatabaseError, IntegrityError
from django.test import RequestFactory

from billing_core.exceptions import PaymentExceedsRemaining
from billing_core.middleware import CurrentTenantMiddleware
from billing_core.models import Bill, DeliveryEntry
from billing_core.results import Result, as_result
from billing_core.views import (bill_detail_view, deliveries_view, generate_bills_view,
                                invoice_detail_view, invoices_view, payments_view)

from .helpers import deliver, make_customer, make_member, make_owner


def call(view, method, user, body=None, **kwargs):
    factory = RequestFactory()
    if method == "get":
        request = factory.get("/api/")
    else:
        data = json.dumps(body) if body is not None else ""
        request = getattr(factory, method)("/api/", data=data, content_type="application/json")
    request.user = user
    response = view(request, **kwargs)
    return response.status_code, json.loads(response.content)


@pytest.fixture
def tenant(db):
    owner = make_owner("owner")
    customer = make_customer(owner, 1, "Arham")
    deliver(customer, datetime.date(2025, 1, 10), 10, 500)
    bill = Bill.objects.create(admin=owner, customer=customer, bill_start_date=datetime.date(2025, 1, 1),
                               bill_end_date=datetime.date(2025, 1, 31), current_month_bill=5000, cylinders=10)
    return owner, customer, bill


@pytest.mark.django_db
def test_anonymous_requests_are_rejected():
    status, body = call(deliveries_view, "get", AnonymousUser())
    assert status == 401
    assert body["ok"] is False


def test_record_delivery(tenant):
    owner, customer, _ = tenant
    status, body = call(deliveries_view, "post", make_member(owner, "staff"), {
        "customer_id": customer.pk,
        "kind": "DELIVERED",
        "cylinder_label": "45.4 KG",
        "quantity": 2,
        "unit_price": 500,
        "delivery_date": "2025-01-12T09:30:00",
    })
    assert status == 201
    assert body["data"]["amount"] == 1000
    assert DeliveryEntry.objects.count() == 2


def test_malformed_json_is_a_validation_error(tenant):
    owner, _, _ = tenant
    request = RequestFactory().post("/api/payments/", data="{not json", content_type="application/json")
    request.user = owner
    response = payments_view(request)
    assert response.status_code == 400
    assert json.loads(response.content)["code"] == "validation_error"


def test_payment_over_remaining_reports_both_figures(tenant):
    owner, _, bill = tenant
    status, body = call(payments_view, "post", owner, {
        "bill_id": bill.pk, "amount": 6000, "paid_on": "2025-02-01", "method": "Cash",
    })
    assert status == 400
    assert body["code"] == "business_rule"
    assert body["context"] == {"amount": 6000, "remaining": 5000}


def test_bill_detail_shows_derived_status(tenant):
    owner, _, bill = tenant
    call(payments_view, "post", owner, {"bill_id": bill.pk, "amount": 2000, "paid_on": "2025-02-01",
                                        "method": "Cash"})
    status, body = call(bill_detail_view, "get", owner, bill_id=bill.pk)
    assert status == 200
    assert body["data"]["status"] == "PARTIALLY_PAID"
    assert body["data"]["remaining_amount"] == 3000
    assert body["data"]["invoice_number"] is None

    status, body = call(payments_view, "get", owner)
    assert status == 200
    assert [p["amount"] for p in body["data"]] == [2000]


def test_foreign_bill_is_not_found(tenant):
    _, _, bill = tenant
    status, body = call(bill_detail_view, "delete", make_owner("other"), bill_id=bill.pk)
    assert status == 404
    assert Bill.objects.filter(pk=bill.pk).exists()


def test_invoice_round_trip_and_locked_delete(tenant):
    owner, _, bill = tenant
    status, body = call(invoices_view, "post", owner, {"bill_id": bill.pk})
    assert status == 201
    number = body["data"]["invoice_number"]
    status, body = call(invoice_detail_view, "get", owner, invoice_key=number)
    assert (status, body["data"]["bill_id"]) == (200, bill.pk)

    status, body = call(bill_detail_view, "delete", owner, bill_id=bill.pk)
    assert status == 400
    assert "invoice" in body["error"]

    status, _ = call(invoice_detail_view, "delete", owner, invoice_key=number)
    assert status == 200
    status, _ = call(bill_detail_view, "delete", owner, bill_id=bill.pk)
    assert status == 200


def test_bulk_invoices_need_a_list(tenant):
    owner, _, bill = tenant
    status, body = call(invoices_view, "post", owner, {"bill_ids": bill.pk})
    assert status == 400
    status, body = call(invoices_view, "post", owner, {"bill_ids": [bill.pk]})
    assert status == 201
    assert body["data"][0]["ok"] is True


def test_generate_bills_without_customers(db):
    status, body = call(generate_bills_view, "post", make_member(make_owner("o"), "s"),
                        {"period_start": "2025-01-01", "period_end": "2025-01-31"})
    assert status == 400
    assert "No customers" in body["error"]


def test_generate_bills_view(tenant):
    owner, customer, _ = tenant
    status, body = call(generate_bills_view, "post", owner,
                        {"period_start": "2025-02-01", "period_end": "2025-02-28"})
    assert status == 201
    assert body["data"]["created"] == []
    assert body["data"]["skipped"] == [customer.pk]


def test_middleware_attaches_tenant(tenant):
    owner, _, _ = tenant
    middleware = CurrentTenantMiddleware(lambda request: None)
    request = RequestFactory().get("/")
    request.user = make_member(owner, "staff")
    middleware.process_request(request)
    assert request.tenant_id == owner.pk
    assert request.is_super_admin is False

    request.user = AnonymousUser()
    middleware.process_request(request)
    assert request.tenant_id is None


def test_as_result_maps_failures():
    @as_result
    def fails(exc):
        raise exc

    assert fails(PaymentExceedsRemaining("too much", amount=2, remaining=1)) == Result(
        ok=False, error="too much", code="business_rule", context={"amount": 2, "remaining": 1}
    )
    assert fails(IntegrityError("dup")).code == "conflict"
    assert fails(DatabaseError("down")).code == "infrastructure"
    with pytest.raises(KeyError):
        fails(KeyError("bug"))
