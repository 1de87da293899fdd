import datetime
import json
import random

import pytest
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError
from django.test import RequestFactory, TestCase

from billing_core.exceptions import NotFoundError, TenantResolutionError
from billing_core.models import Bill, Customer, DeliveryEntry, User
from billing_core.services.tenant import (can_access, get_scoped, resolve_tenant,
                                          tenant_filter, tenant_id_for_create)
from billing_core.views import deliveries_view

from .helpers import deliver, make_customer, make_member, make_owner, make_super_admin


class TenantResolverTests(TestCase):
    def setUp(self):
        self.owner_a = make_owner("owner-a")
        self.owner_b = make_owner("owner-b")
        self.staff_a = make_member(self.owner_a, "staff-a")
        self.viewer_b = make_member(self.owner_b, "viewer-b", role=User.VIEWER)
        self.root = make_super_admin()
        # member whose owner was removed
        self.orphan = User.objects.create_user(username="orphan", password="pw", role=User.STAFF)

    def test_resolve_tenant_per_role(self):
        self.assertIsNone(resolve_tenant(self.root))
        self.assertEqual(resolve_tenant(self.owner_a), self.owner_a.pk)
        self.assertEqual(resolve_tenant(self.staff_a), self.owner_a.pk)
        self.assertEqual(resolve_tenant(self.viewer_b), self.owner_b.pk)
        self.assertIsNone(resolve_tenant(self.orphan))
        self.assertIsNone(resolve_tenant(AnonymousUser()))
        self.assertIsNone(resolve_tenant(None))

    def test_tenant_filter_scopes_customers(self):
        a1 = make_customer(self.owner_a, 1, "Arham")
        b1 = make_customer(self.owner_b, 1, "Bilal")

        def visible(principal):
            return set(Customer.objects.filter(tenant_filter(principal)).values_list("pk", flat=True))

        self.assertEqual(visible(self.root), {a1.pk, b1.pk})  # Super admin sees all
        self.assertEqual(visible(self.owner_a), {a1.pk})
        self.assertEqual(visible(self.staff_a), {a1.pk})
        self.assertEqual(visible(self.viewer_b), {b1.pk})
        # fail closed
        self.assertEqual(visible(self.orphan), set())
        self.assertEqual(visible(AnonymousUser()), set())

    def test_tenant_id_for_create(self):
        self.assertEqual(tenant_id_for_create(self.owner_b), self.owner_b.pk)
        self.assertEqual(tenant_id_for_create(self.staff_a), self.owner_a.pk)
        # super admin writes into the earliest tenant
        self.assertEqual(tenant_id_for_create(self.root), self.owner_a.pk)

        with self.assertRaises(TenantResolutionError):
            tenant_id_for_create(self.orphan)
        with self.assertRaises(TenantResolutionError):
            tenant_id_for_create(AnonymousUser())

    def test_tenant_id_for_create_without_any_admin(self):
        User.objects.filter(role=User.ADMIN).delete()
        with self.assertRaises(TenantResolutionError) as ctx:
            tenant_id_for_create(self.root)
        self.assertIn("no Admin user found", ctx.exception.message)

    def test_can_access(self):
        self.assertTrue(can_access(self.root, self.owner_b.pk))
        self.assertTrue(can_access(self.staff_a, self.owner_a.pk))
        self.assertFalse(can_access(self.staff_a, self.owner_b.pk))
        self.assertFalse(can_access(self.orphan, self.owner_a.pk))

    def test_foreign_and_missing_records_look_the_same(self):
        b1 = make_customer(self.owner_b, 1, "Bilal")

        with self.assertRaises(NotFoundError) as foreign:
            get_scoped(Customer.objects.all(), self.owner_a, b1.pk, "Customer")
        with self.assertRaises(NotFoundError) as missing:
            get_scoped(Customer.objects.all(), self.owner_a, 999999, "Customer")

        self.assertEqual(foreign.exception.message, missing.exception.message)
        self.assertEqual(foreign.exception.code, "not_found")

    def test_record_tenant_cannot_change(self):
        customer = make_customer(self.owner_a, 1, "Arham")
        customer.admin = self.owner_b
        with self.assertRaises(ValidationError):
            customer.save()

    def test_owner_cannot_belong_to_another_tenant(self):
        self.owner_b.admin = self.owner_a
        with self.assertRaises(ValidationError):
            self.owner_b.full_clean()


class TenantIsolationPropertyTests(TestCase):
    """Random records across tenants never leak through the manager scope."""

    def test_for_principal_never_returns_foreign_rows(self):
        rng = random.Random(7)
        owners = [make_owner(f"owner-{i}") for i in range(3)]
        members = [make_member(owner, f"member-{i}") for i, owner in enumerate(owners)]
        customers = {owner.pk: [] for owner in owners}
        for code in range(1, 16):
            owner = rng.choice(owners)
            customers[owner.pk].append(make_customer(owner, code, f"Customer {code}"))

        day = datetime.date(2025, 1, 1)
        for _ in range(40):
            owner = rng.choice([o for o in owners if customers[o.pk]])
            customer = rng.choice(customers[owner.pk])
            deliver(customer, day + datetime.timedelta(days=rng.randint(0, 27)),
                    rng.randint(1, 9), rng.choice([500, 2800]))

        for principal in owners + members:
            tenant = resolve_tenant(principal)
            for model in (Customer, DeliveryEntry, Bill):
                admin_ids = set(model.objects.for_principal(principal).values_list("admin_id", flat=True))
                self.assertTrue(admin_ids <= {tenant}, f"{model.__name__} leaked for {principal}")
            self.assertEqual(
                DeliveryEntry.objects.for_principal(principal).count(),
                DeliveryEntry.objects.filter(admin_id=tenant).count(),
            )

    def test_for_tenant_none_matches_nothing(self):
        owner = make_owner("owner")
        make_customer(owner, 1, "Arham")
        self.assertFalse(Customer.objects.for_tenant(None).exists())


@pytest.mark.django_db
def test_delivery_list_returns_only_tenant_data():
    owner_a = make_owner("alice")
    owner_b = make_owner("bob")
    deliver(make_customer(owner_a, 1, "Arham"), datetime.date(2025, 1, 5), 3, 500)
    deliver(make_customer(owner_b, 1, "Bilal"), datetime.date(2025, 1, 5), 7, 500)

    request = RequestFactory().get("/api/deliveries/")
    request.user = make_member(owner_a, "alice-staff")
    response = deliveries_view(request)

    assert response.status_code == 200
    data = json.loads(response.content)["data"]
    assert [row["quantity"] for row in data] == [3]
    assert {row["admin_id"] for row in data} == {owner_a.pk}
