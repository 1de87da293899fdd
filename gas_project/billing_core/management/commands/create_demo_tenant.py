import datetime

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from billing_core.models import Customer, DeliveryEntry
from billing_core.services.periods import local_midnight, month_bounds

User = get_user_model()

DEMO_CUSTOMERS = [
    # (name, address, cylinders per delivery, unit price)
    ("Arham Traders", "Main Bazaar", 10, 500),
    ("Ijaz Hotel", "GT Road", 4, 2800),
    ("City Clinic", "Canal View", 2, 2800),
]


class Command(BaseCommand):
    help = (
        "Create a demo tenant (admin user), a staff member, customers and a month "
        "of cylinder deliveries for testing."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--username", default="demo", help="Username for the tenant owner."
        )
        parser.add_argument(
            "--password", default="demo123", help="Password for the demo users."
        )
        parser.add_argument(
            "--month",
            default=None,
            help="Any date (YYYY-MM-DD) inside the month to fill; defaults to last month.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        username = options["username"]
        password = options["password"]
        month_day = self._month_day(options["month"])

        # 1. Create tenant owner
        owner, created = User.objects.get_or_create(
            username=username,
            defaults={"email": f"{username}@example.com", "role": User.ADMIN},
        )
        if created:  # if user newly created
            owner.set_password(password)
            owner.save()
        elif owner.role != User.ADMIN:
            raise CommandError(f"User {username!r} exists and is not a tenant owner.")
        self.stdout.write(self.style.SUCCESS(f"Tenant owner: {owner.username} (pw={password})"))

        # 2. Create staff member of the tenant
        staff, created = User.objects.get_or_create(
            username=f"{username}-staff",
            defaults={"email": f"{username}-staff@example.com", "role": User.STAFF, "admin": owner},
        )
        if created:
            staff.set_password(password)
            staff.save()
        self.stdout.write(self.style.SUCCESS(f"Staff member: {staff.username}"))

        # 3. Customers, numbered per tenant
        start, end = month_bounds(month_day)
        next_code = (
            Customer.objects.for_tenant(owner.pk).order_by("-customer_code")
            .values_list("customer_code", flat=True).first() or 0
        ) + 1
        entries = 0
        for name, address, quantity, unit_price in DEMO_CUSTOMERS:
            customer = Customer.objects.for_tenant(owner.pk).filter(name=name).first()
            if customer is None:
                customer = Customer.objects.create(
                    admin=owner, customer_code=next_code, name=name, address=address
                )
                next_code += 1
                self.stdout.write(self.style.SUCCESS(f"Created customer: {customer}"))

            # 4. Weekly deliveries, empties collected the same afternoon
            day = start
            while day <= end:
                delivered_at = local_midnight(day) + datetime.timedelta(hours=10)
                DeliveryEntry.objects.create(
                    admin=owner,
                    customer=customer,
                    customer_name=customer.display_reference,
                    kind=DeliveryEntry.DELIVERED,
                    cylinder_label="45.4 KG",
                    quantity=quantity,
                    unit_price=unit_price,
                    delivery_date=delivered_at,
                    delivered_by=staff.username,
                    bill_created_by=owner.username,
                    verified=True,
                )
                DeliveryEntry.objects.create(
                    admin=owner,
                    customer=customer,
                    customer_name=customer.display_reference,
                    kind=DeliveryEntry.RECEIVED,
                    cylinder_label="45.4 KG",
                    quantity=quantity,
                    unit_price=unit_price,
                    empty_cylinder_received=quantity,
                    delivery_date=delivered_at + datetime.timedelta(hours=6),
                    bill_created_by=owner.username,
                )
                entries += 2
                day += datetime.timedelta(days=7)

        self.stdout.write(
            self.style.SUCCESS(f"Created {entries} delivery entries for {start:%B %Y}")
        )
        self.stdout.write(self.style.SUCCESS("Demo tenant setup complete!"))

    def _month_day(self, value):
        if not value:
            first_of_month = timezone.localdate().replace(day=1)
            return first_of_month - datetime.timedelta(days=1)
        try:
            return datetime.date.fromisoformat(value)
        except ValueError:
            raise CommandError(f"Invalid --month {value!r}; expected YYYY-MM-DD.")
