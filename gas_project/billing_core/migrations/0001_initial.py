import django.contrib.auth.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import billing_core.managers


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="User",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                (
                    "is_superuser",
                    models.BooleanField(
                        default=False,
                        help_text="Designates that this user has all permissions without explicitly assigning them.",
                        verbose_name="superuser status",
                    ),
                ),
                (
                    "username",
                    models.CharField(
                        error_messages={"unique": "A user with that username already exists."},
                        help_text="Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.",
                        max_length=150,
                        unique=True,
                        validators=[django.contrib.auth.validators.UnicodeUsernameValidator()],
                        verbose_name="username",
                    ),
                ),
                ("first_name", models.CharField(blank=True, max_length=150, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=150, verbose_name="last name")),
                ("email", models.EmailField(blank=True, max_length=254, verbose_name="email address")),
                (
                    "is_staff",
                    models.BooleanField(
                        default=False,
                        help_text="Designates whether the user can log into this admin site.",
                        verbose_name="staff status",
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        default=True,
                        help_text="Designates whether this user should be treated as active. "
                        "Unselect this instead of deleting accounts.",
                        verbose_name="active",
                    ),
                ),
                ("date_joined", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date joined")),
                (
                    "role",
                    models.CharField(
                        choices=[
                            ("SUPER_ADMIN", "Super admin"),
                            ("ADMIN", "Admin"),
                            ("STAFF", "Staff"),
                            ("VIEWER", "Viewer"),
                            ("BRANCH_MANAGER", "Branch manager"),
                        ],
                        default="STAFF",
                        max_length=20,
                    ),
                ),
                ("phone", models.CharField(blank=True, max_length=32)),
                (
                    "admin",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="members",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "groups",
                    models.ManyToManyField(
                        blank=True,
                        help_text="The groups this user belongs to. A user will get all permissions "
                        "granted to each of their groups.",
                        related_name="user_set",
                        related_query_name="user",
                        to="auth.group",
                        verbose_name="groups",
                    ),
                ),
                (
                    "user_permissions",
                    models.ManyToManyField(
                        blank=True,
                        help_text="Specific permissions for this user.",
                        related_name="user_set",
                        related_query_name="user",
                        to="auth.permission",
                        verbose_name="user permissions",
                    ),
                ),
            ],
            options={
                "verbose_name": "user",
                "verbose_name_plural": "users",
                "abstract": False,
                "indexes": [
                    models.Index(fields=["role", "date_joined"], name="user_role_joined_idx"),
                    models.Index(fields=["admin"], name="user_admin_idx"),
                ],
            },
            managers=[
                ("objects", billing_core.managers.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("customer_code", models.PositiveIntegerField()),
                ("name", models.CharField(max_length=200)),
                ("address", models.CharField(blank=True, max_length=255)),
                ("contact_number", models.CharField(blank=True, max_length=32)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "admin",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["admin", "name"], name="customer_admin_name_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("admin", "customer_code"), name="uq_tenant_customer_code"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Bill",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("bill_start_date", models.DateField()),
                ("bill_end_date", models.DateField()),
                ("last_month_remaining", models.PositiveIntegerField(default=0)),
                ("current_month_bill", models.PositiveIntegerField(default=0)),
                ("cylinders", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "admin",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.RESTRICT,
                        related_name="bills",
                        to="billing_core.customer",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["admin", "customer"], name="bill_admin_customer_idx"),
                    models.Index(fields=["admin", "bill_end_date"], name="bill_admin_end_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("customer", "bill_start_date", "bill_end_date"),
                        name="uq_bill_customer_period",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("bill_start_date__lt", models.F("bill_end_date"))),
                        name="bill_period_ordered",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DeliveryEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("customer_name", models.CharField(blank=True, max_length=255)),
                (
                    "kind",
                    models.CharField(
                        choices=[("DELIVERED", "Delivered"), ("RECEIVED", "Received")], max_length=10
                    ),
                ),
                ("cylinder_label", models.CharField(max_length=64)),
                ("quantity", models.PositiveIntegerField()),
                ("unit_price", models.PositiveIntegerField(default=0)),
                ("amount", models.PositiveIntegerField(default=0)),
                ("delivery_date", models.DateTimeField()),
                ("verified", models.BooleanField(default=False)),
                ("empty_cylinder_received", models.PositiveIntegerField(blank=True, null=True)),
                ("payment_type", models.CharField(blank=True, max_length=32, null=True)),
                ("payment_amount", models.PositiveIntegerField(blank=True, null=True)),
                ("payment_received_by", models.CharField(blank=True, max_length=120, null=True)),
                ("delivered_by", models.CharField(blank=True, max_length=120, null=True)),
                ("bill_created_by", models.CharField(blank=True, max_length=120)),
                ("description", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "admin",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="delivery_entries",
                        to="billing_core.customer",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "delivery entries",
                "indexes": [
                    models.Index(fields=["admin", "kind", "delivery_date"], name="entry_admin_kind_date_idx"),
                    models.Index(fields=["admin", "customer"], name="entry_admin_customer_idx"),
                    models.Index(fields=["admin", "customer_name"], name="entry_admin_custname_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("kind__in", ["DELIVERED", "RECEIVED"])),
                        name="delivery_entry_kind_valid",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("invoice_number", models.CharField(max_length=64, unique=True)),
                ("generated_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "admin",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "bill",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.RESTRICT,
                        related_name="invoice",
                        to="billing_core.bill",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.RESTRICT,
                        related_name="invoices",
                        to="billing_core.customer",
                    ),
                ),
                (
                    "generated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["admin", "customer"], name="invoice_admin_customer_idx"),
                    models.Index(fields=["admin", "generated_at"], name="invoice_admin_generated_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.PositiveIntegerField()),
                ("paid_on", models.DateTimeField()),
                ("method", models.CharField(max_length=50)),
                ("notes", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "admin",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "bill",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.RESTRICT,
                        related_name="payments",
                        to="billing_core.bill",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["admin", "bill"], name="payment_admin_bill_idx"),
                    models.Index(fields=["admin", "paid_on"], name="payment_admin_paid_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="payment_amount_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("BILL_GENERATED", "Bill generated"),
                            ("BILL_UPDATED", "Bill updated"),
                            ("BILL_DELETED", "Bill deleted"),
                            ("PAYMENT_RECEIVED", "Payment received"),
                            ("PARTIAL_PAYMENT", "Partial payment"),
                            ("PAYMENT_DELETED", "Payment deleted"),
                            ("INVOICE_GENERATED", "Invoice generated"),
                            ("INVOICE_DELETED", "Invoice deleted"),
                        ],
                        max_length=32,
                    ),
                ),
                ("bill_ref", models.PositiveBigIntegerField(blank=True, null=True)),
                ("payment_ref", models.PositiveBigIntegerField(blank=True, null=True)),
                ("customer_name", models.CharField(max_length=200)),
                ("customer_code", models.PositiveIntegerField(blank=True, null=True)),
                ("bill_start_date", models.DateField(blank=True, null=True)),
                ("bill_end_date", models.DateField(blank=True, null=True)),
                ("amount", models.IntegerField(blank=True, null=True)),
                ("details", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "admin",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "bill",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="logs",
                        to="billing_core.bill",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-pk"],
                "indexes": [
                    models.Index(fields=["admin", "created_at"], name="paymentlog_admin_created_idx"),
                    models.Index(fields=["admin", "event_type"], name="paymentlog_admin_event_idx"),
                    models.Index(fields=["admin", "bill_ref"], name="paymentlog_admin_billref_idx"),
                ],
            },
        ),
    ]
