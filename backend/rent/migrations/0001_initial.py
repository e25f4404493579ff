import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("properties", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="RecurringPayment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("payment_type", models.CharField(choices=[("rent", "Rent"), ("fee", "Fee"), ("utility", "Utility"), ("other", "Other")], default="rent", max_length=20)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("frequency", models.CharField(choices=[("monthly", "Monthly"), ("quarterly", "Quarterly"), ("annual", "Annual")], default="monthly", max_length=20)),
                ("due_day", models.PositiveSmallIntegerField(default=1)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("lease", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="recurring_payments", to="properties.lease")),
            ],
            options={
                "ordering": ["lease", "start_date"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="recurring_payment_amount_positive"),
                    models.CheckConstraint(
                        condition=models.Q(("due_day__gte", 1), ("due_day__lte", 31)),
                        name="recurring_payment_due_day_range",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("amount_paid", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("due_date", models.DateField()),
                ("payment_date", models.DateField(blank=True, null=True)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("partial", "Partially paid"), ("paid", "Paid"), ("waived", "Waived")], default="pending", max_length=20)),
                ("payment_method", models.CharField(blank=True, default="", max_length=50)),
                ("reference_number", models.CharField(blank=True, default="", max_length=100)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("recorded_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("recurring_payment", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="rent.recurringpayment")),
            ],
            options={
                "ordering": ["due_date", "id"],
                "indexes": [models.Index(fields=["status", "due_date"], name="payment_status_due_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("recurring_payment", "due_date"), name="uniq_payment_per_period"),
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="payment_amount_positive"),
                    models.CheckConstraint(
                        condition=models.Q(("amount_paid__gte", 0), ("amount_paid__lte", models.F("amount"))),
                        name="payment_amount_paid_range",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentReceipt",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("payment_date", models.DateField()),
                ("payment_method", models.CharField(max_length=50)),
                ("reference_number", models.CharField(blank=True, default="", max_length=100)),
                ("idempotency_key", models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("payment", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="receipts", to="rent.payment")),
                ("recorded_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["payment_date", "id"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="payment_receipt_amount_positive"),
                ],
            },
        ),
    ]
