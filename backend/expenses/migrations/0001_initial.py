import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        ("properties", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ExpenseCategory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                ("description", models.TextField(blank=True, default="")),
                ("is_tax_deductible", models.BooleanField(default=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="expense_categories", to="accounts.company")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("parent", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="children", to="expenses.expensecategory")),
            ],
            options={
                "verbose_name_plural": "expense categories",
                "ordering": ["name"],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "parent", "name"), name="uniq_expense_category_name"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ReceiptImage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("file", models.FileField(upload_to="receipts/%Y/%m/")),
                ("original_filename", models.CharField(max_length=255)),
                ("content_type", models.CharField(blank=True, default="", max_length=100)),
                ("file_size", models.PositiveIntegerField(default=0)),
                ("ocr_status", models.CharField(choices=[("pending", "Pending"), ("processed", "Processed"), ("failed", "Failed")], default="pending", max_length=20)),
                ("ocr_text", models.TextField(blank=True, default="")),
                ("extracted_data", models.JSONField(blank=True, default=dict)),
                ("error", models.TextField(blank=True, default="")),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="receipt_images", to="accounts.company")),
                ("uploaded_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Expense",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("tax_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("transaction_date", models.DateField()),
                ("due_date", models.DateField(blank=True, null=True)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("paid", "Paid"), ("cancelled", "Cancelled"), ("disputed", "Disputed")], default="pending", max_length=20)),
                ("payment_date", models.DateField(blank=True, null=True)),
                ("payment_method", models.CharField(blank=True, default="", max_length=50)),
                ("reference_number", models.CharField(blank=True, default="", max_length=100)),
                ("is_recurring", models.BooleanField(default=False)),
                ("recurring_frequency", models.CharField(blank=True, choices=[("monthly", "Monthly"), ("quarterly", "Quarterly"), ("annual", "Annual")], default="", max_length=20)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("category", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="expenses", to="expenses.expensecategory")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("property", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="expenses", to="properties.property")),
                ("receipt", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="expenses", to="expenses.receiptimage")),
                ("recurring_source", models.ForeignKey(blank=True, help_text="The recurring expense this row was generated from.", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="occurrences", to="expenses.expense")),
                ("unit", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="expenses", to="properties.unit")),
                ("vendor", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="expenses", to="properties.vendor")),
            ],
            options={
                "ordering": ["-transaction_date", "-id"],
                "indexes": [
                    models.Index(fields=["property", "transaction_date"], name="expense_property_date_idx"),
                    models.Index(fields=["status"], name="expense_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="expense_amount_positive"),
                    models.CheckConstraint(condition=models.Q(("tax_amount__gte", 0)), name="expense_tax_non_negative"),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("status", "paid"), _negated=True),
                            models.Q(("payment_date__isnull", False), models.Q(("payment_method", ""), _negated=True)),
                            _connector="OR",
                        ),
                        name="expense_paid_has_payment_data",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("is_recurring", False), models.Q(("recurring_frequency", ""), _negated=True), _connector="OR"),
                        name="expense_recurring_has_frequency",
                    ),
                    models.UniqueConstraint(fields=("recurring_source", "transaction_date"), name="uniq_expense_occurrence"),
                ],
            },
        ),
    ]
