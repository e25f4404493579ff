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
            name="TrustAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("account_name", models.CharField(max_length=200)),
                ("account_number", models.CharField(blank=True, default="", max_length=50)),
                ("bank_name", models.CharField(blank=True, default="", max_length=200)),
                ("routing_number", models.CharField(blank=True, default="", max_length=20)),
                ("account_type", models.CharField(choices=[("security_deposit", "Security deposit"), ("escrow", "Escrow"), ("reserve", "Reserve")], max_length=20)),
                ("is_interest_bearing", models.BooleanField(default=False)),
                ("interest_rate", models.DecimalField(blank=True, decimal_places=4, help_text="Annual rate in percent (1.5 = 1.5% per year).", max_digits=7, null=True)),
                ("balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("property", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="trust_accounts", to="properties.property")),
            ],
            options={
                "ordering": ["property", "account_name"],
                "indexes": [models.Index(fields=["property", "is_active"], name="trust_acct_property_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("balance__gte", 0)), name="trust_account_balance_non_negative"),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("interest_rate__gt", 0), ("is_interest_bearing", True)),
                            models.Q(("interest_rate__isnull", True), ("is_interest_bearing", False)),
                            _connector="OR",
                        ),
                        name="trust_account_interest_rate",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="TrustAccountTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("transaction_type", models.CharField(choices=[("deposit", "Deposit"), ("withdrawal", "Withdrawal"), ("interest", "Interest"), ("fee", "Fee")], max_length=20)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("balance_after", models.DecimalField(decimal_places=2, max_digits=14)),
                ("transaction_date", models.DateField()),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("reference_number", models.CharField(blank=True, default="", max_length=100)),
                ("payment_method", models.CharField(blank=True, default="", max_length=50)),
                ("is_reconciled", models.BooleanField(default=False)),
                ("reconciled_date", models.DateField(blank=True, null=True)),
                ("idempotency_key", models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("lease", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="trust_transactions", to="properties.lease")),
                ("reconciled_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("reverses", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="reversal", to="trust.trustaccounttransaction")),
                ("tenant", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="trust_transactions", to="properties.tenant")),
                ("trust_account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="transactions", to="trust.trustaccount")),
            ],
            options={
                "ordering": ["transaction_date", "id"],
                "indexes": [
                    models.Index(fields=["trust_account", "transaction_date"], name="trust_txn_account_date_idx"),
                    models.Index(fields=["trust_account", "is_reconciled"], name="trust_txn_reconciled_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="trust_txn_amount_positive"),
                ],
            },
        ),
    ]
