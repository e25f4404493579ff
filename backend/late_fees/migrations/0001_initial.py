import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("properties", "0001_initial"),
        ("rent", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="LateFeeConfiguration",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("fee_type", models.CharField(choices=[("percentage", "Percentage of amount due"), ("fixed", "Fixed amount")], max_length=20)),
                ("fee_amount", models.DecimalField(decimal_places=2, help_text="Percentage (5 = 5%) or fixed amount, depending on fee_type.", max_digits=10)),
                ("grace_period_days", models.PositiveIntegerField(default=5)),
                ("maximum_fee", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("is_compounding", models.BooleanField(default=False, help_text="Allow a new fee on every evaluation pass instead of one per payment.")),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("property", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="late_fee_configurations", to="properties.property")),
            ],
            options={
                "ordering": ["property", "-created_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("fee_amount__gt", 0)), name="late_fee_config_amount_positive"),
                    models.CheckConstraint(
                        condition=models.Q(("maximum_fee__isnull", True), ("maximum_fee__gt", 0), _connector="OR"),
                        name="late_fee_config_max_positive",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("is_active", True)),
                        fields=("property",),
                        name="uniq_active_late_fee_config",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="LateFee",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=10)),
                ("days_late", models.PositiveIntegerField(default=0)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("paid", "Paid"), ("waived", "Waived")], default="pending", max_length=20)),
                ("applied_date", models.DateField()),
                ("paid_date", models.DateField(blank=True, null=True)),
                ("waived_reason", models.TextField(blank=True, default="")),
                ("waived_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("configuration", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="late_fees", to="late_fees.latefeeconfiguration")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("payment", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="late_fees", to="rent.payment")),
                ("waived_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-applied_date", "-id"],
                "indexes": [models.Index(fields=["payment", "status"], name="late_fee_payment_status_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="late_fee_amount_positive"),
                ],
            },
        ),
    ]
