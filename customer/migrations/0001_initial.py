import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("tenants", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("full_name", models.CharField(max_length=200)),
                ("email", models.EmailField(blank=True, max_length=254)),
                (
                    "phone",
                    models.CharField(
                        blank=True,
                        max_length=16,
                        validators=[
                            django.core.validators.RegexValidator(
                                "^\\+?[1-9]\\d{1,14}$", message="Use E.164 format (e.g., +5511987654321)"
                            )
                        ],
                    ),
                ),
                ("tax_id", models.CharField(blank=True, help_text="Digits only", max_length=20)),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="customers", to="tenants.tenant"
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="customer_records",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["full_name", "id"],
                "indexes": [
                    models.Index(fields=["tenant", "email"], name="customer_cu_tenant__2d7e1a_idx"),
                    models.Index(fields=["tenant", "tax_id"], name="customer_cu_tenant__6b9f3c_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("tax_id", ""), _negated=True),
                        fields=("tenant", "tax_id"),
                        name="unique_customer_tax_id_per_tenant",
                    )
                ],
            },
        ),
    ]
