import django.db.models.deletion
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("tenants", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Item",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=200)),
                ("sku", models.CharField(blank=True, max_length=64)),
                (
                    "item_kind",
                    models.CharField(
                        choices=[("product", "Product"), ("service", "Service")], default="product", max_length=16
                    ),
                ),
                (
                    "pricing_type",
                    models.CharField(
                        choices=[("fixed", "Fixed price"), ("quote", "Quote only")], default="fixed", max_length=16
                    ),
                ),
                ("price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                (
                    "online_price",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Storefront price; falls back to the regular price when empty",
                        max_digits=12,
                        null=True,
                    ),
                ),
                ("cost_price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("commission_percent", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=5)),
                ("is_bundle", models.BooleanField(default=False)),
                ("is_published", models.BooleanField(db_index=True, default=True)),
                ("track_stock", models.BooleanField(default=False)),
                ("stock_quantity", models.IntegerField(default=0)),
                ("requires_scheduling", models.BooleanField(default=False)),
                ("requires_separation", models.BooleanField(default=False)),
                ("requires_delivery", models.BooleanField(default=False)),
                ("duration_minutes", models.PositiveIntegerField(blank=True, null=True)),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="items", to="tenants.tenant"
                    ),
                ),
            ],
            options={
                "ordering": ["name", "id"],
                "indexes": [
                    models.Index(fields=["tenant", "is_published"], name="catalog_ite_tenant__4f2a1d_idx"),
                    models.Index(fields=["tenant", "sku"], name="catalog_ite_tenant__8c3e5b_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("price__gte", 0)), name="item_price_non_negative"),
                    models.CheckConstraint(
                        condition=models.Q(("online_price__isnull", True), ("online_price__gte", 0), _connector="OR"),
                        name="item_online_price_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BundleComponent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("sort_order", models.PositiveIntegerField(default=0)),
                (
                    "bundle",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="components", to="catalog.item"
                    ),
                ),
                (
                    "component",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="used_in_bundles", to="catalog.item"
                    ),
                ),
            ],
            options={
                "ordering": ["sort_order", "id"],
                "constraints": [
                    models.UniqueConstraint(fields=("bundle", "component"), name="unique_component_per_bundle"),
                    models.CheckConstraint(condition=models.Q(("quantity__gte", 1)), name="component_quantity_positive"),
                    models.CheckConstraint(
                        condition=models.Q(("bundle", models.F("component")), _negated=True), name="component_not_self"
                    ),
                ],
            },
        ),
    ]
