"""Catalog models.

An ``Item`` is anything a store sells: a physical product or a service.
A bundle is an item whose ``BundleComponent`` rows list the child items
sold together as one unit; ``is_bundle`` mirrors whether any exist.
"""

from decimal import Decimal

from common.choices import ItemKind, PricingType
from common.models import TimeStampedModel
from django.db import models


class Item(TimeStampedModel):
    KIND_PRODUCT = ItemKind.PRODUCT
    KIND_SERVICE = ItemKind.SERVICE
    KIND_CHOICES = ItemKind.choices

    PRICING_FIXED = PricingType.FIXED
    PRICING_QUOTE = PricingType.QUOTE
    PRICING_CHOICES = PricingType.choices

    tenant = models.ForeignKey("tenants.Tenant", related_name="items", on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    sku = models.CharField(max_length=64, blank=True)
    item_kind = models.CharField(max_length=16, choices=KIND_CHOICES, default=KIND_PRODUCT)
    pricing_type = models.CharField(max_length=16, choices=PRICING_CHOICES, default=PRICING_FIXED)
    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    online_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Storefront price; falls back to the regular price when empty",
    )
    cost_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    commission_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    is_bundle = models.BooleanField(default=False)
    is_published = models.BooleanField(default=True, db_index=True)
    track_stock = models.BooleanField(default=False)
    stock_quantity = models.IntegerField(default=0)
    requires_scheduling = models.BooleanField(default=False)
    requires_separation = models.BooleanField(default=False)
    requires_delivery = models.BooleanField(default=False)
    duration_minutes = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        ordering = ["name", "id"]
        indexes = [
            models.Index(fields=["tenant", "is_published"], name="catalog_ite_tenant__4f2a1d_idx"),
            models.Index(fields=["tenant", "sku"], name="catalog_ite_tenant__8c3e5b_idx"),
        ]
        constraints = [
            models.CheckConstraint(name="item_price_non_negative", condition=models.Q(price__gte=0)),
            models.CheckConstraint(
                name="item_online_price_non_negative",
                condition=models.Q(online_price__isnull=True) | models.Q(online_price__gte=0),
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.name} ({self.sku or self.id})"

    @property
    def effective_price(self) -> Decimal:
        return self.online_price if self.online_price is not None else self.price


class BundleComponent(TimeStampedModel):
    """One child of a bundle with its per-unit quantity and display order."""

    bundle = models.ForeignKey(Item, related_name="components", on_delete=models.CASCADE)
    component = models.ForeignKey(Item, related_name="used_in_bundles", on_delete=models.PROTECT)
    quantity = models.PositiveIntegerField(default=1)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "id"]
        constraints = [
            models.UniqueConstraint(fields=["bundle", "component"], name="unique_component_per_bundle"),
            models.CheckConstraint(name="component_quantity_positive", condition=models.Q(quantity__gte=1)),
            models.CheckConstraint(name="component_not_self", condition=~models.Q(bundle=models.F("component"))),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.bundle_id} <- {self.component_id} x{self.quantity}"
