"""Inventory models (single-location, ledger based).

On-hand stock lives on ``catalog.Item.stock_quantity``; every change to it
is explained by one append-only ``StockLedgerEntry``.
"""

from common.choices import MovementType
from common.models import TimeStampedModel
from django.conf import settings
from django.db import models


class StockLedgerEntry(TimeStampedModel):
    TYPE_SALE = MovementType.SALE
    TYPE_RETURN = MovementType.RETURN
    TYPE_INBOUND = MovementType.INBOUND
    TYPE_ADJUST = MovementType.ADJUST
    TYPE_CHOICES = MovementType.choices

    tenant = models.ForeignKey("tenants.Tenant", related_name="stock_entries", on_delete=models.CASCADE)
    item = models.ForeignKey("catalog.Item", related_name="stock_entries", on_delete=models.PROTECT)
    movement_type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    quantity = models.IntegerField()  # signed: +inbound/return, -sale
    previous_quantity = models.IntegerField()
    new_quantity = models.IntegerField()
    order = models.ForeignKey(
        "orders.Order", null=True, blank=True, related_name="stock_entries", on_delete=models.PROTECT
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, related_name="stock_entries", on_delete=models.SET_NULL
    )
    reason = models.CharField(max_length=200, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name_plural = "stock ledger entries"
        constraints = [
            models.CheckConstraint(name="ledger_quantity_non_zero", condition=~models.Q(quantity=0)),
        ]
        indexes = [
            models.Index(fields=["tenant", "item"], name="inventory_s_tenant__3a7c1f_idx"),
            models.Index(fields=["order"], name="inventory_s_order_i_5e2b9d_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.movement_type} {self.quantity:+d} for item {self.item_id}"
