"""Cart app models.

A cart belongs to a tenant and to a user, an anonymous session, or both
(a guest who later signed in). Lines carry the unit price captured when the
item was added; drift against the catalog is detected at read time.
"""

from decimal import Decimal

from common.models import TimeStampedModel
from django.conf import settings
from django.db import models
from django.utils import timezone


class Cart(TimeStampedModel):
    tenant = models.ForeignKey("tenants.Tenant", related_name="carts", on_delete=models.CASCADE)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, related_name="carts", on_delete=models.CASCADE
    )
    session_id = models.CharField(max_length=64, null=True, blank=True)
    expires_at = models.DateTimeField(db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(
                name="cart_has_owner",
                condition=models.Q(user__isnull=False) | models.Q(session_id__isnull=False),
            ),
            models.UniqueConstraint(
                fields=["tenant", "user"],
                condition=models.Q(user__isnull=False),
                name="unique_cart_per_tenant_user",
            ),
            models.UniqueConstraint(
                fields=["tenant", "session_id"],
                condition=models.Q(session_id__isnull=False),
                name="unique_cart_per_tenant_session",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Cart#{self.id} ({self.user_id or self.session_id})"

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= timezone.now()


class CartLine(TimeStampedModel):
    """One catalog item in a cart with the price captured at add time."""

    cart = models.ForeignKey(Cart, related_name="lines", on_delete=models.CASCADE)
    item = models.ForeignKey("catalog.Item", related_name="cart_lines", on_delete=models.CASCADE)
    partner = models.ForeignKey(
        "tenants.Partner", null=True, blank=True, related_name="cart_lines", on_delete=models.SET_NULL
    )
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    reserved_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(fields=["cart", "item"], name="unique_item_per_cart"),
            models.CheckConstraint(name="cart_line_quantity_positive", condition=models.Q(quantity__gte=1)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"CartLine#{self.id} cart={self.cart_id} item={self.item_id} qty={self.quantity}"

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price or Decimal("0.00")) * Decimal(int(self.quantity))
