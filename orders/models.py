"""Orders produced by checkout.

An ``Order`` carries a denormalized snapshot of the totals at checkout time
for reporting and auditability. Lines exploded from a bundle point at the
bundle's own line through ``parent``.
"""

from decimal import Decimal

from common.choices import FulfillmentStatus, ItemKind, OnlineOrderStatus, OrderStatus, PaymentMethod, SalesChannel
from common.models import TimeStampedModel
from django.conf import settings
from django.db import models


class Order(TimeStampedModel):
    STATUS_OPEN = OrderStatus.OPEN
    STATUS_COMPLETED = OrderStatus.COMPLETED
    STATUS_CANCELLED = OrderStatus.CANCELLED
    STATUS_CHOICES = OrderStatus.choices

    ONLINE_PENDING_PAYMENT = OnlineOrderStatus.PENDING_PAYMENT
    ONLINE_PAYMENT_CONFIRMED = OnlineOrderStatus.PAYMENT_CONFIRMED
    ONLINE_PROCESSING = OnlineOrderStatus.PROCESSING
    ONLINE_SHIPPED = OnlineOrderStatus.SHIPPED
    ONLINE_DELIVERED = OnlineOrderStatus.DELIVERED
    ONLINE_COMPLETED = OnlineOrderStatus.COMPLETED
    ONLINE_CANCELLED = OnlineOrderStatus.CANCELLED
    ONLINE_RETURN_REQUESTED = OnlineOrderStatus.RETURN_REQUESTED
    ONLINE_STATUS_CHOICES = OnlineOrderStatus.choices

    tenant = models.ForeignKey("tenants.Tenant", related_name="orders", on_delete=models.CASCADE)
    customer = models.ForeignKey("customer.Customer", related_name="orders", on_delete=models.PROTECT)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, related_name="orders", on_delete=models.SET_NULL
    )
    number = models.CharField(max_length=32, blank=True, db_index=True)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    shipping_cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    channel = models.CharField(max_length=16, choices=SalesChannel.choices, default=SalesChannel.ONLINE)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_OPEN, db_index=True)
    online_status = models.CharField(
        max_length=24, choices=ONLINE_STATUS_CHOICES, default=ONLINE_PENDING_PAYMENT, db_index=True
    )
    partner = models.ForeignKey(
        "tenants.Partner", null=True, blank=True, related_name="orders", on_delete=models.SET_NULL
    )
    invoice = models.ForeignKey(
        "billing.Invoice", null=True, blank=True, related_name="orders", on_delete=models.SET_NULL
    )
    payment_method = models.CharField(max_length=16, choices=PaymentMethod.choices, default=PaymentMethod.PIX)
    payment_instrument = models.JSONField(default=dict, blank=True)
    shipping_address = models.JSONField(default=dict, blank=True)
    tracking_code = models.CharField(max_length=64, blank=True)
    estimated_delivery_date = models.DateField(null=True, blank=True)
    has_pending_products = models.BooleanField(default=False)
    has_pending_services = models.BooleanField(default=False)
    notes = models.TextField(blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-id"]
        indexes = [
            models.Index(fields=["tenant", "online_status", "created_at"], name="orders_orde_tenant__7d4e2a_idx"),
            models.Index(fields=["user", "created_at"], name="orders_orde_user_id_1c8b5f_idx"),
        ]
        constraints = [
            models.CheckConstraint(name="order_total_non_negative", condition=models.Q(total__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.number or f'Order#{self.id}'} {self.online_status}"

    @property
    def is_terminal(self) -> bool:
        return self.online_status in (self.ONLINE_COMPLETED, self.ONLINE_CANCELLED)


class OrderLine(TimeStampedModel):
    """One priced line of an order.

    A bundle sold once produces a parent line carrying the bundle price and
    one child line per component carrying the component's own price, cost
    and fulfillment flags. Only the parent counts toward the order subtotal.
    """

    FULFILLMENT_PENDING = FulfillmentStatus.PENDING
    FULFILLMENT_IN_PROGRESS = FulfillmentStatus.IN_PROGRESS
    FULFILLMENT_COMPLETED = FulfillmentStatus.COMPLETED
    FULFILLMENT_NOT_REQUIRED = FulfillmentStatus.NOT_REQUIRED
    FULFILLMENT_CANCELLED = FulfillmentStatus.CANCELLED
    FULFILLMENT_CHOICES = FulfillmentStatus.choices

    order = models.ForeignKey(Order, related_name="lines", on_delete=models.CASCADE)
    parent = models.ForeignKey(
        "self", null=True, blank=True, related_name="children", on_delete=models.CASCADE
    )
    item = models.ForeignKey("catalog.Item", related_name="order_lines", on_delete=models.PROTECT)
    partner = models.ForeignKey(
        "tenants.Partner", null=True, blank=True, related_name="order_lines", on_delete=models.SET_NULL
    )
    item_kind = models.CharField(max_length=16, choices=ItemKind.choices, default=ItemKind.PRODUCT)
    description = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    cost_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    commission_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    commission_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    separation_status = models.CharField(
        max_length=16, choices=FULFILLMENT_CHOICES, default=FULFILLMENT_NOT_REQUIRED
    )
    delivery_status = models.CharField(max_length=16, choices=FULFILLMENT_CHOICES, default=FULFILLMENT_NOT_REQUIRED)
    fulfillment_status = models.CharField(max_length=16, choices=FULFILLMENT_CHOICES, default=FULFILLMENT_PENDING)
    is_composition_parent = models.BooleanField(default=False)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "id"]
        constraints = [
            models.CheckConstraint(name="orderline_quantity_positive", condition=models.Q(quantity__gte=1)),
            models.CheckConstraint(name="orderline_price_non_negative", condition=models.Q(unit_price__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"OrderLine#{self.id} order={self.order_id} item={self.item_id} qty={self.quantity}"

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price or Decimal("0.00")) * Decimal(int(self.quantity))


class IdempotencyKey(TimeStampedModel):
    """Stores idempotent request results to prevent duplicate processing."""

    key = models.CharField(max_length=128)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.CASCADE)
    scope = models.CharField(max_length=128)
    path = models.CharField(max_length=255)
    method = models.CharField(max_length=16)
    request_hash = models.CharField(max_length=64, null=True, blank=True)
    response_code = models.IntegerField(null=True, blank=True)
    response_json = models.JSONField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["key", "scope", "path", "method"], name="uniq_idem_scope_path_method"),
        ]
