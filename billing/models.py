"""Financial records produced by checkout.

An invoice and its receivable are created together for every order and
move to paid or cancelled together. Commissions accrue to the fulfillment
partner attached to an order.
"""

from decimal import Decimal

from common.choices import CommissionStatus, InvoiceStatus, PaymentMethod, PaymentStatus, ReceivableStatus
from common.models import TimeStampedModel
from django.db import models


class Invoice(TimeStampedModel):
    STATUS_DRAFT = InvoiceStatus.DRAFT
    STATUS_SENT = InvoiceStatus.SENT
    STATUS_PAID = InvoiceStatus.PAID
    STATUS_CANCELLED = InvoiceStatus.CANCELLED
    STATUS_CHOICES = InvoiceStatus.choices

    tenant = models.ForeignKey("tenants.Tenant", related_name="invoices", on_delete=models.CASCADE)
    customer = models.ForeignKey("customer.Customer", related_name="invoices", on_delete=models.PROTECT)
    number = models.CharField(max_length=20, blank=True, db_index=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    issued_at = models.DateTimeField(null=True, blank=True)
    due_date = models.DateField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    notes = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(name="invoice_total_non_negative", condition=models.Q(total__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.number or f"Invoice#{self.id}"


class InvoiceLine(TimeStampedModel):
    invoice = models.ForeignKey(Invoice, related_name="lines", on_delete=models.CASCADE)
    order_line = models.ForeignKey(
        "orders.OrderLine", null=True, blank=True, related_name="invoice_lines", on_delete=models.SET_NULL
    )
    item = models.ForeignKey("catalog.Item", related_name="invoice_lines", on_delete=models.PROTECT)
    description = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.quantity} x {self.description}"


class Receivable(TimeStampedModel):
    STATUS_PENDING = ReceivableStatus.PENDING
    STATUS_PAID = ReceivableStatus.PAID
    STATUS_CANCELLED = ReceivableStatus.CANCELLED
    STATUS_CHOICES = ReceivableStatus.choices

    tenant = models.ForeignKey("tenants.Tenant", related_name="receivables", on_delete=models.CASCADE)
    customer = models.ForeignKey("customer.Customer", related_name="receivables", on_delete=models.PROTECT)
    invoice = models.ForeignKey(
        Invoice, null=True, blank=True, related_name="receivables", on_delete=models.SET_NULL
    )
    order = models.ForeignKey(
        "orders.Order", null=True, blank=True, related_name="receivables", on_delete=models.PROTECT
    )
    description = models.CharField(max_length=255, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    amount_received = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    payment_method = models.CharField(max_length=16, choices=PaymentMethod.choices, default=PaymentMethod.PIX)
    due_date = models.DateField()
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["due_date", "id"]
        constraints = [
            models.CheckConstraint(name="receivable_amount_non_negative", condition=models.Q(amount__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Receivable#{self.id} {self.amount} ({self.status})"


class Payment(TimeStampedModel):
    STATUS_CONFIRMED = PaymentStatus.CONFIRMED
    STATUS_REFUNDED = PaymentStatus.REFUNDED
    STATUS_CHOICES = PaymentStatus.choices

    tenant = models.ForeignKey("tenants.Tenant", related_name="payments", on_delete=models.CASCADE)
    order = models.ForeignKey("orders.Order", related_name="payments", on_delete=models.PROTECT)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    method = models.CharField(max_length=16, choices=PaymentMethod.choices, default=PaymentMethod.PIX)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_CONFIRMED)
    paid_at = models.DateTimeField()
    reference = models.CharField(max_length=120, blank=True)

    class Meta:
        ordering = ["-paid_at", "-id"]

    def __str__(self) -> str:  # pragma: no cover
        return f"Payment#{self.id} {self.amount} {self.method}"


class Commission(TimeStampedModel):
    STATUS_PENDING = CommissionStatus.PENDING
    STATUS_PAID = CommissionStatus.PAID
    STATUS_CANCELLED = CommissionStatus.CANCELLED
    STATUS_CHOICES = CommissionStatus.choices

    tenant = models.ForeignKey("tenants.Tenant", related_name="commissions", on_delete=models.CASCADE)
    order = models.ForeignKey("orders.Order", related_name="commissions", on_delete=models.PROTECT)
    partner = models.ForeignKey("tenants.Partner", related_name="commissions", on_delete=models.PROTECT)
    base_amount = models.DecimalField(max_digits=12, decimal_places=2)
    percent = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(name="commission_amount_positive", condition=models.Q(amount__gt=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Commission#{self.id} {self.amount} to partner {self.partner_id}"
