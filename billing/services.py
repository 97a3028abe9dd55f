"""Billing services: invoice, receivable, payment and commission writes.

Each function performs its own writes without an enclosing transaction;
callers sequence them.
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional

from common.choices import PaymentMethod
from common.money import quantize
from django.db.models import Q
from django.utils import timezone

from .models import Commission, Invoice, InvoiceLine, Payment, Receivable

logger = logging.getLogger("storefront.checkout")


def issue_invoice(*, order, lines: Iterable) -> Invoice:
    """Create a sent invoice for ``order`` with one invoice line per given order line."""

    now = timezone.now()
    invoice = Invoice.objects.create(
        tenant_id=order.tenant_id,
        customer_id=order.customer_id,
        status=Invoice.STATUS_SENT,
        subtotal=order.subtotal,
        discount_amount=order.discount_amount,
        total=order.total,
        issued_at=now,
        due_date=timezone.localdate(now),
        notes=f"Online order {order.number}".strip(),
    )
    invoice.number = f"INV-{invoice.id:06d}"
    invoice.save(update_fields=["number", "updated_at"])
    InvoiceLine.objects.bulk_create(
        [
            InvoiceLine(
                invoice=invoice,
                order_line=line,
                item_id=line.item_id,
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total=quantize(line.unit_price * line.quantity),
            )
            for line in lines
        ]
    )
    return invoice


def open_receivable(*, order, invoice: Optional[Invoice], method: str = PaymentMethod.PIX) -> Receivable:
    """The amount owed for an order, due immediately."""

    return Receivable.objects.create(
        tenant_id=order.tenant_id,
        customer_id=order.customer_id,
        invoice=invoice,
        order=order,
        description=f"Online order {order.number}".strip(),
        amount=order.total,
        status=Receivable.STATUS_PENDING,
        payment_method=method,
        due_date=timezone.localdate(),
    )


def record_commission(
    *, order, partner_id: int, base_amount: Decimal, amount: Decimal, percent: Optional[Decimal] = None
) -> Optional[Commission]:
    """Accrue a partner commission; nothing is recorded for a zero amount."""

    amount = quantize(amount)
    if amount <= 0 or not partner_id:
        return None
    return Commission.objects.create(
        tenant_id=order.tenant_id,
        order=order,
        partner_id=partner_id,
        base_amount=quantize(base_amount),
        percent=percent,
        amount=amount,
    )


def _order_receivables(order):
    scope = Q(order_id=order.id)
    if order.invoice_id:
        scope |= Q(invoice_id=order.invoice_id)
    return Receivable.objects.filter(scope)


def settle_order(*, order, paid_at=None, method: str = PaymentMethod.PIX, reference: str = "") -> Payment:
    """Record a confirmed payment and mark the invoice and its receivables paid."""

    paid_at = paid_at or timezone.now()
    payment = Payment.objects.create(
        tenant_id=order.tenant_id,
        order=order,
        amount=order.total,
        method=method,
        status=Payment.STATUS_CONFIRMED,
        paid_at=paid_at,
        reference=reference,
    )
    if order.invoice_id:
        Invoice.objects.filter(id=order.invoice_id).update(
            status=Invoice.STATUS_PAID, paid_at=paid_at, updated_at=timezone.now()
        )
    _order_receivables(order).update(
        status=Receivable.STATUS_PAID, amount_received=order.total, paid_at=paid_at, updated_at=timezone.now()
    )
    return payment


def cancel_order_financials(*, order) -> dict:
    """Cancel the invoice, receivables and commissions tied to an order."""

    now = timezone.now()
    invoices = 0
    if order.invoice_id:
        invoices = Invoice.objects.filter(id=order.invoice_id).update(status=Invoice.STATUS_CANCELLED, updated_at=now)
    receivables = _order_receivables(order).update(status=Receivable.STATUS_CANCELLED, updated_at=now)
    commissions = Commission.objects.filter(order_id=order.id).update(
        status=Commission.STATUS_CANCELLED, updated_at=now
    )
    return {"invoices": invoices, "receivables": receivables, "commissions": commissions}
