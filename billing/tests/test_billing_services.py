from decimal import Decimal

import pytest
from billing.models import Commission, Invoice, InvoiceLine, Payment, Receivable
from billing.services import cancel_order_financials, issue_invoice, open_receivable, record_commission, settle_order
from orders.tests.factories import OrderFactory, OrderLineFactory
from tenants.tests.factories import PartnerFactory


@pytest.fixture
def order():
    order = OrderFactory(subtotal=Decimal("35.00"), total=Decimal("35.00"))
    OrderLineFactory(order=order, quantity=2, unit_price=Decimal("10.00"))
    OrderLineFactory(order=order, quantity=1, unit_price=Decimal("15.00"))
    return order


@pytest.mark.django_db
def test_issue_invoice_copies_lines_and_totals(order):
    invoice = issue_invoice(order=order, lines=order.lines.order_by("sort_order"))

    assert invoice.number == f"INV-{invoice.id:06d}"
    assert invoice.status == Invoice.STATUS_SENT
    assert (invoice.customer_id, invoice.total) == (order.customer_id, Decimal("35.00"))
    totals = list(InvoiceLine.objects.filter(invoice=invoice).order_by("id").values_list("total", flat=True))
    assert totals == [Decimal("20.00"), Decimal("15.00")]


@pytest.mark.django_db
def test_receivable_matches_order_total(order):
    invoice = issue_invoice(order=order, lines=[])
    receivable = open_receivable(order=order, invoice=invoice, method="boleto")

    assert receivable.amount == order.total
    assert receivable.payment_method == "boleto"
    assert receivable.status == Receivable.STATUS_PENDING


@pytest.mark.django_db
def test_zero_commission_is_not_recorded(order):
    partner = PartnerFactory(tenant=order.tenant)

    nothing = record_commission(order=order, partner_id=partner.id, base_amount=order.subtotal, amount=Decimal("0"))
    assert nothing is None
    commission = record_commission(
        order=order, partner_id=partner.id, base_amount=order.subtotal, amount=Decimal("3.504")
    )
    assert commission.amount == Decimal("3.50")
    assert Commission.objects.count() == 1


@pytest.mark.django_db
def test_settle_then_cancel_order_financials(order):
    invoice = issue_invoice(order=order, lines=[])
    order.invoice = invoice
    order.save(update_fields=["invoice"])
    open_receivable(order=order, invoice=invoice)

    payment = settle_order(order=order, reference="TX-1")

    assert payment.status == Payment.STATUS_CONFIRMED
    assert Invoice.objects.get(id=invoice.id).status == Invoice.STATUS_PAID
    receivable = Receivable.objects.get(order=order)
    assert (receivable.status, receivable.amount_received) == (Receivable.STATUS_PAID, Decimal("35.00"))

    partner = PartnerFactory(tenant=order.tenant)
    record_commission(order=order, partner_id=partner.id, base_amount=order.subtotal, amount=Decimal("1.00"))
    counts = cancel_order_financials(order=order)

    assert counts == {"invoices": 1, "receivables": 1, "commissions": 1}
    assert Invoice.objects.get(id=invoice.id).status == Invoice.STATUS_CANCELLED
    assert Commission.objects.get(order=order).status == Commission.STATUS_CANCELLED
